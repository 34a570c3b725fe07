from pathlib import Path
from typing import Dict, Any, Optional, List, Callable
import logging
import os


class EnvironmentManager:
    """
    Environment manager holding the tool-chain orchestrator settings.

    Settings start from DEFAULT_SETTINGS and can be overridden from a .env
    file, from OS environment variables (upper-cased setting name) or at
    runtime through update_configuration.
    """

    _instance = None

    # Default settings with their types
    DEFAULT_SETTINGS = {
        # Execution engine
        "chain_fail_fast": (False, bool),
        "chain_resolution_mode": ("permissive", str),
        "chain_retry_backoff_seconds": (0.0, float),
        # Graph validator toggles
        "chain_validate_circular_dependencies": (True, bool),
        "chain_validate_tool_availability": (True, bool),
        "chain_validate_parameter_compatibility": (True, bool),
        # Chain analyzer defaults and thresholds
        "chain_default_step_duration_ms": (1000.0, float),
        "chain_default_step_complexity": (3.0, float),
        "chain_long_duration_threshold_ms": (10000.0, float),
        "chain_fan_in_threshold": (2, int),
        "chain_retry_heavy_ratio": (0.3, float),
        "chain_high_complexity_threshold": (4.0, float),
    }

    # Create mapping dynamically - each setting can be set via its uppercase env var
    ENV_MAPPING = {setting.upper(): setting for setting in DEFAULT_SETTINGS.keys()}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize environment with default values"""
        self.env_variables: Dict[str, str] = {}
        self._providers: List[Callable[[], Dict[str, Any]]] = []
        self.settings: Dict[str, Any] = {}
        self.logger = logging.getLogger(__name__)

        # Initialize settings with default values
        for key, (default_value, _) in self.DEFAULT_SETTINGS.items():
            self.settings[key] = default_value

        self._load_from_env_file()

    def _get_git_root(self) -> Optional[Path]:
        """Try to determine the git root directory

        Returns:
            Path to the git root directory or None if not found
        """
        current_dir = Path.cwd()

        dir_to_check = current_dir
        for _ in range(10):  # Limit the search depth
            git_dir = dir_to_check / ".git"
            if git_dir.exists() and git_dir.is_dir():
                return dir_to_check

            parent_dir = dir_to_check.parent
            if parent_dir == dir_to_check:  # Reached the root
                break
            dir_to_check = parent_dir

        return None

    def _convert_value(self, value: Any, target_type: type) -> Any:
        """Convert string value to target type"""
        if target_type == bool:
            if isinstance(value, bool):
                return value
            return str(value).lower() == "true"
        return target_type(value)

    def _apply_variable(self, key: str, value: str) -> None:
        """Store a raw variable and update the mapped setting, if any"""
        self.env_variables[key] = value

        if key in self.ENV_MAPPING:
            setting_name = self.ENV_MAPPING[key]
            _, target_type = self.DEFAULT_SETTINGS[setting_name]
            try:
                self.settings[setting_name] = self._convert_value(value, target_type)
            except (TypeError, ValueError):
                self.logger.warning(
                    f"Ignoring invalid value for {key}: {value!r} (expected {target_type.__name__})"
                )

    def _load_from_env_file(self):
        """Find and load variables from a .env file"""
        env_file_paths = [Path.cwd() / ".env"]

        # Try additional common locations - safely handle home directory
        try:
            env_file_paths.append(Path.home() / ".env")
        except (RuntimeError, OSError):
            # Skip home directory if it can't be determined
            pass

        git_root = self._get_git_root()
        if git_root:
            env_file_paths.append(git_root / ".env")

        # Load from the first .env file found
        for env_path in env_file_paths:
            if env_path.exists() and env_path.is_file():
                self.logger.info(f"Loading environment from: {env_path}")
                self._parse_env_file(env_path)
                break

    def _parse_env_file(self, env_file_path: Path):
        """Parse a .env file and load variables into environment"""
        try:
            with open(env_file_path, "r") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, value = line.split("=", 1)
                        key = key.strip()
                        value = value.strip()

                        # Remove quotes if present
                        if (value.startswith('"') and value.endswith('"')) or (
                            value.startswith("'") and value.endswith("'")
                        ):
                            value = value[1:-1]

                        self._apply_variable(key, value)
        except OSError as e:
            self.logger.error(f"Error parsing .env file {env_file_path}: {e}")

    def register_provider(self, provider: Callable[[], Dict[str, Any]]):
        """Register a provider function that returns additional settings"""
        self._providers.append(provider)
        return self

    def load(self):
        """Load all environment information"""
        self._load_from_env_file()

        # Load variables from OS environment
        for key, value in os.environ.items():
            self._apply_variable(key, value)

        # Call all registered providers
        for provider in self._providers:
            try:
                additional_data = provider()
            except Exception as e:
                self.logger.error(f"Error from provider: {e}", exc_info=True)
                continue

            if settings := additional_data.get("settings", {}):
                for key, value in settings.items():
                    if key in self.settings:
                        self.settings[key] = value

        return self

    def get_setting(self, name: str, default: Any = None) -> Any:
        """Get a setting value by name"""
        return self.settings.get(name, default)

    def get_all_configuration(self) -> Dict[str, Any]:
        """Get every setting together with its default and type.

        Returns:
            Dictionary keyed by setting name
        """
        return {
            name: {
                "value": self.settings.get(name),
                "default": default_value,
                "type": target_type.__name__,
            }
            for name, (default_value, target_type) in self.DEFAULT_SETTINGS.items()
        }

    def update_configuration(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Update settings at runtime.

        Args:
            updates: Mapping of setting name to new value

        Returns:
            Dictionary with the updated settings and any per-setting errors
        """
        updated = {}
        errors = {}
        for name, value in updates.items():
            if name not in self.DEFAULT_SETTINGS:
                errors[name] = "Unknown setting"
                continue
            _, target_type = self.DEFAULT_SETTINGS[name]
            try:
                self.settings[name] = self._convert_value(value, target_type)
                updated[name] = self.settings[name]
            except (TypeError, ValueError) as e:
                errors[name] = f"Invalid value: {e}"

        if updated:
            self.logger.info(f"Updated settings: {', '.join(updated)}")

        return {"success": not errors, "updated": updated, "errors": errors}

    def reset_setting(self, setting_name: str) -> Dict[str, Any]:
        """Reset a setting to its default value.

        Args:
            setting_name: Name of the setting to reset

        Returns:
            Dictionary with success status and the restored value
        """
        if setting_name not in self.DEFAULT_SETTINGS:
            return {"success": False, "error": f"Unknown setting: {setting_name}"}

        default_value, _ = self.DEFAULT_SETTINGS[setting_name]
        self.settings[setting_name] = default_value
        return {"success": True, "setting": setting_name, "value": default_value}


# Create singleton instance
env_manager = EnvironmentManager()
