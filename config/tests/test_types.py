import unittest
from unittest import mock

from pydantic import ValidationError

from config.manager import env_manager
from config.types import AnalysisOptions, ValidationOptions


class TestValidationOptions(unittest.TestCase):
    """Test cases for the ValidationOptions model."""

    def test_init_defaults(self):
        """Test that every check is enabled by default."""
        options = ValidationOptions()

        self.assertTrue(options.check_structure)
        self.assertTrue(options.check_circular_dependencies)
        self.assertTrue(options.check_tool_availability)
        self.assertTrue(options.check_parameter_compatibility)
        self.assertFalse(options.strict)

    def test_aliases_and_field_names(self):
        """Test that camelCase aliases and field names are both accepted."""
        by_alias = ValidationOptions.model_validate({"checkToolAvailability": False})
        by_name = ValidationOptions(check_tool_availability=False)

        self.assertFalse(by_alias.check_tool_availability)
        self.assertEqual(by_alias, by_name)

    def test_invalid_value(self):
        """Test that a non-boolean toggle is rejected."""
        with self.assertRaises(ValidationError):
            ValidationOptions.model_validate({"checkStructure": "sometimes"})

    def test_from_settings(self):
        """Test building options from the configured settings."""
        with mock.patch.dict(
            env_manager.settings,
            {"chain_validate_tool_availability": False, "chain_resolution_mode": "strict"},
        ):
            options = ValidationOptions.from_settings()

        self.assertFalse(options.check_tool_availability)
        self.assertTrue(options.strict)

    def test_from_settings_with_overrides(self):
        """Test that explicit overrides win and unrelated keys are ignored."""
        with mock.patch.dict(env_manager.settings, {"chain_validate_tool_availability": False}):
            options = ValidationOptions.from_settings(
                {"checkToolAvailability": True, "strict": True, "toolChain": []}
            )

        self.assertTrue(options.check_tool_availability)
        self.assertTrue(options.strict)


class TestAnalysisOptions(unittest.TestCase):
    """Test cases for the AnalysisOptions model."""

    def test_init_defaults(self):
        """Test the default flags and thresholds."""
        options = AnalysisOptions()

        self.assertTrue(options.include_execution_metrics)
        self.assertTrue(options.include_complexity_analysis)
        self.assertTrue(options.include_optimization_suggestions)
        self.assertEqual(options.default_step_duration_ms, 1000.0)
        self.assertEqual(options.default_step_complexity, 3.0)
        self.assertEqual(options.fan_in_threshold, 2)

    def test_from_settings(self):
        """Test that thresholds come from the configured settings."""
        with mock.patch.dict(
            env_manager.settings,
            {"chain_default_step_duration_ms": 50.0, "chain_high_complexity_threshold": 2.0},
        ):
            options = AnalysisOptions.from_settings({"includeOptimizationSuggestions": False})

        self.assertEqual(options.default_step_duration_ms, 50.0)
        self.assertEqual(options.high_complexity_threshold, 2.0)
        self.assertFalse(options.include_optimization_suggestions)
        self.assertTrue(options.include_execution_metrics)


if __name__ == "__main__":
    unittest.main()
