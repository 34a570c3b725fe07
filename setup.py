from setuptools import setup, find_packages

setup(
    name="mcp-chain-tools",
    version="0.1.0",
    description="Declarative tool chain orchestration for MCP",
    author="MCP Team",
    packages=find_packages(),
    install_requires=[
        "pydantic>=2.0.0",
        "PyYAML>=6.0",
        "click>=8.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "chain=plugins.chaining.cli:chain",
        ],
    },
    python_requires=">=3.8",
)
