"""Mock Studio — environment-aware configuration and variable resolution for local mock services."""

__version__ = "1.0.0"
