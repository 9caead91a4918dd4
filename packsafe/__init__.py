"""PackSafe — npm dependency health monitoring."""

__version__ = "1.0.0"
