"""Shared exception types for Heybot."""


class HeybotError(Exception):
    """Base exception for all Heybot errors."""


class ConfigError(HeybotError):
    """Configuration or registration is invalid."""


class AdapterError(HeybotError):
    """Chat adapter is missing or failed to load."""
