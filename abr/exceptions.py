"""Custom exceptions for the ABR engine."""


class AbrError(Exception):
    """Base exception for all ABR engine errors."""

    pass


class ConfigurationError(AbrError):
    """Error in estimator, selector or session configuration."""

    pass


class InvalidLevelError(AbrError):
    """Level descriptor is missing a usable bitrate."""

    pass
