"""Exception types raised by the surface pattern engine."""


class ConfigurationError(ValueError):
    """Raised when a combination of options cannot be honoured."""


class DataIntegrityError(RuntimeError):
    """Raised when corpus tokens lack annotations the engine relies on."""
