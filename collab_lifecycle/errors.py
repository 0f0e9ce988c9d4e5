"""Exceptions raised inside the hook. None of them ever leave main()."""


class LifecycleError(Exception):
    """Base class for lifecycle hook errors."""


class MalformedEventError(LifecycleError):
    """Hook input was not a usable event document."""


class RegistryCorruptError(LifecycleError):
    """The active-session registry file could not be parsed."""
