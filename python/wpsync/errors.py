"""Exception types raised by wpsync."""


class WpsyncError(Exception):
    """Base class for wpsync errors."""


class StartupError(WpsyncError):
    """
    Raised when a session cannot start.

    Startup errors are fatal: the session releases whatever it already
    acquired and the CLI exits with a nonzero status.
    """


class BuildError(WpsyncError):
    """Raised when a build command cannot be spawned."""
