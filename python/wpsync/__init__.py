"""
wpsync - live WordPress plugin synchronization.

Mirrors a plugin working tree into a local WordPress runtime in real time,
compiling TypeScript sources on the way, while a live-reload proxy refreshes
the browser.
"""

__version__ = "0.1.0"

# DO NOT import submodules here - the CLI imports lazily so `wpsync --help`
# stays fast and does not pull in watchdog/livereload.

__all__ = ["__version__"]
