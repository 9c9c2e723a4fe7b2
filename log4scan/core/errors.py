"""Exceptions that abort a scan before (or instead of) it starts."""


class Log4ScanError(Exception):
    """Base class for operator-facing failures."""


class ConfigError(Log4ScanError):
    """Invalid options, wordlist files, targets or key=value pairs."""


class CatcherError(Log4ScanError):
    """The callback listener could not be started."""
