"""Fatal error types. Per-host failures never raise; they become statuses."""


class LlamaprobeError(Exception):
    """Base class for errors that abort a scan."""


class ConfigError(LlamaprobeError):
    pass


class SweepError(LlamaprobeError):
    """The external address sweep is missing or failed."""


class SinkError(LlamaprobeError):
    """The results file could not be created or written."""
