"""Exception types raised by the pipeline."""


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigError(PipelineError):
    """Missing or invalid runtime configuration."""


class MalformedResponseError(PipelineError):
    """An AI response could not be parsed into the expected schema."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class RetryableAPIError(PipelineError):
    """A transient failure from an external API (rate limit, 5xx)."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
