"""
Core domain exceptions.

These exceptions are transport-agnostic. Tool-level failures never surface
as exceptions; they are returned as failed ToolResult values. Only
configuration, unrecoverable provider and compaction errors escape a run.
"""

from typing import Any


class CoreError(Exception):
    """Base exception for all core errors."""

    pass


class NotFoundError(CoreError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class InvalidOperationError(CoreError):
    """Raised when an operation cannot be performed in the current state."""

    pass


class ConfigurationError(CoreError):
    """Raised when the runtime is missing required configuration."""

    pass


class AbortError(CoreError):
    """Raised when an operation is cancelled through an AbortSignal."""

    def __init__(self, message: str = "Operation aborted"):
        super().__init__(message)


class ProviderError(CoreError):
    """Raised by model providers when a request or stream fails.

    Attributes:
        status_code: HTTP status code if the failure came from a response
        headers: Response headers (used for retry-after hints)
        body: Raw response body, if any
        code: Transport error code such as ECONNRESET
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
        body: str | None = None,
        code: str | None = None,
    ):
        self.status_code = status_code
        self.headers = headers or {}
        self.body = body
        self.code = code
        super().__init__(message)


class RetryableProviderError(CoreError):
    """A retryable provider failure that could not be retried any further."""

    def __init__(self, message: str, cause: BaseException | None = None):
        self.cause = cause
        super().__init__(message)


class PluginToolConflictError(CoreError):
    """Raised when a plugin tool id collides with an existing tool."""

    def __init__(self, tool_id: str, plugin: str | None = None):
        self.tool_id = tool_id
        self.plugin = plugin
        source = f" (plugin: {plugin})" if plugin else ""
        super().__init__(f"Tool id already registered: {tool_id}{source}")


def error_name(error: BaseException | Any) -> str:
    """Return the class name of an error for redacted debug messages."""
    return type(error).__name__
