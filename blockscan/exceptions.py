"""
Custom exceptions for block scanning.

All backends and the scanner raise these exceptions so the command
line can tell fatal errors from per-block failures.
"""


class BlockScanError(Exception):
    """Base exception for all block scan errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(BlockScanError):
    """Raised when the configuration file or overrides are invalid."""

    def __init__(self, message: str, path: str | None = None, cause: Exception | None = None):
        details: dict = {}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.path = path
        self.cause = cause


class BackendSelectionError(BlockScanError):
    """Raised when the configured backend name is not recognized."""

    def __init__(self, backend: str):
        super().__init__(f"unknown backend {backend!r}", {"backend": backend})
        self.backend = backend


class StorageConnectionError(BlockScanError):
    """Raised when a backend client cannot be constructed or reached.

    Note: Named StorageConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, endpoint: str, cause: Exception | None = None):
        details = {"endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Connection failed to {endpoint}", details)
        self.endpoint = endpoint
        self.cause = cause


class StorageIOError(BlockScanError):
    """Raised when a backend read fails for a reason other than absence."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        if cause:
            message += f" ({cause})"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class BlockMetaFormatError(StorageIOError):
    """Raised when a metadata document exists but cannot be parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__("parse meta", path, ValueError(reason))
        self.reason = reason


class EnumerationError(BlockScanError):
    """Raised when listing the blocks of a tenant fails. Aborts the scan."""

    def __init__(self, tenant_id: str, cause: Exception | None = None):
        details = {"tenant_id": tenant_id}
        if cause:
            details["cause"] = str(cause)
        message = f"Failed to list blocks for tenant {tenant_id}"
        if cause:
            message += f": {cause}"
        super().__init__(message, details)
        self.tenant_id = tenant_id
        self.cause = cause


class BlockNotFoundError(BlockScanError):
    """Raised when neither active nor compacted metadata exists for a block."""

    def __init__(self, block_id: str, tenant_id: str):
        super().__init__(
            f"Block not found: {block_id}",
            {"block_id": block_id, "tenant_id": tenant_id},
        )
        self.block_id = block_id
        self.tenant_id = tenant_id


class ValidationError(BlockScanError):
    """Raised when user input fails validation."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class QueryError(BlockScanError):
    """Raised when a call to the tracing HTTP API fails."""

    def __init__(
        self,
        url: str,
        status: int | None = None,
        cause: Exception | None = None,
        message: str | None = None,
    ):
        details: dict = {"url": url}
        if status is not None:
            details["status"] = status
        if cause:
            details["cause"] = str(cause)
        if message is None:
            message = f"Query failed: {url}"
            if status is not None:
                message += f" (HTTP {status})"
            elif cause:
                message += f" ({cause})"
        super().__init__(message, details)
        self.url = url
        self.status = status
        self.cause = cause


class TraceNotFoundError(QueryError):
    """Raised when the tracing API has no trace for the requested id."""

    def __init__(self, url: str, trace_id: str):
        super().__init__(url, status=404, message=f"Trace not found: {trace_id}")
        self.trace_id = trace_id
