"""Error Taxonomy - Structured Errors for Remote Data Sources and the Cache

This module defines the two exception families used throughout itemcache:

1. **Data source errors** (:class:`DataSourceError` and subclasses) describe why a
   remote operation failed. They never propagate out of the cache API: the cache
   captures them into its snapshot so observers can react, while callers that need
   differentiated handling can still inspect the structured error object.
2. **Cache errors** (:class:`CacheError` and subclasses) describe misuse of the
   cache itself (operating on a closed cache, overlapping operations under the
   ``reject`` policy). These are raised directly to the caller.

Data Source Error Kinds:
    - **NetworkError**: transient, transport-level failure (retriable)
    - **ServerError**: remote rejected or failed the request (retriable)
    - **ValidationError**: payload rejected before or at the remote
    - **NotFoundError**: target entity absent remotely
    - **ContractViolationError**: remote answered, but the answer breaks the
      source contract (missing or duplicate ids)

.. note::
   The cache performs no retries. ``retriable`` is a hint for callers deciding
   whether calling ``fetch``/``refresh`` again is worthwhile.
"""

from typing import Any


class DataSourceError(Exception):
    """Base class for all remote data source failures.

    :param message: Human-readable description of the failure
    :type message: str
    :param details: Structured context (e.g. response body, item id)
    :type details: Optional[Dict[str, Any]]
    :param status_code: HTTP status code, when the failure came from an HTTP response
    :type status_code: Optional[int]

    Examples:
        Wrapping a low-level failure::

            try:
                payload = await client.get(url)
            except OSError as exc:
                raise NetworkError("Connection refused", details={"url": url}) from exc
    """

    code = "DATA_SOURCE_ERROR"
    retriable = False
    default_message = "Remote data source error"
    user_facing = True

    def __init__(
        self,
        message: str = "",
        *,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        self.message = message or self.default_message
        self.details = dict(details or {})
        self.status_code = status_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"

    def user_message(self) -> str:
        """Message suitable for presentation, hiding internal detail where needed."""
        if self.user_facing:
            return self.message
        return self.default_message

    def should_log(self) -> bool:
        """Whether this error indicates a problem worth an error-level log line.

        Errors caused by the request payload or by absent entities are expected
        outcomes; transport and server failures are not.
        """
        return not self.user_facing

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "retriable": self.retriable,
        }
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.details:
            result["details"] = dict(self.details)
        return result

    @classmethod
    def wrap(cls, exc: BaseException) -> "DataSourceError":
        """Convert an arbitrary exception raised by a source into a DataSourceError.

        DataSourceErrors are returned unchanged. Connection-level builtins become
        :class:`NetworkError`; anything else becomes :class:`ServerError`. The
        original exception is kept as ``__cause__``.
        """
        if isinstance(exc, DataSourceError):
            return exc

        message = str(exc) or type(exc).__name__
        if isinstance(exc, (ConnectionError, TimeoutError)):
            wrapped: DataSourceError = NetworkError(message)
        else:
            wrapped = ServerError(message, details={"exception_type": type(exc).__name__})
        wrapped.__cause__ = exc
        return wrapped


class NetworkError(DataSourceError):
    """Transport-level failure: connection refused, DNS failure, timeout."""

    code = "NETWORK_ERROR"
    retriable = True
    default_message = "The remote service could not be reached. Please try again later."
    user_facing = False


class ServerError(DataSourceError):
    """The remote service failed or refused to process the request."""

    code = "SERVER_ERROR"
    retriable = True
    default_message = "The remote service is temporarily unavailable."
    user_facing = False


class ValidationError(DataSourceError):
    """The request payload was rejected."""

    code = "VALIDATION_ERROR"
    default_message = "The item was rejected as invalid"


class NotFoundError(DataSourceError):
    """The targeted entity does not exist remotely."""

    code = "NOT_FOUND"
    default_message = "Item not found"

    @classmethod
    def for_item(cls, item_id: Any) -> "NotFoundError":
        return cls(f"Item {item_id!r} not found", details={"item_id": item_id})


class ContractViolationError(ServerError):
    """The remote answered with data that breaks the source contract.

    Raised by the cache itself, e.g. when ``create`` returns an id that is already
    cached or ``list`` returns duplicate ids.
    """

    code = "CONTRACT_VIOLATION"
    retriable = False
    default_message = "The remote service returned inconsistent data."


# Cache usage errors
class CacheError(Exception):
    """Base exception for misuse of the cache itself."""

    pass


class CacheClosedError(CacheError):
    """Raised when an operation is attempted on a closed cache."""

    pass


class CacheBusyError(CacheError):
    """Raised under the ``reject`` mutation policy when another operation is running."""

    def __init__(self, operation: str, running: str):
        self.operation = operation
        self.running = running
        super().__init__(f"Cannot {operation}: '{running}' is still in flight")
