"""reqchain errors - kinds collected in Request.errors."""


class ReqchainError(Exception):
    """Base for every error a Request accumulates.

    Errors are appended to the request, not raised. `cause` keeps the
    underlying exception (json, OSError, requests) when there is one.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ConfigurationError(ReqchainError):
    """Bad proxy URL or a value that can't be turned into a payload mapping."""


class NoMethodError(ReqchainError):
    """Dispatch was attempted without an HTTP method."""


class RequestBuildError(ReqchainError):
    """The request object (or its multipart body) couldn't be built."""


class TransportError(ReqchainError):
    """Network, DNS, proxy or TLS failure while sending."""


class ResponseReadError(ReqchainError):
    """The response body couldn't be read to the end."""
