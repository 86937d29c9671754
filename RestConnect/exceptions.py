from typing import Optional

# Faults
class RestConnectError(Exception):
    """Base class for every fault captured by the execution pipeline."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

class TransportFault(RestConnectError):
    """Connection or network-layer failure reported by the transport."""
    pass

class TimeoutFault(RestConnectError):
    """Captured when the request deadline elapses before the transport completes."""
    pass

class AbortFault(RestConnectError):
    """Captured when the caller cancels an execution explicitly."""
    pass

class DeserializationFault(RestConnectError):
    """A pre-deserialization hook or a content decoder failed."""
    def __init__(self, message: str, status_code: Optional[int] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message, status_code=status_code)
        self.cause = cause

    @classmethod
    def from_exception(cls, error: BaseException, status_code: Optional[int] = None) -> "DeserializationFault":
        """Wrap an exception, keeping its message verbatim."""
        message = str(error) or type(error).__name__
        return cls(message, status_code=status_code, cause=error)

class ConfigurationError(RestConnectError, ValueError):
    """Raised when client configuration is invalid."""
    pass
