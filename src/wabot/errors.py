"""
wabot error types.

Every error carries a stable ``code`` so listeners on the ``Failed`` event can
branch without isinstance chains.
"""

from typing import Any, Optional


class WABotError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class NotInitialized(WABotError):
    """The credential store was used before ``init()``."""

    def __init__(self, message: str = "Credentials not loaded."):
        super().__init__("not_initialized", message)


class DecryptionFailed(WABotError):
    """A stored record failed authentication. Never carries partial plaintext."""

    def __init__(self, message: str = "Stored record could not be decrypted.", details: Optional[dict[str, Any]] = None):
        super().__init__("decryption_failed", message, details)


class TransportNotOpen(WABotError):
    def __init__(self, message: str = "The transport connection is not open."):
        super().__init__("transport_not_open", message)


class InvalidIdentity(WABotError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("invalid_identity", message, details)


class MiddlewareReentry(WABotError):
    def __init__(self, message: str = "next() called multiple times."):
        super().__init__("middleware_reentry", message)


class TransportError(WABotError):
    """Failure reported by (or handed to) the transport.

    ``status_code`` follows HTTP semantics; the connection manager's close
    table is keyed on it.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict[str, Any]] = None):
        super().__init__("transport_error", message, details)
        self.status_code = status_code


class RestartRequired(TransportError):
    def __init__(self, message: str = "Restart required."):
        super().__init__(message, status_code=515)
        self.code = "restart_required"
