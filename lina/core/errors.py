"""
Error taxonomy for the LINA backend.

Every error a client can see derives from LinaError and carries the HTTP status,
a stable machine code and a user-facing message. Internal detail (provider
payloads, stack traces) stays in the logs.
"""
from typing import Dict, Optional


class LinaError(Exception):
    status_code = 500
    code = "internal_error"
    default_message = "Tuvimos un problema al responder. Intenta nuevamente en un momento."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class InvalidInput(LinaError):
    status_code = 400
    code = "invalid_input"
    default_message = "La solicitud no es válida."


class Unauthenticated(LinaError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Necesitas iniciar sesión de nuevo para continuar."

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class QuotaExhausted(LinaError):
    status_code = 402
    code = "payment_required"
    default_message = (
        "Ya usaste tus preguntas gratis. Suscríbete para seguir conversando con LINA."
    )


class PayloadTooLarge(LinaError):
    status_code = 413
    code = "payload_too_large"
    default_message = "El mensaje es demasiado grande."


class UpstreamError(LinaError):
    """The model provider or payment gateway failed. `detail` is for logs only."""

    status_code = 502
    code = "upstream_error"

    def __init__(self, message: Optional[str] = None, detail: str = "", rate_limited: bool = False):
        super().__init__(message)
        self.detail = detail
        self.rate_limited = rate_limited
        if rate_limited:
            self.status_code = 429
            self.code = "upstream_rate_limited"
            if message is None:
                self.message = (
                    "Hay muchas solicitudes en este momento. Intenta de nuevo en un rato."
                )


class ConfigurationError(Exception):
    """A required secret or setting is absent. Fatal at startup."""
