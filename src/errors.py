"""
Errores de dominio del backend.

Cada error conoce su código HTTP y un `reason` legible por máquina, de modo que
el frontend pueda distinguir "esperá más votos" de "no te reconocemos".
"""


class AppError(Exception):
    """Clase base de los errores que llegan hasta la respuesta HTTP."""

    status_code = 500
    reason = "internal_error"

    def __init__(self, message: str | None = None, reason: str | None = None):
        self.message = message or self.__class__.__doc__ or "Error"
        if reason:
            self.reason = reason
        super().__init__(self.message)


class ConfigurationError(AppError):
    """Falta configuración requerida (por ejemplo, credenciales de Google)."""

    status_code = 500
    reason = "configuration_error"


class UpstreamError(AppError):
    """La fuente de votos o la base de datos no está disponible."""

    status_code = 503
    reason = "upstream_unavailable"


class UnauthenticatedError(AppError):
    """No se envió la cookie de identidad."""

    status_code = 401
    reason = "missing_token"


class NotFoundError(AppError):
    """La cookie no corresponde a ningún visitante."""

    status_code = 404
    reason = "visitor_not_found"


class ForbiddenError(AppError):
    """El visitante no tiene sesión para esta IP o no le quedan tiradas."""

    status_code = 403
    reason = "forbidden"

    SESSION_NOT_FOUND = "session_not_found"
    NO_ROLLS_AVAILABLE = "no_rolls_available"
