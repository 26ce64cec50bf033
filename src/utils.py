from datetime import datetime, timezone

from fastapi import Request


def utcnow() -> datetime:
    """Hora actual en UTC, sin tzinfo (así se guarda en la BD)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_client_ip(request: Request) -> str:
    """
    Obtiene la IP del cliente.
    Prioridad: X-Forwarded-For (primer valor) > X-Real-IP > conexión directa.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def mask_token(token: str | None) -> str:
    """Primeros 8 caracteres del token, para logs."""
    if not token:
        return "(sin token)"
    return f"{token[:8]}..."
