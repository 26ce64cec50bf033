"""
Identidad anónima de los visitantes.

Un visitante se reconoce por el token de su cookie y, si la perdió, por la IP
de alguna de sus sesiones. La IP es una clave de recuperación débil: detrás de
un NAT o de una red móvil varios visitantes pueden terminar compartiendo
identidad. Es una aproximación aceptada.
"""
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import COOKIE_MAX_AGE_SECONDS, Settings
from ..errors import ForbiddenError, NotFoundError, UnauthenticatedError, UpstreamError
from ..models.visitor import Visitor, VisitorSession
from ..utils import mask_token

logger = logging.getLogger(__name__)

MAX_TOKEN_LENGTH = 128


@dataclass
class IdentityResolution:
    visitor: Visitor
    created: bool
    # True si hay que (re)enviar la cookie al cliente
    set_cookie: bool


def generate_cookie_token() -> str:
    return secrets.token_hex(32)


def _clean_token(cookie_token: Optional[str]) -> Optional[str]:
    if not cookie_token or len(cookie_token) > MAX_TOKEN_LENGTH:
        return None
    return cookie_token


def find_visitor_by_token(db: Session, cookie_token: str) -> Optional[Visitor]:
    return db.query(Visitor).filter(Visitor.cookie_token == cookie_token).first()


def find_session_by_ip(db: Session, ip_address: str) -> Optional[VisitorSession]:
    # La sesión más vieja para esa IP, para que la elección sea estable
    return (
        db.query(VisitorSession)
        .filter(VisitorSession.ip_address == ip_address)
        .order_by(VisitorSession.id.asc())
        .first()
    )


def has_session_for_ip(db: Session, visitor: Visitor, ip_address: str) -> bool:
    return (
        db.query(VisitorSession)
        .filter(VisitorSession.visitor_id == visitor.id, VisitorSession.ip_address == ip_address)
        .first()
        is not None
    )


def resolve_visitor(db: Session, cookie_token: Optional[str], ip_address: str) -> IdentityResolution:
    """
    Resuelve (o crea) el visitante para el par (cookie, IP).

    Orden:
    1. Token conocido: se usa ese visitante y se agrega la sesión de esta IP si falta.
    2. Sin token o token desconocido: se busca una sesión por IP. Si el cliente
       mandó un token desconocido, se le asigna al visitante encontrado
       (recuperación tras borrar cookies; gana el último que usa esa IP).
    3. Nada coincide: visitante nuevo con token nuevo y sesión para esta IP.

    Todo se confirma en un único commit; ante un error de BD no queda estado parcial.
    """
    cookie_token = _clean_token(cookie_token)
    created = False

    try:
        visitor = None

        if cookie_token:
            visitor = find_visitor_by_token(db, cookie_token)
            if visitor and not has_session_for_ip(db, visitor, ip_address):
                db.add(VisitorSession(visitor_id=visitor.id, ip_address=ip_address))
                logger.info(f"Nueva sesión para visitante {visitor.id} desde {ip_address}")

        if visitor is None:
            session_by_ip = find_session_by_ip(db, ip_address)
            if session_by_ip:
                visitor = session_by_ip.visitor
                if cookie_token and visitor.cookie_token != cookie_token:
                    logger.info(
                        f"Recuperación por IP {ip_address}: visitante {visitor.id} "
                        f"pasa a usar el token {mask_token(cookie_token)}"
                    )
                    visitor.cookie_token = cookie_token

        if visitor is None:
            visitor = Visitor(cookie_token=generate_cookie_token(), rolls_made=0, rolls_bonuses=0)
            visitor.sessions.append(VisitorSession(ip_address=ip_address))
            db.add(visitor)
            created = True

        db.commit()
        db.refresh(visitor)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error al resolver visitante para {ip_address}: {e}", exc_info=True)
        raise UpstreamError("No se pudo resolver el visitante") from e

    if created:
        logger.info(f"✨ Nuevo visitante {visitor.id} desde {ip_address}")

    return IdentityResolution(
        visitor=visitor,
        created=created,
        set_cookie=cookie_token != visitor.cookie_token,
    )


def authenticate_visitor(db: Session, cookie_token: Optional[str], ip_address: str) -> Visitor:
    """
    Versión estricta usada para tirar: exige cookie válida y una sesión
    existente para la IP del cliente. No crea nada.
    """
    if not cookie_token:
        raise UnauthenticatedError("No se encontró el token de usuario")

    try:
        visitor = find_visitor_by_token(db, cookie_token)
        if visitor is None:
            raise NotFoundError("Usuario no encontrado")
        if not has_session_for_ip(db, visitor, ip_address):
            raise ForbiddenError("No hay sesión para esta IP", reason=ForbiddenError.SESSION_NOT_FOUND)
    except SQLAlchemyError as e:
        logger.error(f"Error al autenticar visitante: {e}", exc_info=True)
        raise UpstreamError("No se pudo verificar el visitante") from e

    return visitor


def set_visitor_cookie(response: Response, cookie_token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.cookie_name,
        value=cookie_token,
        max_age=COOKIE_MAX_AGE_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
    )
