import uuid

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils import utcnow


def generate_visitor_id() -> str:
    return str(uuid.uuid4())


class Visitor(Base):
    """
    Visitante anónimo del tragamonedas.
    Se identifica con un cookie_token largo guardado en una cookie http-only
    y se recupera por IP (ver VisitorSession) si el navegador perdió la cookie.
    """
    __tablename__ = "visitors"

    id = Column(String(36), primary_key=True, default=generate_visitor_id)
    cookie_token = Column(String(128), unique=True, index=True, nullable=False)

    # Contadores monótonos: nunca se decrementan
    rolls_made = Column(Integer, nullable=False, default=0)
    rolls_bonuses = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    sessions = relationship(
        "VisitorSession",
        back_populates="visitor",
        cascade="all, delete-orphan",
    )


class VisitorSession(Base):
    """
    Asociación visitante <-> IP.
    La IP NO es única: detrás de un NAT varios visitantes comparten la misma.
    Sólo se usa como clave débil de recuperación.
    """
    __tablename__ = "visitor_sessions"

    id = Column(Integer, primary_key=True, index=True)
    visitor_id = Column(String(36), ForeignKey("visitors.id"), nullable=False, index=True)
    ip_address = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    visitor = relationship("Visitor", back_populates="sessions")
