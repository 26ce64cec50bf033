from sqlalchemy import Column, Integer, DateTime

from ..database import Base
from ..utils import utcnow


class VoteSnapshot(Base):
    """
    Foto periódica del contador de votos, para el gráfico de progreso.
    Se guarda como máximo una cada 10 minutos.
    """
    __tablename__ = "vote_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    votes = Column(Integer, nullable=False)
    recorded_at = Column(DateTime, default=utcnow, nullable=False, index=True)
