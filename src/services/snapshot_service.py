import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import SNAPSHOT_INTERVAL_SECONDS
from ..database import SessionLocal
from ..models.vote_snapshot import VoteSnapshot
from ..utils import utcnow

logger = logging.getLogger(__name__)


def latest_snapshot(db: Session) -> Optional[VoteSnapshot]:
    return db.query(VoteSnapshot).order_by(VoteSnapshot.recorded_at.desc()).first()


def list_snapshots(db: Session) -> List[VoteSnapshot]:
    """Historial completo, del más viejo al más nuevo."""
    return db.query(VoteSnapshot).order_by(VoteSnapshot.recorded_at.asc(), VoteSnapshot.id.asc()).all()


def record_snapshot_if_due(db: Session, votes: int, now: datetime | None = None) -> Optional[VoteSnapshot]:
    """
    Guarda un snapshot si no hay ninguno o si el último tiene 10 minutos o más.
    Retorna el snapshot creado, o None si todavía no correspondía.
    """
    now = now or utcnow()
    last = latest_snapshot(db)
    if last and now - last.recorded_at < timedelta(seconds=SNAPSHOT_INTERVAL_SECONDS):
        return None

    snapshot = VoteSnapshot(votes=votes, recorded_at=now)
    db.add(snapshot)
    db.commit()
    logger.info(f"📈 Snapshot de votos guardado: {votes}")
    return snapshot


def record_snapshot_task(votes: int) -> None:
    """
    Versión para BackgroundTasks: corre después de enviar la respuesta,
    con su propia sesión de BD. Un fallo acá no afecta al contador devuelto.
    """
    db = SessionLocal()
    try:
        record_snapshot_if_due(db, votes)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ No se pudo guardar el snapshot de votos: {e}", exc_info=True)
    finally:
        db.close()
