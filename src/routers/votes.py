import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..errors import UpstreamError
from ..schemas.vote_schema import HistoryOut, PublicConfigOut, TimelineOut, VoteSnapshotOut, VotesOut
from ..services.snapshot_service import list_snapshots, record_snapshot_task
from ..services.vote_source import GoogleSheetsVoteSource, get_vote_source

router = APIRouter(tags=["votes"])
logger = logging.getLogger(__name__)


@router.get("/votes", response_model=VotesOut)
def get_votes(
    background_tasks: BackgroundTasks,
    source: GoogleSheetsVoteSource = Depends(get_vote_source),
):
    """
    Cantidad actual de votos (filas de la hoja).
    El snapshot para el gráfico se guarda después de responder, como mucho uno cada 10 minutos.
    """
    votes = source.count()
    background_tasks.add_task(record_snapshot_task, votes)
    return VotesOut(votes=votes)


@router.get("/votes/timeline", response_model=TimelineOut)
def get_votes_timeline(source: GoogleSheetsVoteSource = Depends(get_vote_source)):
    """Marca temporal (unix, UTC) de cada voto, en orden ascendente."""
    return TimelineOut(timestamps=source.timestamps())


@router.get("/history", response_model=HistoryOut)
def get_history(db: Session = Depends(get_db)):
    try:
        snapshots = list_snapshots(db)
    except SQLAlchemyError as e:
        logger.error(f"Error al obtener historial de votos: {e}", exc_info=True)
        raise UpstreamError("No se pudo obtener el historial") from e

    return HistoryOut(history=[VoteSnapshotOut.model_validate(s) for s in snapshots])


@router.get("/config", response_model=PublicConfigOut)
def get_public_config():
    settings = get_settings()
    return PublicConfigOut(
        total_votes_needed=settings.total_votes_needed,
        votes_per_roll=settings.votes_per_roll,
        sign_url=settings.sign_url,
    )
