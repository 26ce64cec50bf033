import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..schemas.roll_schema import RollOut, RollStatsOut, SymbolOut
from ..services.entitlement import available_rolls
from ..services.identity_service import authenticate_visitor, resolve_visitor, set_visitor_cookie
from ..services.roll_engine import perform_roll
from ..services.vote_source import GoogleSheetsVoteSource, get_vote_source
from ..utils import get_client_ip

router = APIRouter(prefix="/rolls", tags=["rolls"])
logger = logging.getLogger(__name__)


@router.get("/stats", response_model=RollStatsOut)
def get_roll_stats(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    source: GoogleSheetsVoteSource = Depends(get_vote_source),
):
    """
    Estado del visitante: tiradas disponibles, hechas y bonos.
    Si el visitante es nuevo (o recuperado por IP) se le envía la cookie.
    """
    settings = get_settings()
    ip_address = get_client_ip(request)
    cookie_token = request.cookies.get(settings.cookie_name)

    # Siempre un conteo fresco: la hoja cambia entre requests
    total_votes = source.count()
    votes_per_roll = settings.votes_per_roll

    resolution = resolve_visitor(db, cookie_token, ip_address)
    visitor = resolution.visitor
    if resolution.set_cookie:
        set_visitor_cookie(response, visitor.cookie_token, settings)

    return RollStatsOut(
        available_rolls=available_rolls(total_votes, votes_per_roll, visitor.rolls_made, visitor.rolls_bonuses),
        rolls_made=visitor.rolls_made,
        rolls_bonuses=visitor.rolls_bonuses,
        total_votes=total_votes,
        votes_per_roll=votes_per_roll,
    )


@router.post("/roll", response_model=RollOut)
def roll(
    request: Request,
    db: Session = Depends(get_db),
    source: GoogleSheetsVoteSource = Depends(get_vote_source),
):
    """
    Tira el tragamonedas.
    Requiere cookie válida y una sesión para la IP actual; el derecho a tirar
    se recalcula acá con el conteo de votos actual.
    """
    settings = get_settings()
    ip_address = get_client_ip(request)
    cookie_token = request.cookies.get(settings.cookie_name)

    visitor = authenticate_visitor(db, cookie_token, ip_address)
    total_votes = source.count()

    result = perform_roll(db, visitor, total_votes, settings.votes_per_roll)
    outcome = result.outcome

    return RollOut(
        positions=list(outcome.positions),
        symbols=[SymbolOut(name=s.name, emoji=s.emoji, position=s.position) for s in outcome.symbols],
        bonus_won=outcome.bonus_won,
        result_hash=outcome.result_hash,
        rolls_made=result.rolls_made,
        rolls_bonuses=result.rolls_bonuses,
        available_rolls=result.available_rolls,
    )
