"""
Motor del tragamonedas.

El resultado de cada tirada se deriva de forma determinística de una semilla
`{visitor_id}-{rolls_made}-{timestamp_ms}`: con la semilla se puede reproducir
y auditar cualquier tirada. No es un mecanismo criptográfico, la semilla es
adivinable.

El descuento de la tirada se hace con un UPDATE condicional (compare-and-swap
sobre `rolls_made`), así dos requests simultáneos del mismo visitante no
pueden gastar la misma tirada.
"""
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import ForbiddenError, UpstreamError
from ..models.visitor import Visitor
from ..utils import utcnow
from .entitlement import available_rolls, base_rolls

logger = logging.getLogger(__name__)


class Symbol(NamedTuple):
    name: str
    emoji: str
    position: int


SYMBOLS: List[Symbol] = [
    Symbol("cherry", "🍒", 0),
    Symbol("lemon", "🍋", 1),
    Symbol("orange", "🍊", 2),
    Symbol("plum", "🍇", 3),
    Symbol("seven", "7️⃣", 4),
]

# Sólo pagan los tres iguales. Dos iguales no pagan nada (intencional).
WINNING_BONUSES = {
    "cherry-cherry-cherry": 5,
    "lemon-lemon-lemon": 10,
    "orange-orange-orange": 20,
    "plum-plum-plum": 30,
    "seven-seven-seven": 50,
}

REELS = 3

# Reintentos cuando otro request del mismo visitante ganó la carrera
MAX_ROLL_ATTEMPTS = 5


@dataclass(frozen=True)
class RollOutcome:
    seed: str
    positions: Tuple[int, ...]
    bonus_won: int
    result_hash: str

    @property
    def symbols(self) -> List[Symbol]:
        return [SYMBOLS[pos] for pos in self.positions]


@dataclass(frozen=True)
class RollResult:
    outcome: RollOutcome
    rolls_made: int
    rolls_bonuses: int
    available_rolls: int


def current_millis() -> int:
    return int(time.time() * 1000)


def build_seed(visitor_id: str, rolls_made: int, timestamp_ms: int) -> str:
    return f"{visitor_id}-{rolls_made}-{timestamp_ms}"


def generate_positions(seed: str) -> Tuple[int, ...]:
    """
    SHA-256 de la semilla; cada rodillo usa una ventana de 16 bits
    (4 caracteres hex) reducida módulo la cantidad de símbolos.
    """
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()
    positions = []
    for i in range(REELS):
        value = int(digest[i * 4:i * 4 + 4], 16)
        positions.append(value % len(SYMBOLS))
    return tuple(positions)


def calculate_bonus(positions) -> int:
    key = "-".join(SYMBOLS[pos].name for pos in positions)
    return WINNING_BONUSES.get(key, 0)


def compute_result_hash(seed: str, positions) -> str:
    joined = "-".join(str(pos) for pos in positions)
    return hashlib.sha256(f"{seed}-{joined}".encode("utf-8")).hexdigest()


def derive_outcome(seed: str) -> RollOutcome:
    """Todo el resultado de una tirada a partir de su semilla."""
    positions = generate_positions(seed)
    return RollOutcome(
        seed=seed,
        positions=positions,
        bonus_won=calculate_bonus(positions),
        result_hash=compute_result_hash(seed, positions),
    )


def verify_outcome(seed: str, positions, result_hash: str) -> bool:
    """True si las posiciones y el hash son consistentes con la semilla."""
    expected = derive_outcome(seed)
    return tuple(positions) == expected.positions and result_hash == expected.result_hash


def perform_roll(
    db: Session,
    visitor: Visitor,
    total_votes: int,
    votes_per_roll: int,
    clock: Callable[[], int] = current_millis,
) -> RollResult:
    """
    Consume una tirada del visitante y devuelve el resultado.

    La tirada sólo se informa si el UPDATE se confirmó. Si el compare-and-swap
    falla (otro request del mismo visitante tiró primero) se vuelve a leer el
    visitante y se reevalúa el derecho a tirar.
    """
    unlocked = base_rolls(total_votes, votes_per_roll)

    for attempt in range(1, MAX_ROLL_ATTEMPTS + 1):
        try:
            rolls_made = visitor.rolls_made
            rolls_bonuses = visitor.rolls_bonuses
        except SQLAlchemyError as e:
            logger.error(f"Error al leer visitante {visitor.id}: {e}", exc_info=True)
            raise UpstreamError("No se pudo leer el visitante") from e

        if available_rolls(total_votes, votes_per_roll, rolls_made, rolls_bonuses) <= 0:
            raise ForbiddenError("No hay tiradas disponibles", reason=ForbiddenError.NO_ROLLS_AVAILABLE)

        outcome = derive_outcome(build_seed(visitor.id, rolls_made, clock()))

        try:
            updated = (
                db.query(Visitor)
                .filter(
                    Visitor.id == visitor.id,
                    Visitor.rolls_made == rolls_made,
                    Visitor.rolls_bonuses + unlocked - Visitor.rolls_made > 0,
                )
                .update(
                    {
                        Visitor.rolls_made: Visitor.rolls_made + 1,
                        Visitor.rolls_bonuses: Visitor.rolls_bonuses + outcome.bonus_won,
                        Visitor.updated_at: utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            if updated == 1:
                db.commit()
            else:
                # Rollback expira el visitante: la próxima lectura trae valores frescos
                db.rollback()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error al registrar tirada de {visitor.id}: {e}", exc_info=True)
            raise UpstreamError("No se pudo registrar la tirada") from e

        if updated == 1:
            new_made = rolls_made + 1
            new_bonuses = rolls_bonuses + outcome.bonus_won
            logger.info(
                f"🎰 Tirada de {visitor.id}: {list(outcome.positions)} "
                f"bono={outcome.bonus_won} (tiradas={new_made}, bonos={new_bonuses})"
            )
            return RollResult(
                outcome=outcome,
                rolls_made=new_made,
                rolls_bonuses=new_bonuses,
                available_rolls=available_rolls(total_votes, votes_per_roll, new_made, new_bonuses),
            )

        logger.info(f"Conflicto de tirada para {visitor.id} (intento {attempt}), reintentando")

    raise UpstreamError("Demasiadas tiradas simultáneas, intentá de nuevo")
