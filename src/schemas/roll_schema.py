from typing import List

from .vote_schema import CamelModel


class RollStatsOut(CamelModel):
    available_rolls: int
    rolls_made: int
    rolls_bonuses: int
    total_votes: int
    votes_per_roll: int


class SymbolOut(CamelModel):
    name: str
    emoji: str
    position: int


class RollOut(CamelModel):
    positions: List[int]
    symbols: List[SymbolOut]
    bonus_won: int
    result_hash: str
    rolls_made: int
    rolls_bonuses: int
    available_rolls: int
