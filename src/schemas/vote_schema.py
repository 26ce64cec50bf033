from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, field_serializer
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Respuestas en camelCase para el frontend."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}


class VotesOut(CamelModel):
    votes: int


class VoteSnapshotOut(CamelModel):
    recorded_at: datetime
    votes: int

    @field_serializer("recorded_at")
    def serialize_recorded_at(self, value: datetime) -> str:
        # En la BD se guarda UTC sin tzinfo; el navegador necesita el offset explícito
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()


class HistoryOut(CamelModel):
    history: List[VoteSnapshotOut]


class TimelineOut(CamelModel):
    timestamps: List[int]


class PublicConfigOut(CamelModel):
    total_votes_needed: int
    votes_per_roll: int
    sign_url: Optional[str] = None
