# Importar todos los modelos para que SQLAlchemy los registre antes de create_all()
from .visitor import Visitor, VisitorSession
from .vote_snapshot import VoteSnapshot

__all__ = [
    "Visitor",
    "VisitorSession",
    "VoteSnapshot",
]
