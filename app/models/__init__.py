from app.models.base import Base  # noqa: F401
from app.models.match import Match, MatchStatus, TurnState, WinReason  # noqa: F401
from app.models.memory_pool import MemoryPoolEntry  # noqa: F401
from app.models.user import User  # noqa: F401
