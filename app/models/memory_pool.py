"""MemoryPoolEntry model: the shared pool of memory texts cards are drawn from."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class MemoryPoolEntry(Base):
    __tablename__ = "memory_pool"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    memory: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
