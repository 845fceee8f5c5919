import uuid
from typing import Optional

from sqlalchemy import Enum, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base
from app.utils.enums import CleanupType


class CleanupLog(Base):
    """Журнал фоновых очисток."""

    cleanup_type: Mapped[CleanupType] = mapped_column(
        Enum(CleanupType, name='cleanup_type'),
        nullable=False,
    )
    restaurant_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    records_removed: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
