from typing import TYPE_CHECKING, List

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db import Base

if TYPE_CHECKING:
    from app.models import RestaurantSection, RestaurantTable


class Restaurant(Base):
    """Таблица ресторанов."""

    name: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    sections: Mapped[List['RestaurantSection']] = relationship(
        back_populates='restaurant',
        lazy='selectin',
    )
    tables: Mapped[List['RestaurantTable']] = relationship(
        back_populates='restaurant',
        lazy='selectin',
    )
