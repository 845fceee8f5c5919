import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db import Base

if TYPE_CHECKING:
    from app.models import Restaurant, RestaurantSection


class RestaurantTable(Base):
    """Таблица столов ресторана."""

    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('restaurant.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    section_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('restaurantsection.id', ondelete='SET NULL'),
        index=True,
        nullable=True,
    )
    table_name: Mapped[str] = mapped_column(String(64), nullable=False)
    seating_capacity: Mapped[int] = mapped_column(Integer, nullable=False)

    restaurant: Mapped['Restaurant'] = relationship(
        back_populates='tables',
        lazy='selectin',
    )
    section: Mapped[Optional['RestaurantSection']] = relationship(
        lazy='selectin',
    )

    __table_args__ = (
        UniqueConstraint(
            'restaurant_id',
            'table_name',
            name='uq_table_name_per_restaurant',
        ),
        CheckConstraint('seating_capacity > 0', name='ck_table_capacity'),
    )
