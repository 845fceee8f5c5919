import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db import Base

if TYPE_CHECKING:
    from app.models import Restaurant


class RestaurantSection(Base):
    """Таблица залов (секций) ресторана."""

    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('restaurant.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    section_name: Mapped[str] = mapped_column(String(128), nullable=False)
    display_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    restaurant: Mapped['Restaurant'] = relationship(
        back_populates='sections',
        lazy='selectin',
    )

    __table_args__ = (
        UniqueConstraint(
            'restaurant_id',
            'section_name',
            name='uq_section_name_per_restaurant',
        ),
    )
