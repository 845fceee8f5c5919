import uuid
from decimal import Decimal

from sqlalchemy import Enum, ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base
from app.utils.enums import MealType


class MealService(Base):
    """Таблица услуг питания ресторана с ценами на гостя."""

    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('restaurant.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    meal_type: Mapped[MealType] = mapped_column(
        Enum(MealType, name='meal_type'),
        nullable=False,
    )
    adult_net_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    child_net_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    service_charge_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal('0'),
    )
    tax_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal('0'),
    )
