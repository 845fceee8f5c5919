from .cancellation import CancellationRequest, RefundPolicy, RefundTransaction
from .cleanup_log import CleanupLog
from .configuration import ReservationConfiguration
from .meal_service import MealService
from .payment import PaymentLink, RequestPayment
from .request import (
    RequestStatusHistory,
    RequestTableDetails,
    ReservationRequest,
    ReservationTableHold,
)
from .reservation import (
    Reservation,
    ReservationFinancialData,
    ReservationModificationHistory,
    TableAssignment,
)
from .restaurant import Restaurant
from .section import RestaurantSection
from .slot import TableSlot
from .table import RestaurantTable
from .table_set import TableSet

__all__ = [
    'Restaurant',
    'RestaurantSection',
    'RestaurantTable',
    'TableSlot',
    'ReservationConfiguration',
    'MealService',
    'ReservationRequest',
    'RequestTableDetails',
    'ReservationTableHold',
    'RequestStatusHistory',
    'RequestPayment',
    'PaymentLink',
    'Reservation',
    'ReservationFinancialData',
    'TableAssignment',
    'ReservationModificationHistory',
    'TableSet',
    'RefundPolicy',
    'CancellationRequest',
    'RefundTransaction',
    'CleanupLog',
]
