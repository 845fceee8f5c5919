from .base import CRUDBase
from .cancellation import (
    cancellation_repository,
    refund_policy_repository,
    refund_transaction_repository,
)
from .configuration import (
    cleanup_log_repository,
    configuration_repository,
    meal_service_repository,
)
from .request import (
    hold_repository,
    payment_link_repository,
    payment_repository,
    reservation_request_repository,
    table_details_repository,
)
from .reservation import (
    assignment_repository,
    financial_data_repository,
    modification_history_repository,
    reservation_repository,
)
from .slot import SlotRepository, slot_repository
from .table import TableRepository, table_repository
from .table_set import table_set_repository

__all__ = [
    'CRUDBase',
    'SlotRepository',
    'slot_repository',
    'TableRepository',
    'table_repository',
    'reservation_request_repository',
    'hold_repository',
    'table_details_repository',
    'payment_repository',
    'payment_link_repository',
    'reservation_repository',
    'assignment_repository',
    'financial_data_repository',
    'modification_history_repository',
    'table_set_repository',
    'refund_policy_repository',
    'cancellation_repository',
    'refund_transaction_repository',
    'configuration_repository',
    'meal_service_repository',
    'cleanup_log_repository',
]
