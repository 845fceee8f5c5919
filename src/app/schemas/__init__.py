"""Схемы Pydantic операций бронирования столов.

- Удержания и слоты (slot)
- Заявки на бронирование и их подтверждение (reservation_request)
- Перенос стола и изменение состава гостей (reservation)
- Объединение столов (table_set)
- Отмена и возврат (cancellation)
- Доступность с учётом времени пересадки (availability)
- Фоновые задачи (maintenance)
"""

from .availability import DwellCheck, DwellConflict, PeriodAvailability
from .cancellation import (
    CancellationResult,
    CancelReservationRequest,
    RefundCalculation,
    SlotRelease,
)
from .common import ErrorResponse, OperationResult
from .maintenance import CleanupReport, PaidRequestsReport, PaymentVerification
from .reservation import (
    ReassignTableRequest,
    ReservationDetailsUpdate,
    ReservationDetailsUpdated,
    TableReassigned,
)
from .reservation_request import (
    ConfirmedReservation,
    ConfirmReservationRequest,
    RequestStatusChanged,
    RequestStatusUpdate,
    ReservationRequestCreate,
    ReservationRequestCreated,
)
from .slot import (
    AvailabilityChange,
    AvailabilityWindow,
    ExtendHoldRequest,
    HeldSlot,
    HoldSlotRequest,
    HoldStatistics,
    SlotGenerationRequest,
    SlotGenerationResult,
    SlotInfo,
)
from .table_set import (
    MergeTablesRequest,
    TableSetActionRequest,
    TableSetDissolved,
    TableSetInfo,
)

__all__ = [
    'ErrorResponse',
    'OperationResult',
    'HoldSlotRequest',
    'HeldSlot',
    'SlotInfo',
    'ExtendHoldRequest',
    'HoldStatistics',
    'SlotGenerationRequest',
    'SlotGenerationResult',
    'AvailabilityWindow',
    'AvailabilityChange',
    'ReservationRequestCreate',
    'ReservationRequestCreated',
    'ConfirmReservationRequest',
    'ConfirmedReservation',
    'RequestStatusUpdate',
    'RequestStatusChanged',
    'ReassignTableRequest',
    'TableReassigned',
    'ReservationDetailsUpdate',
    'ReservationDetailsUpdated',
    'MergeTablesRequest',
    'TableSetActionRequest',
    'TableSetInfo',
    'TableSetDissolved',
    'CancelReservationRequest',
    'RefundCalculation',
    'SlotRelease',
    'CancellationResult',
    'DwellConflict',
    'DwellCheck',
    'PeriodAvailability',
    'CleanupReport',
    'PaymentVerification',
    'PaidRequestsReport',
]
