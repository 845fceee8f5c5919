from enum import Enum


class SlotStatus(str, Enum):
    """Enum класс для статусов слотов столов."""

    AVAILABLE = 'AVAILABLE'
    HELD = 'HELD'
    RESERVED = 'RESERVED'
    BLOCKED = 'BLOCKED'
    MAINTENANCE = 'MAINTENANCE'


class RequestStatus(str, Enum):
    """Enum класс для статусов заявок на бронирование."""

    PENDING = 'PENDING'
    PENDING_CUSTOMER_PAYMENT = 'PENDING_CUSTOMER_PAYMENT'
    PAYMENT_LINK_EXPIRED = 'PAYMENT_LINK_EXPIRED'
    PAYMENT_FAILED = 'PAYMENT_FAILED'
    CONFIRMED = 'CONFIRMED'
    CANCELLED = 'CANCELLED'
    COMPLETED = 'COMPLETED'


class ReservationStatus(str, Enum):
    """Enum класс для статусов бронирований."""

    CONFIRMED = 'CONFIRMED'
    SEATED = 'SEATED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class TableSetStatus(str, Enum):
    """Enum класс для статусов объединений столов."""

    PENDING_MERGE = 'PENDING_MERGE'
    ACTIVE = 'ACTIVE'
    DISSOLVED = 'DISSOLVED'
    EXPIRED = 'EXPIRED'


class MealType(str, Enum):
    """Enum класс для приёмов пищи."""

    BREAKFAST = 'BREAKFAST'
    LUNCH = 'LUNCH'
    DINNER = 'DINNER'


class ReservationType(str, Enum):
    """Enum класс для типов бронирования."""

    TABLE_ONLY = 'TABLE_ONLY'
    BUFFET_ONLY = 'BUFFET_ONLY'
    BUFFET_AND_TABLE = 'BUFFET_AND_TABLE'


class RequestCreatorType(str, Enum):
    """Enum класс для источников заявок."""

    CUSTOMER = 'CUSTOMER'
    MERCHANT = 'MERCHANT'
    MERCHANT_WALK_IN = 'MERCHANT_WALK_IN'
    SYSTEM = 'SYSTEM'


class PaymentStatus(str, Enum):
    """Enum класс для статусов платежей по заявке."""

    PENDING = 'PENDING'
    PAID = 'PAID'
    FAILED = 'FAILED'


class CancellationWindowType(str, Enum):
    """Enum класс для окон возврата средств."""

    FREE = 'FREE'
    PARTIAL = 'PARTIAL'
    NO_REFUND = 'NO_REFUND'


class CancellationStatus(str, Enum):
    """Enum класс для статусов заявок на отмену."""

    PENDING_REVIEW = 'PENDING_REVIEW'
    APPROVED_PENDING_REFUND = 'APPROVED_PENDING_REFUND'
    APPROVED_NO_REFUND = 'APPROVED_NO_REFUND'
    REJECTED = 'REJECTED'
    REFUNDED = 'REFUNDED'


class CancellationReasonCategory(str, Enum):
    """Enum класс для категорий причин отмены."""

    CHANGE_OF_PLANS = 'CHANGE_OF_PLANS'
    EMERGENCY = 'EMERGENCY'
    RESTAURANT_REQUEST = 'RESTAURANT_REQUEST'
    OTHER = 'OTHER'


class RefundStatus(str, Enum):
    """Enum класс для статусов возвратов."""

    PENDING = 'PENDING'
    PROCESSING = 'PROCESSING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'


class RefundReason(str, Enum):
    """Enum класс для причин возврата."""

    RESERVATION_CANCELLATION = 'RESERVATION_CANCELLATION'


class ModificationType(str, Enum):
    """Enum класс для типов изменений бронирования."""

    TABLE_REASSIGNMENT = 'TABLE_REASSIGNMENT'
    DETAILS_UPDATE = 'DETAILS_UPDATE'


class CleanupType(str, Enum):
    """Enum класс для типов фоновой очистки."""

    EXPIRED_HOLDS = 'EXPIRED_HOLDS'
    STALE_SLOTS = 'STALE_SLOTS'
    STALE_REQUESTS = 'STALE_REQUESTS'


class ErrorCode(str, Enum):
    """Машиночитаемые коды ошибок операций бронирования."""

    VALIDATION_ERROR = 'VALIDATION_ERROR'
    TABLE_NOT_FOUND = 'TABLE_NOT_FOUND'
    SLOT_NOT_FOUND = 'SLOT_NOT_FOUND'
    REQUEST_NOT_FOUND = 'REQUEST_NOT_FOUND'
    RESERVATION_NOT_FOUND = 'RESERVATION_NOT_FOUND'
    TABLE_SET_NOT_FOUND = 'TABLE_SET_NOT_FOUND'
    MEAL_SERVICE_NOT_FOUND = 'MEAL_SERVICE_NOT_FOUND'
    NO_AVAILABLE_SLOTS = 'NO_AVAILABLE_SLOTS'
    HOLD_NOT_FOUND = 'HOLD_NOT_FOUND'
    HOLD_WRONG_STATUS = 'HOLD_WRONG_STATUS'
    HOLD_EXPIRED = 'HOLD_EXPIRED'
    HOLD_MISSING_EXPIRY = 'HOLD_MISSING_EXPIRY'
    HOLD_MISMATCH = 'HOLD_MISMATCH'
    SLOT_CONFLICT = 'SLOT_CONFLICT'
    TABLE_ALREADY_RESERVED = 'TABLE_ALREADY_RESERVED'
    DWELL_TIME_CONFLICT = 'DWELL_TIME_CONFLICT'
    INVALID_REQUEST_STATUS = 'INVALID_REQUEST_STATUS'
    INVALID_TRANSITION = 'INVALID_TRANSITION'
    RESERVATION_NUMBER_CONFLICT = 'RESERVATION_NUMBER_CONFLICT'
    TABLE_SET_EXISTS = 'TABLE_SET_EXISTS'
    TABLE_SET_WRONG_STATUS = 'TABLE_SET_WRONG_STATUS'
    TABLE_UNAVAILABLE = 'TABLE_UNAVAILABLE'
    INSUFFICIENT_CAPACITY = 'INSUFFICIENT_CAPACITY'
    UNAUTHORIZED_CANCELLATION = 'UNAUTHORIZED_CANCELLATION'
    ALREADY_CANCELLED = 'ALREADY_CANCELLED'
    INVALID_STATUS = 'INVALID_STATUS'
    PENDING_CANCELLATION_EXISTS = 'PENDING_CANCELLATION_EXISTS'
    INVALID_RESERVATION_TIME = 'INVALID_RESERVATION_TIME'
    RESERVATION_IN_PAST = 'RESERVATION_IN_PAST'
    NO_REFUND_POLICY = 'NO_REFUND_POLICY'
    INTERNAL_ERROR = 'INTERNAL_ERROR'
