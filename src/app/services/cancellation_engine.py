from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.constants import (
    CANCELLATION_NUMBER_PREFIX,
    FULL_REFUND_PERCENTAGE,
    HUNDRED,
)
from app.core.exceptions import ReservationError
from app.core.uow import lock_transaction
from app.models import CancellationRequest, Reservation
from app.repositories.cancellation import (
    cancellation_repository,
    refund_policy_repository,
    refund_transaction_repository,
)
from app.repositories.request import hold_repository
from app.repositories.reservation import reservation_repository
from app.repositories.slot import slot_repository
from app.repositories.table import table_repository
from app.repositories.table_set import table_set_repository
from app.schemas.cancellation import (
    CancellationResult,
    CancelReservationRequest,
    RefundCalculation,
    SlotRelease,
)
from app.services.table_set_merger import TableSetMerger
from app.utils.enums import (
    CancellationStatus,
    CancellationWindowType,
    ErrorCode,
    RefundReason,
    RefundStatus,
    ReservationStatus,
    TableSetStatus,
)
from app.utils.operation import operation_result
from app.utils.timeutils import combine, minutes_between, utcnow

CANCELLATION_ID_PREFIX_LENGTH = 8


def to_naive_utc(moment: datetime) -> datetime:
    """Приводит отметку времени к UTC без tzinfo."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


class CancellationEngine:
    """Отмена бронирования столов с расчётом возврата."""

    @staticmethod
    async def validate_cancellation(
        session: AsyncSession,
        reservation_id: UUID,
        customer_id: UUID,
        reference_time: datetime,
    ) -> Reservation:
        """Проверяет, можно ли отменить бронирование.

        Проверки идут в фиксированном порядке, первая неудачная
        определяет код ошибки.

        Args:
            session: Сессия открытой транзакции
            reservation_id: UUID бронирования
            customer_id: UUID клиента, запросившего отмену
            reference_time: Момент отмены (UTC без tzinfo)

        Returns:
            Reservation: Бронирование, допустимое к отмене

        Raises:
            ReservationError: RESERVATION_NOT_FOUND,
                UNAUTHORIZED_CANCELLATION, ALREADY_CANCELLED,
                INVALID_STATUS, PENDING_CANCELLATION_EXISTS,
                INVALID_RESERVATION_TIME или RESERVATION_IN_PAST

        """
        reservation = await reservation_repository.get_by_id(
            session,
            reservation_id,
        )
        if reservation is None:
            raise ReservationError(
                ErrorCode.RESERVATION_NOT_FOUND,
                'Бронирование не найдено',
                {'reservation_id': str(reservation_id)},
            )
        if reservation.customer_id != customer_id:
            raise ReservationError(
                ErrorCode.UNAUTHORIZED_CANCELLATION,
                'Отменить бронирование может только его владелец',
            )
        if reservation.status == ReservationStatus.CANCELLED:
            raise ReservationError(
                ErrorCode.ALREADY_CANCELLED,
                'Бронирование уже отменено',
                {'reservation_number': reservation.reservation_number},
            )
        if reservation.status != ReservationStatus.CONFIRMED:
            raise ReservationError(
                ErrorCode.INVALID_STATUS,
                'Отменить можно только подтверждённое бронирование, '
                f'статус: {reservation.status.value}',
                {'status': reservation.status.value},
            )
        pending = await cancellation_repository.get_pending(
            session,
            reservation.id,
        )
        if pending is not None:
            raise ReservationError(
                ErrorCode.PENDING_CANCELLATION_EXISTS,
                'По бронированию уже есть незавершённая заявка на отмену',
                {'cancellation_id': str(pending.id)},
            )
        if reservation.reservation_time is None:
            raise ReservationError(
                ErrorCode.INVALID_RESERVATION_TIME,
                'У бронирования не указано время',
            )
        starts_at = combine(
            reservation.reservation_date,
            reservation.reservation_time,
        )
        if starts_at <= reference_time:
            raise ReservationError(
                ErrorCode.RESERVATION_IN_PAST,
                'Нельзя отменить бронирование после его начала',
                {'reservation_time': starts_at.isoformat()},
            )
        return reservation

    @staticmethod
    async def calculate_refund(
        session: AsyncSession,
        restaurant_id: UUID,
        total_amount: Decimal,
        starts_at: datetime,
        reference_time: datetime,
    ) -> RefundCalculation:
        """Считает возврат по действующей политике ресторана.

        Окно выбирается по числу целых минут до начала бронирования:
        не меньше full_refund_before_minutes даёт FREE, не меньше
        partial_refund_before_minutes даёт PARTIAL с процентом
        политики, иначе NO_REFUND. Частичный возврат округляется до
        целой денежной единицы.
        """
        policy = await refund_policy_repository.get_active(
            session,
            restaurant_id,
        )
        if policy is None:
            raise ReservationError(
                ErrorCode.NO_REFUND_POLICY,
                'У ресторана нет действующей политики возврата',
                {'restaurant_id': str(restaurant_id)},
            )
        minutes_until = minutes_between(reference_time, starts_at)

        window_type = CancellationWindowType.NO_REFUND
        percentage = 0
        amount = Decimal('0')
        refundable = total_amount > 0
        if refundable and (
            minutes_until >= policy.full_refund_before_minutes
        ):
            window_type = CancellationWindowType.FREE
            percentage = FULL_REFUND_PERCENTAGE
            amount = Decimal(total_amount)
        elif (
            refundable
            and policy.partial_refund_before_minutes
            and policy.partial_refund_percentage
            and minutes_until >= policy.partial_refund_before_minutes
        ):
            window_type = CancellationWindowType.PARTIAL
            percentage = policy.partial_refund_percentage
            amount = (total_amount * percentage / HUNDRED).quantize(
                Decimal('1'),
                rounding=ROUND_HALF_UP,
            )

        logger.debug(
            f'Возврат: {window_type.value} {percentage}% = {amount} '
            f'({minutes_until} мин до начала)',
        )
        return RefundCalculation(
            window_type=window_type,
            refund_percentage=percentage,
            refund_amount=amount,
            minutes_until_reservation=minutes_until,
            policy_id=policy.id,
        )

    @staticmethod
    async def release_slots(
        session: AsyncSession,
        reservation: Reservation,
        released_by: str,
    ) -> SlotRelease:
        """Освобождает слоты бронирования: объединения или одиночный.

        Освобождаются только слоты, принадлежащие бронированию и
        находящиеся в ожидаемом статусе. Если освобождено меньше, чем
        должно, это конфликт.
        """
        now = utcnow()
        table_set = await table_set_repository.get_live_for_reservation(
            session,
            reservation.id,
        )
        if (
            table_set is not None
            and table_set.status == TableSetStatus.PENDING_MERGE
            and table_set.expires_at is not None
            and table_set.expires_at < now
        ):
            await TableSetMerger.expire(session, table_set, now)
            table_set = None

        if table_set is not None:
            slot_ids = table_set.slot_uuids
            released = await slot_repository.release_owned(
                session,
                slot_ids,
                reservation.id,
            )
            if released != len(slot_ids):
                raise ReservationError(
                    ErrorCode.SLOT_CONFLICT,
                    f'Освобождено {released} из {len(slot_ids)} слотов '
                    'объединения',
                    {'table_set_id': str(table_set.id)},
                )
            tables = await table_repository.get_many(
                session,
                table_set.table_uuids,
            )
            table_set.status = TableSetStatus.DISSOLVED
            table_set.dissolved_at = now
            table_set.dissolved_by = released_by
            await hold_repository.delete_for_slots(session, slot_ids)
            await session.flush()
            return SlotRelease(
                released_slot_ids=slot_ids,
                table_names=[table.table_name for table in tables],
                was_merged=True,
                table_count=len(slot_ids),
                table_set_id=table_set.id,
            )

        assignment = reservation.table_assignment
        if assignment is None or assignment.slot_id is None:
            return SlotRelease()
        released = await slot_repository.release_reserved(
            session,
            [assignment.slot_id],
            reservation.id,
        )
        if not released:
            raise ReservationError(
                ErrorCode.SLOT_CONFLICT,
                'Слот бронирования уже освобождён или занят другим '
                'бронированием',
                {'slot_id': str(assignment.slot_id)},
            )
        table = assignment.assigned_table
        return SlotRelease(
            released_slot_ids=[assignment.slot_id],
            table_names=[table.table_name] if table else [],
            table_count=1,
        )

    @staticmethod
    async def create_records(
        session: AsyncSession,
        reservation: Reservation,
        payload: CancelReservationRequest,
        refund: RefundCalculation,
        release: SlotRelease,
        processed_at: datetime,
    ) -> tuple[CancellationRequest, str]:
        """Пишет заявку на отмену, возврат и отменяет бронирование."""
        has_refund = refund.refund_amount > 0
        cancellation = await cancellation_repository.create(
            session,
            reservation_id=reservation.id,
            restaurant_id=reservation.restaurant_id,
            requested_by=payload.customer_id,
            status=(
                CancellationStatus.APPROVED_PENDING_REFUND
                if has_refund
                else CancellationStatus.APPROVED_NO_REFUND
            ),
            reason=payload.reason,
            reason_category=payload.reason_category,
            additional_notes=payload.additional_notes,
            processed_by=payload.processed_by,
            processed_at=processed_at,
            window_type=refund.window_type,
            refund_amount=refund.refund_amount,
            refund_percentage=refund.refund_percentage,
            table_set_id=release.table_set_id,
            released_slot_ids=[
                str(slot_id) for slot_id in release.released_slot_ids
            ],
            slot_release_completed_at=processed_at,
        )
        if has_refund:
            await refund_transaction_repository.create(
                session,
                cancellation_id=cancellation.id,
                reservation_id=reservation.id,
                amount=refund.refund_amount,
                reason=RefundReason.RESERVATION_CANCELLATION,
                status=RefundStatus.PENDING,
                processed_by=payload.processed_by,
            )
        reservation.status = ReservationStatus.CANCELLED
        reservation.last_modified_at = processed_at
        reservation.last_modified_by = payload.processed_by
        await session.flush()
        number = (
            f'{CANCELLATION_NUMBER_PREFIX}-'
            f'{cancellation.id.hex[:CANCELLATION_ID_PREFIX_LENGTH].upper()}-'
            f'{reservation.reservation_number}'
        )
        return cancellation, number

    @staticmethod
    @operation_result('process_table_cancellation')
    async def process_table_cancellation_transactional(
        session_factory: async_sessionmaker[AsyncSession],
        reservation_id: UUID,
        payload: CancelReservationRequest,
        reference_time: Optional[datetime] = None,
    ) -> CancellationResult:
        """Отменяет бронирование целиком в одной транзакции.

        Проверка, расчёт возврата, освобождение слотов и запись
        результата выполняются в транзакции с короткими таймаутами
        блокировок. Ошибка любого шага откатывает все изменения.
        """
        moment = reference_time or payload.reference_time
        moment = to_naive_utc(moment) if moment else utcnow()
        async with lock_transaction(session_factory) as session:
            reservation = await CancellationEngine.validate_cancellation(
                session,
                reservation_id,
                payload.customer_id,
                moment,
            )
            refund = await CancellationEngine.calculate_refund(
                session,
                reservation.restaurant_id,
                reservation.total_amount,
                combine(
                    reservation.reservation_date,
                    reservation.reservation_time,
                ),
                moment,
            )
            release = await CancellationEngine.release_slots(
                session,
                reservation,
                payload.processed_by,
            )
            cancellation, number = await CancellationEngine.create_records(
                session,
                reservation,
                payload,
                refund,
                release,
                utcnow(),
            )
            logger.info(
                f'Бронирование {reservation.reservation_number} отменено: '
                f'{number}, возврат {refund.refund_amount} '
                f'({refund.window_type.value})',
            )
            return CancellationResult(
                cancellation_id=cancellation.id,
                cancellation_number=number,
                refund_amount=refund.refund_amount,
                refund_percentage=refund.refund_percentage,
                window_type=refund.window_type,
                slots_released=len(release.released_slot_ids),
                tables_released=release.table_names,
                was_merged=release.was_merged,
            )
