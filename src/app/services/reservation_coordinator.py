import secrets
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.constants import (
    HUNDRED,
    RESERVATION_NUMBER_DIGITS,
    RESERVATION_NUMBER_PREFIX,
    SYSTEM_ACTOR,
)
from app.core.exceptions import ReservationError
from app.core.uow import transaction
from app.models import (
    Reservation,
    ReservationRequest,
    RestaurantTable,
    TableSlot,
)
from app.repositories.configuration import meal_service_repository
from app.repositories.request import (
    hold_repository,
    payment_repository,
    reservation_request_repository,
    table_details_repository,
)
from app.repositories.reservation import (
    assignment_repository,
    financial_data_repository,
    modification_history_repository,
    reservation_repository,
)
from app.repositories.slot import slot_repository
from app.repositories.table import table_repository
from app.repositories.table_set import table_set_repository
from app.schemas.maintenance import PaidRequestsReport, PaymentVerification
from app.schemas.reservation import (
    ReassignTableRequest,
    ReservationDetailsUpdate,
    ReservationDetailsUpdated,
    TableReassigned,
)
from app.schemas.reservation_request import (
    ConfirmedReservation,
    ConfirmReservationRequest,
    RequestStatusChanged,
    RequestStatusUpdate,
    ReservationRequestCreate,
    ReservationRequestCreated,
)
from app.services.configuration_service import get_reservation_settings
from app.services.hold_manager import HoldManager
from app.services.overlap_detector import OCCUPYING_STATUSES, OverlapDetector
from app.services.payment_gateway import PaymentGatewayClient
from app.services.table_set_merger import TableSetMerger
from app.utils.enums import (
    ErrorCode,
    ModificationType,
    PaymentStatus,
    RequestCreatorType,
    RequestStatus,
    ReservationStatus,
    SlotStatus,
)
from app.utils.operation import operation_result
from app.utils.timeutils import format_hhmm, shift_time, utcnow

CENT = Decimal('0.01')
MERCHANT_CREATORS = (
    RequestCreatorType.MERCHANT,
    RequestCreatorType.MERCHANT_WALK_IN,
)
# Переходы заявки, выполняемые вне подтверждения.
REQUEST_TRANSITIONS = {
    RequestStatus.PENDING: {
        RequestStatus.PENDING_CUSTOMER_PAYMENT,
        RequestStatus.PAYMENT_FAILED,
        RequestStatus.PAYMENT_LINK_EXPIRED,
        RequestStatus.CANCELLED,
    },
    RequestStatus.PENDING_CUSTOMER_PAYMENT: {
        RequestStatus.PAYMENT_FAILED,
        RequestStatus.PAYMENT_LINK_EXPIRED,
        RequestStatus.CANCELLED,
    },
}
RELEASING_STATUSES = (
    RequestStatus.PAYMENT_FAILED,
    RequestStatus.PAYMENT_LINK_EXPIRED,
    RequestStatus.CANCELLED,
)
DWELL_CONFLICT_MESSAGE = (
    'Стол занят предыдущим бронированием до {until} '
    '(время пересадки: {minutes} мин)'
)


def generate_reservation_number(reservation_date: date) -> str:
    """Номер бронирования вида RT-MMDD-XXXX по дате бронирования.

    Уникальность не проверяется заранее: коллизию отсекает
    ограничение уникальности в БД.
    """
    suffix = str(secrets.randbelow(10 ** RESERVATION_NUMBER_DIGITS))
    return (
        f'{RESERVATION_NUMBER_PREFIX}-{reservation_date:%m%d}-'
        f'{suffix.zfill(RESERVATION_NUMBER_DIGITS)}'
    )


def money(value: Decimal) -> Decimal:
    """Округляет сумму до копеек."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _same_minute(first: time, second: time) -> bool:
    return (first.hour, first.minute) == (second.hour, second.minute)


class ReservationCoordinator:
    """Жизненный цикл заявки: удержание -> заявка -> бронирование."""

    @staticmethod
    @operation_result('create_table_reservation_request')
    async def create_table_reservation_request(
        session_factory: async_sessionmaker[AsyncSession],
        payload: ReservationRequestCreate,
    ) -> ReservationRequestCreated:
        """Создаёт заявку PENDING по действующему удержанию слота.

        Дата и время удержанного слота сверяются с запрошенными по
        отдельности: календарная дата и время суток с точностью до
        минуты.
        """
        async with transaction(session_factory) as session:
            slot = await HoldManager.validate_held_slot(
                session,
                payload.held_slot_id,
            )
            if slot.restaurant_id != payload.restaurant_id:
                raise ReservationError(
                    ErrorCode.HOLD_MISMATCH,
                    'Удержанный слот относится к другому ресторану',
                )
            if slot.slot_date != payload.requested_date:
                raise ReservationError(
                    ErrorCode.HOLD_MISMATCH,
                    'Дата удержанного слота не совпадает с запрошенной: '
                    f'{slot.slot_date} / {payload.requested_date}',
                )
            if not _same_minute(slot.start_time, payload.requested_time):
                raise ReservationError(
                    ErrorCode.HOLD_MISMATCH,
                    'Время удержанного слота не совпадает с запрошенным: '
                    f'{slot.start_time} / {payload.requested_time}',
                )
            linked = await hold_repository.get(session, slot_id=slot.id)
            if linked is not None:
                raise ReservationError(
                    ErrorCode.HOLD_MISMATCH,
                    'Удержание уже использовано другой заявкой',
                    {'request_id': str(linked.request_id)},
                )

            config = await get_reservation_settings(
                session,
                payload.restaurant_id,
            )
            requires_advance = payload.requires_advance_payment
            if requires_advance is None:
                requires_advance = config.requires_advance_payment
            request = await reservation_request_repository.create(
                session,
                **payload.model_dump(
                    exclude={
                        'held_slot_id',
                        'is_table_flexible',
                        'is_section_flexible',
                        'is_time_flexible',
                        'requires_advance_payment',
                    },
                ),
                requires_advance_payment=requires_advance,
                status=RequestStatus.PENDING,
            )
            await table_details_repository.create(
                session,
                request_id=request.id,
                preferred_section_id=slot.table.section_id,
                preferred_table_id=slot.table_id,
                requested_start_time=slot.start_time,
                requested_end_time=slot.end_time,
                is_table_flexible=payload.is_table_flexible,
                is_section_flexible=payload.is_section_flexible,
                is_time_flexible=payload.is_time_flexible,
            )
            hold = await hold_repository.create(
                session,
                request_id=request.id,
                slot_id=slot.id,
                hold_expires_at=slot.hold_expires_at,
            )
            await reservation_request_repository.log_status(
                session,
                request.id,
                None,
                RequestStatus.PENDING,
                'Заявка создана по удержанию слота',
                payload.created_by.value,
            )
            logger.info(
                f'Создана заявка {request.id} на {payload.requested_date} '
                f'{payload.requested_time}, слот {slot.id}',
            )
            return ReservationRequestCreated(
                request_id=request.id,
                status=request.status,
                hold_id=hold.id,
                hold_expires_at=hold.hold_expires_at,
            )

    @staticmethod
    async def _reclaim_request_slot(
        session: AsyncSession,
        request: ReservationRequest,
        now: datetime,
    ) -> TableSlot:
        """Слот заявки, удержанный заново при необходимости.

        Запись удержания могла быть удалена очисткой, тогда слот
        ищется по столу и окну из пожеланий заявки. Повторное
        удержание идёт тем же условным UPDATE, что и обычное, поэтому
        слот, занятый другой заявкой или бронированием, не перехватывается.
        """
        hold = await hold_repository.get_for_request(session, request.id)
        slot = None
        if hold is not None:
            slot = await slot_repository.get_by_id(session, hold.slot_id)
        elif request.table_details is not None:
            details = request.table_details
            slot = await slot_repository.find_slot_by_window(
                session,
                details.preferred_table_id,
                request.requested_date,
                details.requested_start_time,
                details.requested_end_time,
            )
        if slot is None:
            raise ReservationError(
                ErrorCode.SLOT_NOT_FOUND,
                'Слот заявки не найден',
                {'request_id': str(request.id)},
            )

        own_hold_active = (
            hold is not None
            and hold.hold_expires_at >= now
            and slot.status == SlotStatus.HELD
            and slot.hold_expires_at is not None
            and slot.hold_expires_at >= now
        )
        if own_hold_active:
            return slot

        config = await get_reservation_settings(
            session,
            request.restaurant_id,
        )
        expires_at = now + timedelta(minutes=config.hold_minutes)
        claimed = await slot_repository.hold(
            session,
            slot.id,
            expires_at,
            now,
        )
        if not claimed:
            raise ReservationError(
                ErrorCode.SLOT_CONFLICT,
                'Слот заявки уже занят другой стороной',
                {'slot_id': str(slot.id), 'request_id': str(request.id)},
            )
        logger.info(
            f'Слот {slot.id} повторно удержан для оплаченной заявки '
            f'{request.id}',
        )
        return slot

    @staticmethod
    async def confirm_request(
        session: AsyncSession,
        request_id: UUID,
        advance_payment_amount: Decimal,
        confirmed_by: str,
        seat_immediately: bool = False,
        reclaim_slot: bool = False,
    ) -> ConfirmedReservation:
        """Подтверждает заявку внутри открытой транзакции.

        Шаги: проверка удержания, номер бронирования, бронирование и
        его финансовая разбивка, назначение стола, условный перевод
        слота HELD -> RESERVED, удаление записи удержания, смена статуса
        заявки с записью в журнал. Любая ошибка откатывает все шаги.

        С reclaim_slot истёкшее или уже снятое удержание не ошибка:
        слот заявки занимается повторно, если он никем не занят.
        """
        now = utcnow()
        request = await reservation_request_repository.get_by_id(
            session,
            request_id,
        )
        if request is None:
            raise ReservationError(
                ErrorCode.REQUEST_NOT_FOUND,
                'Заявка на бронирование не найдена',
                {'request_id': str(request_id)},
            )
        confirmable = request.status == RequestStatus.PENDING or (
            request.status == RequestStatus.PENDING_CUSTOMER_PAYMENT
            and request.created_by in MERCHANT_CREATORS
        )
        if not confirmable:
            raise ReservationError(
                ErrorCode.INVALID_REQUEST_STATUS,
                'Нельзя подтвердить заявку в статусе '
                f'{request.status.value}',
                {'status': request.status.value},
            )

        if reclaim_slot:
            slot = await ReservationCoordinator._reclaim_request_slot(
                session,
                request,
                now,
            )
        else:
            hold = await hold_repository.get_for_request(session, request.id)
            if hold is None:
                raise ReservationError(
                    ErrorCode.HOLD_NOT_FOUND,
                    'Для заявки нет удержанного слота',
                    {'request_id': str(request.id)},
                )
            slot = await HoldManager.validate_held_slot(
                session,
                hold.slot_id,
                now,
            )
            if hold.hold_expires_at < now:
                raise ReservationError(
                    ErrorCode.HOLD_EXPIRED,
                    'Удержание заявки истекло',
                    {'slot_id': str(slot.id)},
                )

        total = money(request.estimated_total_amount)
        service_charge = money(request.estimated_service_charge)
        tax_amount = money(request.estimated_tax_amount)
        discount = money(request.estimated_discount_amount)
        advance = money(advance_payment_amount)
        balance_due = total - advance
        status = (
            ReservationStatus.SEATED
            if seat_immediately
            else ReservationStatus.CONFIRMED
        )

        reservation = await reservation_repository.create(
            session,
            reservation_number=generate_reservation_number(
                request.requested_date,
            ),
            restaurant_id=request.restaurant_id,
            customer_id=request.customer_id,
            request_id=request.id,
            meal_service_id=request.meal_service_id,
            reservation_date=request.requested_date,
            reservation_time=request.requested_time,
            adult_count=request.adult_count,
            child_count=request.child_count,
            meal_type=request.meal_type,
            reservation_type=request.reservation_type,
            total_amount=total,
            service_charge=service_charge,
            tax_amount=tax_amount,
            discount_amount=discount,
            advance_payment_amount=advance,
            status=status,
            special_requests=request.special_requests,
            created_by=request.created_by,
        )
        net_amount = total - service_charge - tax_amount
        await financial_data_repository.create(
            session,
            reservation_id=reservation.id,
            net_amount=net_amount,
            service_charge=service_charge,
            tax_amount=tax_amount,
            discount_amount=discount,
            total_before_discount=net_amount + discount,
            total_after_discount=total,
            advance_payment=advance,
            balance_due=balance_due,
            is_paid=balance_due <= 0,
        )
        await assignment_repository.create(
            session,
            reservation_id=reservation.id,
            assigned_table_id=slot.table_id,
            assigned_section_id=slot.table.section_id,
            slot_id=slot.id,
            table_start_time=slot.start_time,
            table_end_time=slot.end_time,
        )
        reserved = await slot_repository.reserve_held(
            session,
            slot.id,
            reservation.id,
            now,
        )
        if not reserved:
            raise ReservationError(
                ErrorCode.SLOT_CONFLICT,
                'Слот больше не удерживается за заявкой',
                {'slot_id': str(slot.id)},
            )
        await hold_repository.delete_for_slots(session, [slot.id])
        await reservation_request_repository.set_status(
            session,
            request,
            RequestStatus.CONFIRMED,
            'Бронирование подтверждено с назначением стола',
            confirmed_by,
        )
        logger.info(
            f'Заявка {request.id} подтверждена: бронирование '
            f'{reservation.reservation_number}, слот {slot.id}',
        )
        return ConfirmedReservation(
            reservation_id=reservation.id,
            reservation_number=reservation.reservation_number,
            status=status,
            table_id=slot.table_id,
            slot_id=slot.id,
            balance_due=balance_due,
            is_paid=balance_due <= 0,
        )

    @staticmethod
    @operation_result('confirm_table_reservation')
    async def confirm_table_reservation(
        session_factory: async_sessionmaker[AsyncSession],
        request_id: UUID,
        payload: ConfirmReservationRequest,
    ) -> ConfirmedReservation:
        """Атомарно превращает удержание заявки в бронирование."""
        async with transaction(session_factory) as session:
            return await ReservationCoordinator.confirm_request(
                session,
                request_id,
                payload.advance_payment_amount,
                payload.confirmed_by,
                payload.seat_immediately,
            )

    @staticmethod
    @operation_result('update_request_status')
    async def update_request_status(
        session_factory: async_sessionmaker[AsyncSession],
        request_id: UUID,
        payload: RequestStatusUpdate,
    ) -> RequestStatusChanged:
        """Переводит заявку по состояниям, не связанным с подтверждением.

        При переходе в PAYMENT_FAILED, PAYMENT_LINK_EXPIRED или
        CANCELLED удержанный за заявкой слот освобождается.
        """
        async with transaction(session_factory) as session:
            request = await reservation_request_repository.get_by_id(
                session,
                request_id,
            )
            if request is None:
                raise ReservationError(
                    ErrorCode.REQUEST_NOT_FOUND,
                    'Заявка на бронирование не найдена',
                    {'request_id': str(request_id)},
                )
            previous = request.status
            allowed = REQUEST_TRANSITIONS.get(previous, set())
            if payload.new_status not in allowed:
                raise ReservationError(
                    ErrorCode.INVALID_TRANSITION,
                    f'Переход {previous.value} -> '
                    f'{payload.new_status.value} недопустим',
                    {
                        'from': previous.value,
                        'to': payload.new_status.value,
                    },
                )

            released_slot_id = None
            if payload.new_status in RELEASING_STATUSES:
                hold = await hold_repository.get_for_request(
                    session,
                    request.id,
                )
                if hold is not None:
                    if await slot_repository.release_held(
                        session,
                        hold.slot_id,
                    ):
                        released_slot_id = hold.slot_id
                    await hold_repository.delete_for_requests(
                        session,
                        [request.id],
                    )
            await reservation_request_repository.set_status(
                session,
                request,
                payload.new_status,
                payload.reason,
                payload.changed_by,
            )
            logger.info(
                f'Заявка {request.id}: {previous.value} -> '
                f'{payload.new_status.value}',
            )
            return RequestStatusChanged(
                request_id=request.id,
                previous_status=previous,
                new_status=payload.new_status,
                released_slot_id=released_slot_id,
            )

    @staticmethod
    async def _get_modifiable_reservation(
        session: AsyncSession,
        reservation_id: UUID,
    ) -> Reservation:
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
        if reservation.status not in OCCUPYING_STATUSES:
            raise ReservationError(
                ErrorCode.INVALID_STATUS,
                'Изменять можно только действующее бронирование, статус: '
                f'{reservation.status.value}',
                {'status': reservation.status.value},
            )
        return reservation

    @staticmethod
    def _ensure_capacity(
        reservation: Reservation,
        capacity: int,
        table_id: UUID,
    ) -> None:
        if capacity < reservation.party_size:
            raise ReservationError(
                ErrorCode.INSUFFICIENT_CAPACITY,
                f'Стол рассчитан на {capacity} гостей, в бронировании '
                f'{reservation.party_size}',
                {
                    'table_id': str(table_id),
                    'seating_capacity': capacity,
                    'party_size': reservation.party_size,
                },
            )

    @staticmethod
    async def move_reservation(
        session: AsyncSession,
        reservation: Reservation,
        new_table_id: UUID,
        moved_by: str,
        new_slot_id: Optional[UUID] = None,
        new_start_time: Optional[time] = None,
        new_end_time: Optional[time] = None,
    ) -> tuple[RestaurantTable, TableSlot, Optional[UUID]]:
        """Переносит бронирование на другой стол или окно.

        Сначала проверяется стол назначения: вместимость, занятость
        окна другими бронированиями, удержаниями и блокировками, затем
        время пересадки. Потом расформировывается действующее объединение,
        освобождается прежний слот и резервируется новый. Если слота
        с нужным окном у стола нет, он создаётся сразу RESERVED.

        Returns:
            tuple: Стол, новый слот, id расформированного объединения

        """
        now = utcnow()
        assignment = reservation.table_assignment
        if assignment is None:
            raise ReservationError(
                ErrorCode.INVALID_STATUS,
                'Бронированию не назначен стол',
                {'reservation_id': str(reservation.id)},
            )
        table = await table_repository.get_active(session, new_table_id)
        if table is None or table.restaurant_id != reservation.restaurant_id:
            raise ReservationError(
                ErrorCode.TABLE_NOT_FOUND,
                'Стол назначения не найден',
                {'table_id': str(new_table_id)},
            )
        ReservationCoordinator._ensure_capacity(
            reservation,
            table.seating_capacity,
            table.id,
        )

        target_slot = None
        if new_slot_id is not None:
            target_slot = await slot_repository.get_by_id(session, new_slot_id)
            if target_slot is None:
                raise ReservationError(
                    ErrorCode.SLOT_NOT_FOUND,
                    'Слот назначения не найден',
                    {'slot_id': str(new_slot_id)},
                )
            if (
                target_slot.table_id != table.id
                or target_slot.slot_date != reservation.reservation_date
            ):
                raise ReservationError(
                    ErrorCode.VALIDATION_ERROR,
                    'Слот не принадлежит столу назначения на дату '
                    'бронирования',
                )
            start_time, end_time = target_slot.start_time, target_slot.end_time
        else:
            config = await get_reservation_settings(
                session,
                reservation.restaurant_id,
            )
            start_time = new_start_time or (
                assignment.table_start_time or reservation.reservation_time
            )
            end_time = new_end_time
            if end_time is None and new_start_time is None:
                end_time = assignment.table_end_time
            if end_time is None:
                end_time = shift_time(start_time, config.slot_minutes)

        own_slot_ids = []
        if assignment.slot_id is not None:
            own_slot_ids.append(assignment.slot_id)
        table_set = await table_set_repository.get_live_for_reservation(
            session,
            reservation.id,
        )
        if table_set is not None:
            own_slot_ids.extend(table_set.slot_uuids)

        conflicts = await OverlapDetector.get_conflicting_slots(
            session,
            table.id,
            reservation.reservation_date,
            start_time,
            end_time,
            now=now,
            exclude_slot_ids=own_slot_ids,
        )
        for conflict in conflicts:
            if conflict.reservation_id == reservation.id:
                continue
            if conflict.status == SlotStatus.RESERVED:
                raise ReservationError(
                    ErrorCode.TABLE_ALREADY_RESERVED,
                    'Стол уже забронирован другим бронированием на это '
                    'время',
                    {'slot_id': str(conflict.id)},
                )
            raise ReservationError(
                ErrorCode.SLOT_CONFLICT,
                f'Стол недоступен на это время: {conflict.status.value}',
                {'slot_id': str(conflict.id)},
            )

        dwell = await OverlapDetector.check_dwell_time_availability(
            session,
            reservation.restaurant_id,
            table.id,
            reservation.reservation_date,
            start_time,
            end_time,
            exclude_reservation_id=reservation.id,
        )
        if not dwell.is_available:
            until = dwell.conflicts[0].effective_end_time
            raise ReservationError(
                ErrorCode.DWELL_TIME_CONFLICT,
                DWELL_CONFLICT_MESSAGE.format(
                    until=format_hhmm(until),
                    minutes=dwell.dwell_time_minutes,
                ),
                {
                    'effective_end_time': until.isoformat(),
                    'dwell_time_minutes': dwell.dwell_time_minutes,
                },
            )

        dissolved_id = None
        if table_set is not None:
            await TableSetMerger.dissolve(
                session,
                table_set,
                moved_by,
                keep_primary=True,
            )
            dissolved_id = table_set.id
        if assignment.slot_id is not None:
            released = await slot_repository.release_reserved(
                session,
                [assignment.slot_id],
                reservation.id,
            )
            if not released:
                raise ReservationError(
                    ErrorCode.SLOT_CONFLICT,
                    'Прежний слот бронирования в неожиданном состоянии',
                    {'slot_id': str(assignment.slot_id)},
                )
            await hold_repository.delete_for_slots(
                session,
                [assignment.slot_id],
            )

        if target_slot is None:
            target_slot = await slot_repository.find_slot_by_window(
                session,
                table.id,
                reservation.reservation_date,
                start_time,
                end_time,
            )
        if target_slot is None:
            target_slot = await slot_repository.create(
                session,
                restaurant_id=reservation.restaurant_id,
                table_id=table.id,
                slot_date=reservation.reservation_date,
                start_time=start_time,
                end_time=end_time,
                status=SlotStatus.RESERVED,
                reservation_id=reservation.id,
            )
        else:
            reserved = await slot_repository.reserve_available(
                session,
                target_slot.id,
                reservation.id,
                now,
            )
            if not reserved:
                raise ReservationError(
                    ErrorCode.SLOT_CONFLICT,
                    'Слот назначения уже занят',
                    {'slot_id': str(target_slot.id)},
                )

        assignment.assigned_table_id = table.id
        assignment.assigned_section_id = table.section_id
        assignment.slot_id = target_slot.id
        assignment.table_start_time = start_time
        assignment.table_end_time = end_time
        reservation.last_modified_at = now
        reservation.last_modified_by = moved_by
        await session.flush()
        return table, target_slot, dissolved_id

    @staticmethod
    def _assignment_snapshot(reservation: Reservation) -> dict[str, Any]:
        assignment = reservation.table_assignment
        if assignment is None:
            return {}
        return {
            'table_id': str(assignment.assigned_table_id),
            'section_id': str(assignment.assigned_section_id),
            'slot_id': str(assignment.slot_id),
            'start_time': str(assignment.table_start_time),
            'end_time': str(assignment.table_end_time),
        }

    @staticmethod
    @operation_result('reassign_table_reservation')
    async def reassign_table_reservation(
        session_factory: async_sessionmaker[AsyncSession],
        reservation_id: UUID,
        payload: ReassignTableRequest,
    ) -> TableReassigned:
        """Переносит бронирование на другой стол в одной транзакции."""
        async with transaction(session_factory) as session:
            reservation = (
                await ReservationCoordinator._get_modifiable_reservation(
                    session,
                    reservation_id,
                )
            )
            if payload.new_section_id is not None:
                table = await table_repository.get_by_id(
                    session,
                    payload.new_table_id,
                )
                if table and table.section_id != payload.new_section_id:
                    raise ReservationError(
                        ErrorCode.VALIDATION_ERROR,
                        'Стол назначения не относится к указанной секции',
                    )
            previous = ReservationCoordinator._assignment_snapshot(
                reservation,
            )
            table, slot, dissolved_id = (
                await ReservationCoordinator.move_reservation(
                    session,
                    reservation,
                    payload.new_table_id,
                    payload.reassigned_by,
                    new_slot_id=payload.new_slot_id,
                    new_start_time=payload.new_start_time,
                    new_end_time=payload.new_end_time,
                )
            )
            await modification_history_repository.create(
                session,
                reservation_id=reservation.id,
                modification_type=ModificationType.TABLE_REASSIGNMENT,
                previous_values=previous,
                new_values=ReservationCoordinator._assignment_snapshot(
                    reservation,
                ),
                reason=payload.reason,
                modified_by=payload.reassigned_by,
                modified_at=utcnow(),
            )
            logger.info(
                f'Бронирование {reservation.reservation_number} перенесено '
                f'на стол {table.table_name} ({slot.start_time})',
            )
            return TableReassigned(
                reservation_id=reservation.id,
                previous_table_id=previous.get('table_id'),
                new_table_id=table.id,
                new_slot_id=slot.id,
                start_time=slot.start_time,
                end_time=slot.end_time,
                dissolved_table_set_id=dissolved_id,
            )

    @staticmethod
    async def _check_current_capacity(
        session: AsyncSession,
        reservation: Reservation,
        table_id: UUID,
    ) -> None:
        """Вместимость текущего стола или действующего объединения."""
        table_set = await table_set_repository.get_live_for_reservation(
            session,
            reservation.id,
        )
        if table_set is not None:
            capacity = table_set.combined_capacity
        else:
            table = await table_repository.get_by_id(session, table_id)
            capacity = table.seating_capacity
        ReservationCoordinator._ensure_capacity(
            reservation,
            capacity,
            table_id,
        )

    @staticmethod
    async def _pick_section_table(
        session: AsyncSession,
        reservation: Reservation,
        section_id: UUID,
        party_size: int,
    ) -> UUID:
        """Первый свободный стол секции достаточной вместимости."""
        assignment = reservation.table_assignment
        start_time = assignment.table_start_time
        end_time = assignment.table_end_time
        candidates = await table_repository.get_candidates(
            session,
            reservation.restaurant_id,
            min_capacity=party_size,
            section_id=section_id,
        )
        for table in candidates:
            if not await OverlapDetector.has_overlap(
                session,
                table.id,
                reservation.reservation_date,
                start_time,
                end_time,
            ):
                return table.id
        raise ReservationError(
            ErrorCode.TABLE_UNAVAILABLE,
            f'В выбранной секции нет свободного стола на {party_size} '
            'гостей',
            {'section_id': str(section_id)},
        )

    @staticmethod
    @operation_result('update_table_reservation_details')
    async def update_table_reservation_details(
        session_factory: async_sessionmaker[AsyncSession],
        reservation_id: UUID,
        payload: ReservationDetailsUpdate,
    ) -> ReservationDetailsUpdated:
        """Меняет состав гостей и/или стол бронирования.

        При изменении числа гостей стоимость пересчитывается по ценам
        услуги питания бронирования, финансовая разбивка и остаток к
        оплате пересобираются. Смена секции или стола идёт тем же
        путём, что и перенос бронирования.
        """
        async with transaction(session_factory) as session:
            reservation = (
                await ReservationCoordinator._get_modifiable_reservation(
                    session,
                    reservation_id,
                )
            )
            previous = {
                'adult_count': reservation.adult_count,
                'child_count': reservation.child_count,
                'total_amount': str(reservation.total_amount),
                'service_charge': str(reservation.service_charge),
                'tax_amount': str(reservation.tax_amount),
                **ReservationCoordinator._assignment_snapshot(reservation),
            }
            adults = payload.new_adult_count or reservation.adult_count
            children = (
                payload.new_child_count
                if payload.new_child_count is not None
                else reservation.child_count
            )
            party_changed = (adults, children) != (
                reservation.adult_count,
                reservation.child_count,
            )

            if party_changed:
                await ReservationCoordinator._reprice(
                    session,
                    reservation,
                    adults,
                    children,
                )

            target_table_id = payload.new_table_id
            assignment = reservation.table_assignment
            current_table_id = (
                assignment.assigned_table_id if assignment else None
            )
            if (
                target_table_id is None
                and payload.new_section_id is not None
                and assignment is not None
                and payload.new_section_id != assignment.assigned_section_id
            ):
                target_table_id = (
                    await ReservationCoordinator._pick_section_table(
                        session,
                        reservation,
                        payload.new_section_id,
                        adults + children,
                    )
                )
            if target_table_id not in (None, current_table_id):
                await ReservationCoordinator.move_reservation(
                    session,
                    reservation,
                    target_table_id,
                    payload.updated_by,
                )
            elif current_table_id is not None and (
                adults + children
                > previous['adult_count'] + previous['child_count']
            ):
                await ReservationCoordinator._check_current_capacity(
                    session,
                    reservation,
                    current_table_id,
                )

            reservation.last_modified_at = utcnow()
            reservation.last_modified_by = payload.updated_by
            await session.flush()
            current = {
                'adult_count': reservation.adult_count,
                'child_count': reservation.child_count,
                'total_amount': str(reservation.total_amount),
                'service_charge': str(reservation.service_charge),
                'tax_amount': str(reservation.tax_amount),
                **ReservationCoordinator._assignment_snapshot(reservation),
            }
            await modification_history_repository.create(
                session,
                reservation_id=reservation.id,
                modification_type=ModificationType.DETAILS_UPDATE,
                previous_values=previous,
                new_values=current,
                reason=payload.update_reason,
                modified_by=payload.updated_by,
                modified_at=utcnow(),
            )
            financial = reservation.financial_data
            logger.info(
                f'Бронирование {reservation.reservation_number} изменено: '
                f'{adults}+{children} гостей, сумма '
                f'{reservation.total_amount}',
            )
            return ReservationDetailsUpdated(
                reservation_id=reservation.id,
                adult_count=reservation.adult_count,
                child_count=reservation.child_count,
                total_amount=reservation.total_amount,
                service_charge=reservation.service_charge,
                tax_amount=reservation.tax_amount,
                balance_due=(
                    financial.balance_due
                    if financial is not None
                    else reservation.total_amount
                    - reservation.advance_payment_amount
                ),
                table_id=(
                    assignment.assigned_table_id if assignment else None
                ),
                slot_id=assignment.slot_id if assignment else None,
            )

    @staticmethod
    async def _reprice(
        session: AsyncSession,
        reservation: Reservation,
        adults: int,
        children: int,
    ) -> None:
        """Пересчитывает стоимость по ценам услуги питания."""
        meal_service = None
        if reservation.meal_service_id is not None:
            meal_service = await meal_service_repository.get_by_id(
                session,
                reservation.meal_service_id,
            )
        if meal_service is None:
            raise ReservationError(
                ErrorCode.MEAL_SERVICE_NOT_FOUND,
                'Для бронирования не найдена услуга питания',
                {'reservation_id': str(reservation.id)},
            )
        base = (
            meal_service.adult_net_price * adults
            + meal_service.child_net_price * children
        )
        service_charge = money(
            base * meal_service.service_charge_percentage / HUNDRED,
        )
        tax_amount = money(base * meal_service.tax_percentage / HUNDRED)
        total = money(base) + service_charge + tax_amount

        reservation.adult_count = adults
        reservation.child_count = children
        reservation.total_amount = total
        reservation.service_charge = service_charge
        reservation.tax_amount = tax_amount

        balance_due = total - reservation.advance_payment_amount
        financial = reservation.financial_data
        if financial is None:
            return
        financial.net_amount = money(base)
        financial.service_charge = service_charge
        financial.tax_amount = tax_amount
        financial.discount_amount = reservation.discount_amount
        financial.total_before_discount = (
            money(base) + reservation.discount_amount
        )
        financial.total_after_discount = total
        financial.advance_payment = reservation.advance_payment_amount
        financial.balance_due = balance_due
        financial.is_paid = balance_due <= 0

    @staticmethod
    async def _verify_request(
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGatewayClient,
        request: ReservationRequest,
    ) -> list[PaymentVerification]:
        results = []
        for payment in request.payments:
            if not payment.payment_status_url:
                results.append(
                    PaymentVerification(
                        request_id=request.id,
                        transaction_reference=payment.transaction_reference,
                        verified=False,
                        error='Не указан URL статуса платежа',
                    ),
                )
                continue
            status = await gateway.get_transaction_status(
                payment.transaction_reference,
                payment.payment_status_url,
            )
            verification = PaymentVerification(
                request_id=request.id,
                transaction_reference=payment.transaction_reference,
                verified=PaymentGatewayClient.is_successful(status),
                status_code=status.status_code,
                error=status.error,
            )
            if verification.verified:
                confirmed = await ReservationCoordinator._confirm_paid(
                    session_factory,
                    request.id,
                    payment.id,
                )
                if confirmed.success:
                    verification.reservation_number = (
                        confirmed.data.reservation_number
                    )
                else:
                    verification.error = confirmed.detail
                results.append(verification)
                break
            results.append(verification)
        return results

    @staticmethod
    @operation_result('confirm_paid_request')
    async def _confirm_paid(
        session_factory: async_sessionmaker[AsyncSession],
        request_id: UUID,
        payment_id: UUID,
    ) -> ConfirmedReservation:
        async with transaction(session_factory) as session:
            payment = await payment_repository.get_by_id(session, payment_id)
            payment.payment_status = PaymentStatus.PAID
            payment.paid_at = utcnow()
            return await ReservationCoordinator.confirm_request(
                session,
                request_id,
                payment.amount,
                SYSTEM_ACTOR,
                reclaim_slot=True,
            )

    @staticmethod
    @operation_result('verify_and_confirm_paid_requests')
    async def verify_and_confirm_paid_requests(
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGatewayClient,
        minutes_old: int = settings.STALE_REQUEST_MINUTES,
    ) -> PaidRequestsReport:
        """Подтверждает ожидающие заявки, оплата которых прошла в шлюзе.

        Каждая заявка подтверждается в отдельной транзакции, так что
        сбой по одной заявке не влияет на остальные.
        """
        created_before = utcnow() - timedelta(minutes=minutes_old)
        async with session_factory() as session:
            requests = (
                await reservation_request_repository.get_pending_with_payments(
                    session,
                    created_before,
                )
            )
        results = []
        for request in requests:
            results.extend(
                await ReservationCoordinator._verify_request(
                    session_factory,
                    gateway,
                    request,
                ),
            )
        confirmed = sum(1 for result in results if result.reservation_number)
        logger.info(
            f'Проверено оплаченных заявок: {len(requests)}, '
            f'подтверждено: {confirmed}',
        )
        return PaidRequestsReport(
            checked=len(requests),
            confirmed=confirmed,
            results=results,
        )
