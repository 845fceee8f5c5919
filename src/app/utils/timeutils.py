from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from app.core.constants import TIME_FORMAT

ANCHOR_DATE = date(2000, 1, 1)


def utcnow() -> datetime:
    """Текущее время UTC без tzinfo, в том виде, в котором оно хранится."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def combine(day: date, moment: time) -> datetime:
    """Собирает дату и время суток в одну отметку времени."""
    return datetime.combine(day, moment.replace(tzinfo=None))


def shift_time(moment: time, minutes: int) -> time:
    """Сдвигает время суток на заданное число минут.

    Результат не выходит за пределы суток: переход через полночь
    ограничивается концом (или началом) дня.
    """
    anchor = datetime.combine(ANCHOR_DATE, moment)
    shifted = anchor + timedelta(minutes=minutes)
    if shifted.date() > ANCHOR_DATE:
        return time.max
    if shifted.date() < ANCHOR_DATE:
        return time.min
    return shifted.time()


def parse_time(value: str) -> time:
    """Разбирает время в формате HH:MM:SS."""
    try:
        return datetime.strptime(value, TIME_FORMAT).time()
    except ValueError:
        raise ValueError(
            f'Некорректный формат времени "{value}", ожидается HH:MM:SS',
        )


def minutes_between(start: datetime, end: datetime) -> int:
    """Целое число минут от start до end с округлением вниз."""
    return int((end - start).total_seconds() // 60)


def format_hhmm(moment: Optional[datetime]) -> str:
    """Форматирует отметку времени как HH:MM для сообщений."""
    return moment.strftime('%H:%M') if moment else '--:--'
