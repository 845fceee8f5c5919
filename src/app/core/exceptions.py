from typing import Any, Optional

from app.utils.enums import ErrorCode


class ReservationError(ValueError):
    """Ошибка доменной операции бронирования с машиночитаемым кодом.

    Наследуется от ValueError, чтобы эндпоинты обрабатывали её так же,
    как прочие ошибки валидации.
    """

    def __init__(
        self,
        code: ErrorCode,
        detail: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail)
        self.code = code
        self.detail = detail
        self.context = context or {}
