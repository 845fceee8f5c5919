from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from app.utils.enums import ErrorCode


class ErrorResponse(BaseModel):
    """Базовая схема ответа с описанием ошибки."""

    code: int
    detail: str
    error_code: Optional[ErrorCode] = None
    context: Optional[dict[str, Any]] = None


class OperationResult(BaseModel):
    """Результат операции бронирования: успех с данными либо код ошибки."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Any = None
    error_code: Optional[ErrorCode] = None
    detail: Optional[str] = None
    context: dict[str, Any] = {}

    @classmethod
    def ok(cls, data: Any = None) -> 'OperationResult':
        """Успешный результат."""
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls,
        error_code: ErrorCode,
        detail: str,
        context: Optional[dict[str, Any]] = None,
    ) -> 'OperationResult':
        """Результат с ошибкой."""
        return cls(
            success=False,
            error_code=error_code,
            detail=detail,
            context=context or {},
        )
