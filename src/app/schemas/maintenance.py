from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class CleanupReport(BaseModel):
    """Итог фоновой очистки."""

    records_removed: int
    restaurants: int = 0


class PaymentVerification(BaseModel):
    """Итог проверки одного платежа."""

    request_id: UUID
    transaction_reference: str
    verified: bool
    status_code: Optional[str] = None
    error: Optional[str] = None
    reservation_number: Optional[str] = None


class PaidRequestsReport(BaseModel):
    """Итог проверки оплаченных заявок."""

    checked: int
    confirmed: int
    results: list[PaymentVerification] = []
