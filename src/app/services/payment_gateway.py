from typing import Optional

import httpx
from loguru import logger
from pydantic import BaseModel

from app.core.config import settings


class GatewayStatus(BaseModel):
    """Статус транзакции по данным платёжного шлюза."""

    success: bool
    status_code: Optional[str] = None
    amount: Optional[str] = None
    error: Optional[str] = None


class PaymentGatewayClient:
    """Клиент проверки статуса транзакции в платёжном шлюзе.

    Шлюз рассматривается как внешний проверяющий: клиент только
    запрашивает статус по URL, выданному при создании платежа.
    """

    def __init__(
        self,
        timeout: float = settings.PAYMENT_GATEWAY_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Создаёт клиент с таймаутом и необязательным транспортом."""
        self.timeout = timeout
        self.transport = transport

    async def get_transaction_status(
        self,
        transaction_reference: str,
        status_url: str,
    ) -> GatewayStatus:
        """Запрашивает статус транзакции.

        Ошибки сети и неожиданный ответ шлюза не пробрасываются, а
        возвращаются как неуспешный статус с описанием ошибки.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.get(
                    status_url,
                    params={'merchantTxId': transaction_reference},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(
                f'Ошибка запроса статуса транзакции '
                f'{transaction_reference}: {str(e)}',
            )
            return GatewayStatus(success=False, error=str(e))
        except ValueError as e:
            logger.error(
                f'Некорректный ответ шлюза по транзакции '
                f'{transaction_reference}: {str(e)}',
            )
            return GatewayStatus(success=False, error='Некорректный ответ')

        if not isinstance(data, dict):
            return GatewayStatus(success=False, error='Некорректный ответ')
        amount = data.get('amount')
        code = data.get('statusCode')
        status = GatewayStatus(
            success=True,
            status_code=str(code) if code is not None else None,
            amount=str(amount) if amount is not None else None,
        )
        logger.debug(
            f'Статус транзакции {transaction_reference}: '
            f'{status.status_code}',
        )
        return status

    @staticmethod
    def is_successful(status: GatewayStatus) -> bool:
        """Успешна ли оплата по коду шлюза."""
        return (
            status.success
            and status.status_code == settings.PAYMENT_SUCCESS_CODE
        )
