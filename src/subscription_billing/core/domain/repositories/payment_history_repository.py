from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal


class PaymentHistoryRepository(ABC):
    @abstractmethod
    def record_payment(  # noqa: PLR0913
        self,
        *,
        asaas_payment_id: str,
        account_id: str,
        subscription_id: str | None,
        amount: Decimal,
        status: str,
        asaas_customer_id: str | None = None,
        payment_method: str | None = None,
        invoice_url: str | None = None,
        due_date: date | None = None,
        paid_at: datetime | None = None,
    ) -> bool:
        """Registra o pagamento uma única vez por id do gateway. True se inseriu."""
        ...
