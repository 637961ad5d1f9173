from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import structlog
from plugins.django_interface.models import PaymentHistory

from subscription_billing.core.domain.repositories.payment_history_repository import PaymentHistoryRepository

logger = structlog.get_logger(__name__)


class PaymentHistoryRepoImpl(PaymentHistoryRepository):
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
        _, created = PaymentHistory.objects.get_or_create(
            asaas_payment_id=asaas_payment_id,
            defaults=dict(
                account_id=account_id,
                subscription_id=subscription_id,
                amount=amount,
                status=status,
                asaas_customer_id=asaas_customer_id,
                payment_method=payment_method,
                invoice_url=invoice_url,
                due_date=due_date,
                paid_at=paid_at,
            ),
        )
        if not created:
            logger.info("payment_history.already_recorded", asaas_payment_id=asaas_payment_id)
        return created
