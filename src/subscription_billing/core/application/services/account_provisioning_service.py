from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

import structlog
from iafe_core.core.domain.repositories.account_repository import AccountRepository

from subscription_billing.core.application.services.billing_calendar import add_months, period_months
from subscription_billing.core.domain.entities.registration_entity import RegistrationEntity
from subscription_billing.core.domain.entities.subscription_entity import (
    SubscriptionEntity,
    SubscriptionStatus,
)
from subscription_billing.core.domain.repositories.payment_history_repository import PaymentHistoryRepository
from subscription_billing.core.domain.repositories.plan_repository import PlanRepository
from subscription_billing.core.domain.repositories.subscription_repository import SubscriptionRepository

logger = structlog.get_logger(__name__)


class AccountProvisioningService:
    """
    Cadastro pago → conta + assinatura + histórico de pagamento.

    Todas as etapas são idempotentes: pode ser chamado de novo para o mesmo
    cadastro depois de uma queda no meio do caminho.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        subscription_repo: SubscriptionRepository,
        plan_repo: PlanRepository,
        payment_history_repo: PaymentHistoryRepository,
    ) -> None:
        self.account_repo = account_repo
        self.subscription_repo = subscription_repo
        self.plan_repo = plan_repo
        self.payment_history_repo = payment_history_repo

    def provision(self, registration: RegistrationEntity, now: datetime) -> tuple[str, bool]:
        log = logger.bind(registration_id=str(registration.id))
        plan = self.plan_repo.find_by_id(str(registration.plan_id)) if registration.plan_id else None

        account_id, created = self.account_repo.create_account(
            email=registration.email,
            password_hash=registration.password_hash,
            full_name=registration.full_name,
            phone=registration.phone,
        )
        log = log.bind(account_id=account_id)

        period_end = add_months(now, period_months(plan.interval if plan else None))
        subscription, sub_created = self.subscription_repo.get_or_create(
            SubscriptionEntity(
                id=uuid.uuid4(),
                account_id=uuid.UUID(account_id),
                status=SubscriptionStatus.ACTIVE,
                current_period_start=now,
                current_period_end=period_end,
                is_trial=False,
                plan_id=plan.id if plan else None,
                asaas_customer_id=registration.asaas_customer_id,
            )
        )
        if not sub_created and subscription.status is SubscriptionStatus.TRIALING:
            # conta que estava em teste e pagou: vira assinatura paga
            self.subscription_repo.compare_and_set(
                str(subscription.id),
                SubscriptionStatus.TRIALING,
                SubscriptionStatus.ACTIVE,
                is_trial=False,
                plan_id=plan.id if plan else subscription.plan_id,
                current_period_start=now,
                current_period_end=period_end,
                asaas_customer_id=registration.asaas_customer_id,
                updated_at=now,
            )
            log.info("provisioning.trial_upgraded", subscription_id=str(subscription.id))

        if registration.asaas_payment_id:
            self.payment_history_repo.record_payment(
                asaas_payment_id=registration.asaas_payment_id,
                account_id=account_id,
                subscription_id=str(subscription.id),
                amount=plan.price if plan else Decimal("0"),
                status="CONFIRMED",
                asaas_customer_id=registration.asaas_customer_id,
                payment_method=registration.payment_method,
                invoice_url=registration.invoice_url,
                paid_at=registration.paid_at or now,
            )

        log.info("provisioning.done", account_created=created, subscription_created=sub_created)
        return account_id, created
