from __future__ import annotations

from datetime import datetime

import structlog
from django.utils import timezone
from iafe_core.core.domain.exceptions import AlreadyTerminalError, NotFoundError, ProvisioningError

from subscription_billing.adapters.observability.metrics import SUBSCRIPTION_CANCEL_COUNT
from subscription_billing.core.application.dtos.subscription_dto import CancellationResult
from subscription_billing.core.domain.entities.subscription_entity import (
    SubscriptionEntity,
    SubscriptionStatus,
)
from subscription_billing.core.domain.events.events import SubscriptionCancelledEvent
from subscription_billing.core.domain.repositories.payment_gateway import PaymentGateway
from subscription_billing.core.domain.repositories.subscription_repository import SubscriptionRepository

logger = structlog.get_logger(__name__)

IMMEDIATE = "immediate"
END_OF_PERIOD = "end_of_period"


def _already_cancelled() -> AlreadyTerminalError:
    return AlreadyTerminalError("Assinatura já cancelada.", code="already_cancelled")


class SubscriptionLifecycle:
    """
    Cancelamento de assinatura.

    - teste: cancela na hora, acesso termina agora;
    - paga: agenda para o fim do período (cancel_at_period_end), acesso até
      current_period_end.

    O registro local é a fonte da verdade; o cancelamento no Asaas é
    tentado depois e nunca bloqueia a mudança local.
    """

    def __init__(self, subscription_repo: SubscriptionRepository, gateway: PaymentGateway) -> None:
        self.repo = subscription_repo
        self.gateway = gateway

    def cancel(self, account_id: str, now: datetime) -> CancellationResult:
        subscription = self.repo.find_by_account(account_id)
        if subscription is None:
            raise NotFoundError("Nenhuma assinatura encontrada para a conta.", code="subscription_not_found")
        if subscription.status.is_terminal:
            raise _already_cancelled()

        if subscription.is_trial or subscription.status is SubscriptionStatus.TRIALING:
            return self._cancel_trial(subscription, now)
        return self._cancel_paid(subscription, now)

    # ─── teste grátis ───────────────────────────────────────────
    def _cancel_trial(self, subscription: SubscriptionEntity, now: datetime) -> CancellationResult:
        sub_id = str(subscription.id)
        won = self.repo.compare_and_set(
            sub_id,
            subscription.status,
            SubscriptionStatus.CANCELLED,
            cancelled_at=now,
            cancel_at_period_end=False,
            current_period_end=now,
            updated_at=now,
        )
        if not won:
            logger.info("subscription.conflict", subscription_id=sub_id)
            raise _already_cancelled()

        gateway = self._cancel_upstream(subscription)
        logger.info("subscription.cancelled", subscription_id=sub_id, effective=IMMEDIATE, gateway=gateway)
        SUBSCRIPTION_CANCEL_COUNT.labels(IMMEDIATE, gateway).inc()
        return CancellationResult(
            subscription_id=sub_id,
            effective=IMMEDIATE,
            access_until=None,
            gateway=gateway,
            message="Período de teste cancelado. O acesso foi encerrado.",
            events=[
                SubscriptionCancelledEvent(
                    account_id=str(subscription.account_id),
                    subscription_id=sub_id,
                    effective=IMMEDIATE,
                    access_until=None,
                )
            ],
        )

    # ─── assinatura paga ────────────────────────────────────────
    def _cancel_paid(self, subscription: SubscriptionEntity, now: datetime) -> CancellationResult:
        sub_id = str(subscription.id)
        access_until = subscription.current_period_end
        message = f"Assinatura cancelada. O acesso continua até {timezone.localtime(access_until):%d/%m/%Y}."

        if not self.repo.schedule_cancellation(sub_id, now):
            current = self.repo.find_by_account(str(subscription.account_id))
            if current is None or current.status.is_terminal:
                raise _already_cancelled()
            # já agendado (por esta ou outra requisição): mesma resposta, sem nova chamada ao gateway
            logger.info("subscription.cancel_already_scheduled", subscription_id=sub_id)
            return CancellationResult(sub_id, END_OF_PERIOD, current.current_period_end, "skipped", message)

        gateway = self._cancel_upstream(subscription)
        logger.info(
            "subscription.cancel_scheduled",
            subscription_id=sub_id,
            access_until=access_until.isoformat(),
            gateway=gateway,
        )
        SUBSCRIPTION_CANCEL_COUNT.labels(END_OF_PERIOD, gateway).inc()
        return CancellationResult(
            subscription_id=sub_id,
            effective=END_OF_PERIOD,
            access_until=access_until,
            gateway=gateway,
            message=message,
            events=[
                SubscriptionCancelledEvent(
                    account_id=str(subscription.account_id),
                    subscription_id=sub_id,
                    effective=END_OF_PERIOD,
                    access_until=access_until,
                )
            ],
        )

    def _cancel_upstream(self, subscription: SubscriptionEntity) -> str:
        if not subscription.asaas_subscription_id:
            return "skipped"
        try:
            return self.gateway.cancel_subscription(subscription.asaas_subscription_id).value
        except ProvisioningError as exc:
            logger.error(
                "subscription.gateway_cancel_failed",
                subscription_id=str(subscription.id),
                asaas_subscription_id=subscription.asaas_subscription_id,
                code=exc.code,
                error=exc.message,
            )
            return "failed"

    # ─── varredura de fim de período ───────────────────────────
    def expire_period_ended(self, now: datetime, limit: int = 500) -> int:
        changed = 0
        for subscription in self.repo.list_period_ended(now, limit):
            target = (
                SubscriptionStatus.EXPIRED
                if subscription.status is SubscriptionStatus.TRIALING
                else SubscriptionStatus.CANCELLED
            )
            if self.repo.compare_and_set(str(subscription.id), subscription.status, target, updated_at=now):
                changed += 1
            else:
                logger.info("subscription.conflict", subscription_id=str(subscription.id))
        logger.info("subscription.period_end_sweep", changed=changed)
        return changed
