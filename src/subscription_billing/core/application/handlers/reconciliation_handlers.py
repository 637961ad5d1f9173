from __future__ import annotations

from django.utils import timezone
from iafe_core.core.application.cqrs import CommandHandler

from subscription_billing.core.application.commands.registration_commands import (
    ExpireRegistrationsCommand,
    PollPaymentStatusCommand,
    ReconcileWebhookCommand,
    ResumeProvisioningCommand,
)
from subscription_billing.core.application.dtos.registration_dto import ReconciliationResult
from subscription_billing.core.application.services.reconciliation_service import ReconciliationService


class ReconcileWebhookHandler(CommandHandler[ReconcileWebhookCommand]):
    def __init__(self, service: ReconciliationService) -> None:
        self.service = service

    def handle(self, cmd: ReconcileWebhookCommand) -> ReconciliationResult:
        return self.service.reconcile_webhook(cmd.payload, cmd.now or timezone.now())


class PollPaymentStatusHandler(CommandHandler[PollPaymentStatusCommand]):
    def __init__(self, service: ReconciliationService) -> None:
        self.service = service

    def handle(self, cmd: PollPaymentStatusCommand) -> ReconciliationResult:
        return self.service.poll(
            cmd.now or timezone.now(),
            registration_id=cmd.registration_id,
            payment_id=cmd.payment_id,
        )


class ExpireRegistrationsHandler(CommandHandler[ExpireRegistrationsCommand]):
    def __init__(self, service: ReconciliationService) -> None:
        self.service = service

    def handle(self, cmd: ExpireRegistrationsCommand) -> int:
        return self.service.expire_overdue(cmd.now or timezone.now())


class ResumeProvisioningHandler(CommandHandler[ResumeProvisioningCommand]):
    """Retoma cadastros presos em `paid` (processo caiu depois do pagamento)."""

    def __init__(self, service: ReconciliationService) -> None:
        self.service = service

    def handle(self, cmd: ResumeProvisioningCommand) -> list[ReconciliationResult]:
        return self.service.resume_stalled(cmd.now or timezone.now(), cmd.limit)
