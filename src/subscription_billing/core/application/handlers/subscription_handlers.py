from __future__ import annotations

from django.utils import timezone
from iafe_core.core.application.cqrs import CommandHandler

from subscription_billing.core.application.commands.subscription_commands import (
    CancelSubscriptionCommand,
    ExpireSubscriptionsCommand,
)
from subscription_billing.core.application.dtos.subscription_dto import CancellationResult
from subscription_billing.core.application.services.subscription_lifecycle import SubscriptionLifecycle


class CancelSubscriptionHandler(CommandHandler[CancelSubscriptionCommand]):
    def __init__(self, lifecycle: SubscriptionLifecycle) -> None:
        self.lifecycle = lifecycle

    def handle(self, cmd: CancelSubscriptionCommand) -> CancellationResult:
        return self.lifecycle.cancel(cmd.account_id, cmd.now or timezone.now())


class ExpireSubscriptionsHandler(CommandHandler[ExpireSubscriptionsCommand]):
    def __init__(self, lifecycle: SubscriptionLifecycle) -> None:
        self.lifecycle = lifecycle

    def handle(self, cmd: ExpireSubscriptionsCommand) -> int:
        return self.lifecycle.expire_period_ended(cmd.now or timezone.now())
