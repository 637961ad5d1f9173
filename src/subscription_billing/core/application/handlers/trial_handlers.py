from __future__ import annotations

import uuid
from datetime import timedelta

import structlog
from django.utils import timezone
from iafe_core.adapters.security.hash_service import HashService
from iafe_core.core.application.cqrs import CommandHandler
from iafe_core.core.application.services.phone_identity_resolver import PhoneIdentityResolver
from iafe_core.core.domain.events.events import AccountCreatedEvent
from iafe_core.core.domain.exceptions import AlreadyTerminalError, InvalidInputError
from iafe_core.core.domain.repositories.account_repository import AccountRepository

from subscription_billing.core.application.commands.registration_commands import RegisterTrialCommand
from subscription_billing.core.application.dtos.registration_dto import (
    TrialRegisteredResult,
    TrialRegistrationInput,
    parse_input,
)
from subscription_billing.core.application.handlers.registration_handlers import resolve_plan
from subscription_billing.core.domain.entities.subscription_entity import (
    SubscriptionEntity,
    SubscriptionStatus,
)
from subscription_billing.core.domain.events.events import TrialStartedEvent
from subscription_billing.core.domain.repositories.otp_repository import OtpRepository
from subscription_billing.core.domain.repositories.plan_repository import PlanRepository
from subscription_billing.core.domain.repositories.subscription_repository import SubscriptionRepository

logger = structlog.get_logger(__name__)


class RegisterTrialHandler(CommandHandler[RegisterTrialCommand]):
    """
    Cadastro com período de teste: OTP verificado → conta → assinatura trialing.
    Não passa pelo gateway de pagamento.
    """

    def __init__(  # noqa: PLR0913
        self,
        account_repo: AccountRepository,
        subscription_repo: SubscriptionRepository,
        plan_repo: PlanRepository,
        otp_repo: OtpRepository,
        phone_resolver: PhoneIdentityResolver,
        hash_service: HashService,
        trial_days: int,
    ) -> None:
        self.account_repo = account_repo
        self.subscription_repo = subscription_repo
        self.plan_repo = plan_repo
        self.otp_repo = otp_repo
        self.phone_resolver = phone_resolver
        self.hash_service = hash_service
        self.trial_days = trial_days

    def handle(self, cmd: RegisterTrialCommand) -> TrialRegisteredResult:
        data: TrialRegistrationInput = parse_input(TrialRegistrationInput, cmd.payload)
        now = cmd.now or timezone.now()
        log = logger.bind(email=data.email)

        if self.account_repo.find_by_email(data.email):
            raise AlreadyTerminalError("Já existe uma conta com este e-mail.", code="account_exists")
        if self.phone_resolver.find(data.phone):
            raise AlreadyTerminalError("Telefone já vinculado a outra conta.", code="phone_in_use")
        plan = resolve_plan(self.plan_repo, data.plan_id) if data.plan_id else self.plan_repo.find_default()

        if not self.otp_repo.consume(data.phone, data.otp_code, now):
            raise InvalidInputError("Código não verificado, expirado ou já utilizado.", code="otp_not_verified")

        account_id, created = self.account_repo.create_account(
            email=data.email,
            password_hash=self.hash_service.hash_password(data.password),
            full_name=data.full_name,
            phone=data.phone,
        )
        if not created:
            # outra requisição criou a conta entre a checagem e o insert
            raise AlreadyTerminalError("Já existe uma conta com este e-mail.", code="account_exists")

        trial_ends_at = now + timedelta(days=self.trial_days)
        subscription, _ = self.subscription_repo.get_or_create(
            SubscriptionEntity(
                id=uuid.uuid4(),
                account_id=uuid.UUID(account_id),
                status=SubscriptionStatus.TRIALING,
                current_period_start=now,
                current_period_end=trial_ends_at,
                is_trial=True,
                trial_ends_at=trial_ends_at,
                plan_id=plan.id if plan else None,
            )
        )
        log.info("trial.started", account_id=account_id, trial_ends_at=trial_ends_at.isoformat())
        return TrialRegisteredResult(
            account_id=account_id,
            subscription_id=str(subscription.id),
            trial_ends_at=trial_ends_at,
            events=[
                AccountCreatedEvent(account_id=account_id, email=data.email, origin="trial"),
                TrialStartedEvent(account_id=account_id, trial_ends_at=trial_ends_at),
            ],
        )
