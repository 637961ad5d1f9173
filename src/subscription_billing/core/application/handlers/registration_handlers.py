from __future__ import annotations

import uuid
from datetime import datetime, timedelta

import structlog
from django.utils import timezone
from iafe_core.adapters.security.hash_service import HashService
from iafe_core.core.application.cqrs import CommandHandler, QueryHandler
from iafe_core.core.domain.exceptions import (
    AlreadyTerminalError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
    UpstreamUnavailableError,
)
from iafe_core.core.domain.repositories.account_repository import AccountRepository

from subscription_billing.core.application.commands.registration_commands import (
    CreateChargeCommand,
    StartRegistrationCommand,
)
from subscription_billing.core.application.dtos.registration_dto import (
    ChargeCreatedResult,
    ChargeInput,
    OpenRegistrationView,
    RegistrationStartedResult,
    StartRegistrationInput,
    parse_input,
)
from subscription_billing.core.application.queries.registration_queries import GetOpenRegistrationQuery
from subscription_billing.core.application.services.reconciliation_service import (
    ReconciliationService,
    is_overdue,
)
from subscription_billing.core.domain.entities.plan_entity import PlanEntity
from subscription_billing.core.domain.entities.registration_entity import (
    RegistrationEntity,
    RegistrationStatus,
)
from subscription_billing.core.domain.events.events import RegistrationStartedEvent
from subscription_billing.core.domain.repositories.payment_gateway import PaymentGateway
from subscription_billing.core.domain.repositories.plan_repository import PlanRepository
from subscription_billing.core.domain.repositories.registration_repository import RegistrationRepository

logger = structlog.get_logger(__name__)


def resolve_plan(plan_repo: PlanRepository, plan_id: str | None) -> PlanEntity:
    if plan_id:
        plan = plan_repo.find_active(plan_id)
        if plan is None:
            raise InvalidInputError("Plano inválido ou inativo.", code="invalid_plan", plan_id=plan_id)
        return plan
    plan = plan_repo.find_default()
    if plan is None:
        raise InvalidInputError("Nenhum plano ativo disponível.", code="plan_unavailable")
    return plan


def _settle_if_overdue(
    reconciliation: ReconciliationService,
    repo: RegistrationRepository,
    registration: RegistrationEntity,
    now: datetime,
) -> RegistrationEntity | None:
    """
    Expiração preguiçosa. None se o prazo não venceu; senão o registro relido
    depois da conciliação (expired, ou paid/registered se o gateway já recebeu).
    """
    if not is_overdue(registration, now):
        return None
    result = reconciliation.settle_overdue(registration, now, source="funnel")
    if result.retry and result.status == RegistrationStatus.PENDING_PAYMENT.value:
        raise UpstreamUnavailableError(
            "Não foi possível confirmar o pagamento agora.",
            code="payment_status_unknown",
            registration_id=str(registration.id),
        )
    return repo.find_by_id(str(registration.id))


# ╭──────────────────────────────────────────────╮
# │ Início / retomada do funil                   │
# ╰──────────────────────────────────────────────╯
class StartRegistrationHandler(CommandHandler[StartRegistrationCommand]):
    """
    Um funil aberto por e-mail. Reaproveita o pending_payment vivo, substitui
    o vencido e recusa quando já existe conta ou pagamento confirmado.
    """

    def __init__(  # noqa: PLR0913
        self,
        registration_repo: RegistrationRepository,
        account_repo: AccountRepository,
        plan_repo: PlanRepository,
        gateway: PaymentGateway,
        hash_service: HashService,
        reconciliation: ReconciliationService,
        ttl: timedelta,
    ) -> None:
        self.repo = registration_repo
        self.reconciliation = reconciliation
        self.account_repo = account_repo
        self.plan_repo = plan_repo
        self.gateway = gateway
        self.hash_service = hash_service
        self.ttl = ttl

    def handle(self, cmd: StartRegistrationCommand) -> RegistrationStartedResult:
        data: StartRegistrationInput = parse_input(StartRegistrationInput, cmd.payload)
        now = cmd.now or timezone.now()
        log = logger.bind(email=data.email)

        if self.account_repo.find_by_email(data.email):
            raise AlreadyTerminalError("Já existe uma conta com este e-mail.", code="account_exists")
        plan = resolve_plan(self.plan_repo, data.plan_id)

        existing = self._live_open_record(data.email, now)

        # gateway antes de qualquer escrita: se falhar, nada foi alterado
        customer_id = existing.asaas_customer_id if existing and existing.asaas_customer_id else None
        if customer_id is None:
            customer = self.gateway.find_customer_by_email(data.email)
            if customer is None:
                customer = self.gateway.create_customer(
                    name=data.full_name, email=data.email, phone=data.phone, cpf_cnpj=data.cpf_cnpj
                )
            customer_id = customer.id

        fields = {
            "full_name": data.full_name,
            "phone": data.phone,
            "password_hash": self.hash_service.hash_password(data.password),
            "cpf_cnpj": data.cpf_cnpj,
            "plan_id": plan.id,
            "asaas_customer_id": customer_id,
            "expires_at": now + self.ttl,
            "terms_accepted_at": now if data.terms_accepted else None,
        }

        for _ in range(2):
            if existing is not None:
                if self.repo.restart_pending(str(existing.id), now, **fields):
                    log.info("registration.restarted", registration_id=str(existing.id))
                    return self._started(str(existing.id), data.email, customer_id, fields["expires_at"], True)
                # mudou de estado entre a leitura e a escrita
                log.info("registration.conflict", registration_id=str(existing.id))
                existing = self._live_open_record(data.email, now)
                continue

            try:
                created = self.repo.create(
                    RegistrationEntity(id=uuid.uuid4(), email=data.email, status=RegistrationStatus.PENDING_PAYMENT, **fields)
                )
            except ConflictError:
                existing = self._live_open_record(data.email, now)
                continue
            log.info("registration.started", registration_id=str(created.id))
            return self._started(str(created.id), data.email, customer_id, created.expires_at, False)

        raise AlreadyTerminalError("Cadastro em andamento para este e-mail.", code="registration_in_progress")

    def _live_open_record(self, email: str, now: datetime) -> RegistrationEntity | None:
        existing = self.repo.find_open_by_email(email)
        if existing is None:
            return None
        if existing.status is RegistrationStatus.PAID:
            raise AlreadyTerminalError(
                "Pagamento já confirmado para este e-mail.",
                code="registration_already_paid",
                registration_id=str(existing.id),
            )
        settled = _settle_if_overdue(self.reconciliation, self.repo, existing, now)
        if settled is None:
            return existing
        if settled.status in (RegistrationStatus.EXPIRED, RegistrationStatus.CANCELLED):
            return None
        # o gateway confirmou o pagamento: paid ou já registered
        raise AlreadyTerminalError(
            "Pagamento já confirmado para este e-mail.",
            code="registration_already_paid",
            registration_id=str(existing.id),
        )

    @staticmethod
    def _started(reg_id: str, email: str, customer_id: str, expires_at: datetime, reused: bool) -> RegistrationStartedResult:
        return RegistrationStartedResult(
            registration_id=reg_id,
            customer_id=customer_id,
            status=RegistrationStatus.PENDING_PAYMENT.value,
            expires_at=expires_at,
            reused=reused,
            events=[RegistrationStartedEvent(registration_id=reg_id, email=email, reused=reused)],
        )


# ╭──────────────────────────────────────────────╮
# │ Cobrança                                     │
# ╰──────────────────────────────────────────────╯
class CreateChargeHandler(CommandHandler[CreateChargeCommand]):
    def __init__(
        self,
        registration_repo: RegistrationRepository,
        plan_repo: PlanRepository,
        gateway: PaymentGateway,
        reconciliation: ReconciliationService,
    ) -> None:
        self.repo = registration_repo
        self.plan_repo = plan_repo
        self.gateway = gateway
        self.reconciliation = reconciliation

    def handle(self, cmd: CreateChargeCommand) -> ChargeCreatedResult:
        data: ChargeInput = parse_input(ChargeInput, {"billing_type": (cmd.billing_type or "").upper()})
        now = cmd.now or timezone.now()

        registration = self.repo.find_by_id(cmd.registration_id)
        if registration is None:
            raise NotFoundError("Cadastro não encontrado.", code="registration_not_found")
        settled = _settle_if_overdue(self.reconciliation, self.repo, registration, now)
        if settled is not None:
            registration = settled
        if registration.status is RegistrationStatus.EXPIRED:
            raise AlreadyTerminalError("Cadastro expirado.", code="registration_expired")
        if registration.status is not RegistrationStatus.PENDING_PAYMENT:
            raise AlreadyTerminalError(
                "Cadastro não aceita nova cobrança.", code="registration_not_pending", status=registration.status.value
            )
        if not registration.asaas_customer_id:
            raise InvalidInputError("Cadastro sem cliente no gateway.", code="missing_customer")

        plan = self.plan_repo.find_by_id(str(registration.plan_id)) if registration.plan_id else None
        if plan is None:
            raise InvalidInputError("Plano do cadastro não encontrado.", code="invalid_plan")

        payment = self.gateway.create_payment(
            customer_id=registration.asaas_customer_id,
            billing_type=data.billing_type,
            value=float(plan.price),
            due_date=timezone.localdate(now) + timedelta(days=1),
            description=f"Assinatura {plan.name} - IAFÉ Finanças",
            external_reference=str(registration.id),
        )

        pix_code = pix_qr_code = pix_expiration = None
        if data.billing_type == "PIX":
            qr = self.gateway.get_pix_qr_code(payment.id)
            pix_code, pix_qr_code, pix_expiration = qr.payload, qr.encodedImage, qr.expirationDate

        attached = self.repo.attach_charge(
            str(registration.id),
            now,
            asaas_payment_id=payment.id,
            payment_method=data.billing_type,
            invoice_url=payment.invoiceUrl,
            boleto_url=payment.bankSlipUrl,
            pix_code=pix_code,
            pix_qr_code=pix_qr_code,
        )
        if not attached:
            # webhook/varredura mudou o status enquanto a cobrança era criada
            logger.info("registration.conflict", registration_id=str(registration.id), payment_id=payment.id)

        logger.info("registration.charge_created", registration_id=str(registration.id), payment_id=payment.id)
        return ChargeCreatedResult(
            registration_id=str(registration.id),
            payment_id=payment.id,
            billing_type=data.billing_type,
            value=payment.value,
            due_date=payment.dueDate,
            invoice_url=payment.invoiceUrl,
            boleto_url=payment.bankSlipUrl,
            pix_code=pix_code,
            pix_qr_code=pix_qr_code,
            pix_expiration=pix_expiration,
        )


# ╭──────────────────────────────────────────────╮
# │ Consulta do funil aberto                     │
# ╰──────────────────────────────────────────────╯
class GetOpenRegistrationHandler(QueryHandler[GetOpenRegistrationQuery, OpenRegistrationView]):
    def __init__(self, registration_repo: RegistrationRepository, reconciliation: ReconciliationService) -> None:
        self.repo = registration_repo
        self.reconciliation = reconciliation

    def handle(self, query: GetOpenRegistrationQuery) -> OpenRegistrationView:
        email = (query.email or "").strip().lower()
        if not email:
            raise InvalidInputError("E-mail é obrigatório.", code="email_required")
        now = query.now or timezone.now()

        registration = self.repo.find_open_by_email(email)
        if registration is not None:
            registration = _settle_if_overdue(self.reconciliation, self.repo, registration, now) or registration
        if registration is None or not registration.status.is_open:
            raise NotFoundError("Nenhum cadastro aberto para este e-mail.", code="registration_not_found")
        return OpenRegistrationView(
            registration_id=str(registration.id),
            email=registration.email,
            status=registration.status.value,
            expires_at=registration.expires_at,
            payment_id=registration.asaas_payment_id,
            payment_method=registration.payment_method,
            invoice_url=registration.invoice_url,
            boleto_url=registration.boleto_url,
            pix_code=registration.pix_code,
            pix_qr_code=registration.pix_qr_code,
        )
