"""
Motor de conciliação do funil de cadastro
-----------------------------------------
Três gatilhos, todos "at-least-once" e sem ordem garantida:

    webhook do Asaas ─┐
    consulta do front ─┼─► transição condicionada no banco ─► criação da conta (1x)
    varreduras (beat) ─┘

O banco é o árbitro: cada transição é um UPDATE ... WHERE status = <anterior>.
Quem afeta zero linhas perdeu a corrida e devolve sucesso sem efeito.
A criação da conta é protegida por uma reserva (lease) gravada do mesmo jeito,
então só um chamador por vez executa o provisionamento; se ele cair, a
reserva vence e a varredura de retomada termina o trabalho.
"""
from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from iafe_core.core.domain.exceptions import (
    InvalidInputError,
    NotFoundError,
    UpstreamUnavailableError,
)
from pydantic import ValidationError as PydanticValidationError

from subscription_billing.adapters.observability.metrics import PROVISIONING_COUNT, RECONCILIATION_OUTCOME
from subscription_billing.core.application.dtos.asaas_dtos import AsaasPaymentDTO, AsaasWebhookDTO
from subscription_billing.core.application.dtos.registration_dto import ReconciliationResult
from subscription_billing.core.application.services.account_provisioning_service import (
    AccountProvisioningService,
)
from subscription_billing.core.application.services.payment_status_classifier import (
    WebhookOutcome,
    classify_webhook,
    is_paid_status,
)
from subscription_billing.core.domain.entities.registration_entity import (
    RegistrationEntity,
    RegistrationStatus,
)
from subscription_billing.core.domain.events.events import (
    AccountProvisionedEvent,
    RegistrationClosedEvent,
    RegistrationPaidEvent,
)
from subscription_billing.core.domain.repositories.payment_gateway import PaymentGateway
from subscription_billing.core.domain.repositories.registration_repository import RegistrationRepository

logger = structlog.get_logger(__name__)

_CLOSE_TARGETS = {
    WebhookOutcome.EXPIRED: RegistrationStatus.EXPIRED,
    WebhookOutcome.CANCELLED: RegistrationStatus.CANCELLED,
}


def is_overdue(registration: RegistrationEntity, now: datetime) -> bool:
    return registration.status is RegistrationStatus.PENDING_PAYMENT and (
        registration.effective_status(now) is RegistrationStatus.EXPIRED
    )


class ReconciliationService:
    def __init__(
        self,
        registration_repo: RegistrationRepository,
        gateway: PaymentGateway,
        provisioner: AccountProvisioningService,
        provisioning_lease: timedelta,
    ) -> None:
        self.repo = registration_repo
        self.gateway = gateway
        self.provisioner = provisioner
        self.lease = provisioning_lease

    # ╭──────────────────────────────────────────────╮
    # │ Webhook                                      │
    # ╰──────────────────────────────────────────────╯
    def reconcile_webhook(self, payload: dict, now: datetime) -> ReconciliationResult:
        try:
            dto = AsaasWebhookDTO.model_validate(payload or {})
        except PydanticValidationError as exc:
            raise InvalidInputError("Payload de webhook inválido.", code="invalid_webhook_payload") from exc
        if dto.payment is None:
            raise InvalidInputError("Webhook sem objeto 'payment'.", code="invalid_webhook_payload")

        payment = dto.payment
        log = logger.bind(event=dto.event, payment_id=payment.id, payment_status=payment.status)
        outcome = classify_webhook(dto.event, payment.status)
        if outcome is WebhookOutcome.IGNORED:
            log.info("webhook.ignored")
            RECONCILIATION_OUTCOME.labels("webhook", "ignored").inc()
            return ReconciliationResult(None, "ignored", detail=dto.event)

        registration = self._locate(payment)
        if registration is None:
            # 200 para o Asaas parar de reenviar: pode ser cobrança de outro produto
            log.warning("webhook.registration_not_found", external_reference=payment.externalReference)
            RECONCILIATION_OUTCOME.labels("webhook", "not_found").inc()
            return ReconciliationResult(None, "not_found", detail="registration_not_found")

        if outcome is WebhookOutcome.PAID:
            return self.apply_payment_confirmed(registration, now, source="webhook", payment=payment)
        return self._close(registration, _CLOSE_TARGETS[outcome], now, source="webhook")

    def _locate(self, payment: AsaasPaymentDTO) -> RegistrationEntity | None:
        """externalReference → id da cobrança → cobrança no gateway → cliente do gateway."""
        if payment.externalReference and (reg := self.repo.find_by_id(payment.externalReference)):
            return reg
        if reg := self.repo.find_by_payment_id(payment.id):
            return reg

        upstream_error: UpstreamUnavailableError | None = None
        try:
            fetched = self.gateway.get_payment(payment.id)
            if fetched.externalReference and (reg := self.repo.find_by_id(fetched.externalReference)):
                return reg
        except NotFoundError:
            logger.info("webhook.payment_not_found_upstream", payment_id=payment.id)
        except UpstreamUnavailableError as exc:
            upstream_error = exc

        if payment.customer and (reg := self.repo.find_open_by_customer(payment.customer)):
            return reg
        if upstream_error is not None:
            # sem como decidir agora: erro → o Asaas reenvia o webhook depois
            raise upstream_error
        return None

    # ╭──────────────────────────────────────────────╮
    # │ Consulta do cliente                          │
    # ╰──────────────────────────────────────────────╯
    def poll(self, now: datetime, registration_id: str | None = None, payment_id: str | None = None) -> ReconciliationResult:
        if not registration_id and not payment_id:
            raise InvalidInputError("Informe registration_id ou payment_id.", code="missing_identifier")

        registration = (
            self.repo.find_by_id(registration_id) if registration_id else self.repo.find_by_payment_id(payment_id)
        )
        if registration is None:
            raise NotFoundError("Cadastro não encontrado.", code="registration_not_found")
        log = logger.bind(registration_id=str(registration.id))

        if is_overdue(registration, now):
            return self.settle_overdue(registration, now, source="poll")

        if registration.status is RegistrationStatus.PAID:
            return self._provision(registration, now, source="poll")
        if registration.status is not RegistrationStatus.PENDING_PAYMENT:
            return ReconciliationResult(
                str(registration.id), registration.status.value, account_id=self._account(registration)
            )

        if not registration.asaas_payment_id:
            return ReconciliationResult(str(registration.id), registration.status.value, detail="no_charge")

        try:
            payment = self.gateway.get_payment(registration.asaas_payment_id)
        except UpstreamUnavailableError:
            log.warning("poll.gateway_unavailable")
            RECONCILIATION_OUTCOME.labels("poll", "upstream_unavailable").inc()
            return ReconciliationResult(str(registration.id), registration.status.value, retry=True)
        except NotFoundError:
            log.warning("poll.payment_not_found_upstream", payment_id=registration.asaas_payment_id)
            return ReconciliationResult(str(registration.id), registration.status.value, detail="payment_not_found")

        if is_paid_status(payment.status):
            return self.apply_payment_confirmed(registration, now, source="poll", payment=payment)
        return ReconciliationResult(str(registration.id), registration.status.value, detail=payment.status)

    # ╭──────────────────────────────────────────────╮
    # │ Prazo vencido                                │
    # ╰──────────────────────────────────────────────╯
    def settle_overdue(self, registration: RegistrationEntity, now: datetime, *, source: str) -> ReconciliationResult:
        """
        Cadastro pending_payment com prazo vencido.

        Com cobrança vinculada, o gateway é consultado antes de expirar: pago
        vira paid → registered como no webhook; gateway fora devolve retry e o
        registro continua pending_payment. Sem cobrança, expira direto.
        """
        reg_id = str(registration.id)
        log = logger.bind(registration_id=reg_id, source=source)

        if registration.asaas_payment_id:
            try:
                payment = self.gateway.get_payment(registration.asaas_payment_id)
            except UpstreamUnavailableError:
                log.warning("reconcile.overdue_unverified")
                RECONCILIATION_OUTCOME.labels(source, "upstream_unavailable").inc()
                return ReconciliationResult(reg_id, registration.status.value, retry=True)
            except NotFoundError:
                log.info("reconcile.overdue_payment_not_found", payment_id=registration.asaas_payment_id)
                payment = None
            if payment is not None and is_paid_status(payment.status):
                return self.apply_payment_confirmed(registration, now, source=source, payment=payment)

        expired = self._close(registration, RegistrationStatus.EXPIRED, now, source=source)
        if expired.status != RegistrationStatus.PAID.value:
            return expired
        # outro gatilho confirmou o pagamento no meio do caminho
        return self._provision(self.repo.find_by_id(reg_id), now, source=source)

    # ╭──────────────────────────────────────────────╮
    # │ Transições                                   │
    # ╰──────────────────────────────────────────────╯
    def apply_payment_confirmed(
        self,
        registration: RegistrationEntity,
        now: datetime,
        *,
        source: str,
        payment: AsaasPaymentDTO | None = None,
    ) -> ReconciliationResult:
        reg_id = str(registration.id)
        log = logger.bind(registration_id=reg_id, source=source)
        events = []

        if registration.status is RegistrationStatus.PENDING_PAYMENT:
            changes = {"paid_at": now}
            if payment is not None:
                changes["asaas_payment_id"] = payment.id
            won = self.repo.compare_and_set(
                reg_id, RegistrationStatus.PENDING_PAYMENT, RegistrationStatus.PAID, now, **changes
            )
            if won:
                log.info("registration.paid")
                RECONCILIATION_OUTCOME.labels(source, "paid").inc()
                events.append(
                    RegistrationPaidEvent(
                        registration_id=reg_id,
                        payment_id=payment.id if payment else registration.asaas_payment_id,
                        source=source,
                        paid_at=now,
                    )
                )
            else:
                log.info("reconcile.conflict", expected=RegistrationStatus.PENDING_PAYMENT.value)
                RECONCILIATION_OUTCOME.labels(source, "conflict").inc()
            registration = self.repo.find_by_id(reg_id)

        if registration.status is RegistrationStatus.PAID:
            result = self._provision(registration, now, source=source)
            return ReconciliationResult(
                result.registration_id,
                result.status,
                applied=result.applied or bool(events),
                retry=result.retry,
                account_id=result.account_id,
                detail=result.detail,
                events=events + result.events,
            )

        if registration.status is not RegistrationStatus.REGISTERED:
            # pagamento confirmado para cadastro expirado/cancelado: precisa de estorno manual
            log.warning("reconcile.late_payment", status=registration.status.value)
            RECONCILIATION_OUTCOME.labels(source, "late_payment").inc()
        return ReconciliationResult(
            reg_id, registration.status.value, account_id=self._account(registration), events=events
        )

    def _close(
        self,
        registration: RegistrationEntity,
        target: RegistrationStatus,
        now: datetime,
        *,
        source: str,
    ) -> ReconciliationResult:
        reg_id = str(registration.id)
        log = logger.bind(registration_id=reg_id, source=source, target=target.value)
        if registration.status is not RegistrationStatus.PENDING_PAYMENT:
            log.info("reconcile.close_skipped", status=registration.status.value)
            return ReconciliationResult(reg_id, registration.status.value)

        if self.repo.compare_and_set(reg_id, RegistrationStatus.PENDING_PAYMENT, target, now):
            log.info(f"registration.{target.value}")
            RECONCILIATION_OUTCOME.labels(source, target.value).inc()
            return ReconciliationResult(
                reg_id,
                target.value,
                applied=True,
                events=[RegistrationClosedEvent(registration_id=reg_id, status=target.value, source=source)],
            )

        current = self.repo.find_by_id(reg_id)
        log.info("reconcile.conflict", current=current.status.value)
        RECONCILIATION_OUTCOME.labels(source, "conflict").inc()
        return ReconciliationResult(reg_id, current.status.value, account_id=self._account(current))

    def _provision(self, registration: RegistrationEntity, now: datetime, *, source: str) -> ReconciliationResult:
        reg_id = str(registration.id)
        log = logger.bind(registration_id=reg_id, source=source)

        if not self.repo.claim_provisioning(reg_id, now, self.lease):
            log.info("provisioning.conflict")
            PROVISIONING_COUNT.labels("conflict").inc()
            current = self.repo.find_by_id(reg_id)
            return ReconciliationResult(
                reg_id, current.status.value, account_id=self._account(current), detail="provisioning_in_progress"
            )

        try:
            account_id, created = self.provisioner.provision(registration, now)
        except UpstreamUnavailableError:
            # a reserva vence sozinha; a varredura de retomada tenta de novo
            log.warning("provisioning.upstream_unavailable")
            PROVISIONING_COUNT.labels("upstream_unavailable").inc()
            return ReconciliationResult(reg_id, RegistrationStatus.PAID.value, retry=True)

        finalized = self.repo.compare_and_set(
            reg_id,
            RegistrationStatus.PAID,
            RegistrationStatus.REGISTERED,
            now,
            account_id=account_id,
            registered_at=now,
            password_hash="",
        )
        if not finalized:
            log.info("provisioning.finalize_conflict", account_id=account_id)
            PROVISIONING_COUNT.labels("conflict").inc()
            return ReconciliationResult(reg_id, RegistrationStatus.REGISTERED.value, account_id=account_id)

        log.info("registration.registered", account_id=account_id, account_created=created)
        PROVISIONING_COUNT.labels("created" if created else "existing").inc()
        return ReconciliationResult(
            reg_id,
            RegistrationStatus.REGISTERED.value,
            applied=True,
            account_id=account_id,
            events=[
                AccountProvisionedEvent(
                    registration_id=reg_id,
                    account_id=account_id,
                    email=registration.email,
                    account_created=created,
                )
            ],
        )

    # ╭──────────────────────────────────────────────╮
    # │ Varreduras                                   │
    # ╰──────────────────────────────────────────────╯
    def expire_overdue(self, now: datetime, limit: int = 100) -> int:
        # sem cobrança: UPDATE em lote; com cobrança: um a um, consultando o gateway
        count = self.repo.expire_overdue(now)
        if count:
            RECONCILIATION_OUTCOME.labels("sweep", "expired").inc(count)
        for registration in self.repo.list_overdue_charged(now, limit):
            result = self.settle_overdue(registration, now, source="sweep")
            if result.applied and result.status == RegistrationStatus.EXPIRED.value:
                count += 1
        logger.info("registration.expire_sweep", expired=count)
        return count

    def resume_stalled(self, now: datetime, limit: int = 100) -> list[ReconciliationResult]:
        results = []
        for registration in self.repo.list_stalled_paid(now, self.lease, limit):
            results.append(self._provision(registration, now, source="sweep"))
        logger.info("registration.resume_sweep", processed=len(results))
        return results

    @staticmethod
    def _account(registration: RegistrationEntity) -> str | None:
        return str(registration.account_id) if registration.account_id else None
