from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from iafe_core.core.domain.entities._base import EntityMixin
from iafe_core.core.domain.exceptions import AlreadyTerminalError, IllegalTransitionError


class RegistrationStatus(StrEnum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    REGISTERED = "registered"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_open(self) -> bool:
        return self in OPEN_STATUSES


OPEN_STATUSES = frozenset({RegistrationStatus.PENDING_PAYMENT, RegistrationStatus.PAID})
TERMINAL_STATUSES = frozenset(
    {RegistrationStatus.REGISTERED, RegistrationStatus.EXPIRED, RegistrationStatus.CANCELLED}
)

# pending_payment ─┬─ pagamento confirmado ────────► paid ── conta criada ──► registered
#                  ├─ prazo vencido ───────────────► expired
#                  └─ cobrança removida/estornada ─► cancelled
_TRANSITIONS: dict[RegistrationStatus, frozenset[RegistrationStatus]] = {
    RegistrationStatus.PENDING_PAYMENT: frozenset(
        {RegistrationStatus.PAID, RegistrationStatus.EXPIRED, RegistrationStatus.CANCELLED}
    ),
    RegistrationStatus.PAID: frozenset({RegistrationStatus.REGISTERED}),
    RegistrationStatus.REGISTERED: frozenset(),
    RegistrationStatus.EXPIRED: frozenset(),
    RegistrationStatus.CANCELLED: frozenset(),
}


def transition(current: RegistrationStatus | str, target: RegistrationStatus | str) -> RegistrationStatus:
    """
    Única função que decide se uma transição é legal.

    Levanta AlreadyTerminalError quando `current` é terminal e
    IllegalTransitionError para qualquer outro par fora da tabela.
    """
    current, target = RegistrationStatus(current), RegistrationStatus(target)
    if target in _TRANSITIONS[current]:
        return target
    if current.is_terminal:
        raise AlreadyTerminalError(
            f"Cadastro já finalizado ({current}).", current=current.value, target=target.value
        )
    raise IllegalTransitionError(
        f"Transição inválida: {current} → {target}.", current=current.value, target=target.value
    )


@dataclass(slots=True)
class RegistrationEntity(EntityMixin):
    id: uuid.UUID
    email: str
    full_name: str
    phone: str
    expires_at: datetime
    status: RegistrationStatus = RegistrationStatus.PENDING_PAYMENT
    password_hash: str = ""
    cpf_cnpj: str | None = None
    plan_id: uuid.UUID | None = None
    asaas_customer_id: str | None = None
    asaas_payment_id: str | None = None
    payment_method: str | None = None
    invoice_url: str | None = None
    boleto_url: str | None = None
    pix_code: str | None = None
    pix_qr_code: str | None = None
    paid_at: datetime | None = None
    provisioning_claimed_at: datetime | None = None
    registered_at: datetime | None = None
    account_id: uuid.UUID | None = None
    terms_accepted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        self.status = RegistrationStatus(self.status)

    def is_past_deadline(self, now: datetime) -> bool:
        return self.expires_at <= now

    def effective_status(self, now: datetime) -> RegistrationStatus:
        """Prazo vencido em pending_payment vale como expired, com ou sem varredura."""
        if self.status is RegistrationStatus.PENDING_PAYMENT and self.is_past_deadline(now):
            return RegistrationStatus.EXPIRED
        return self.status
