from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from iafe_core.adapters.utils.phone_utils import normalize_phone
from iafe_core.core.application.services.phone_identity_resolver import only_digits
from iafe_core.core.domain.events.events import DomainEvent
from iafe_core.core.domain.exceptions import InvalidInputError
from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator

MIN_PASSWORD_LENGTH = 6


# ───────────────────────────────────────────────
# Entradas (validadas antes de qualquer escrita)
# ───────────────────────────────────────────────
class _SignupInput(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=2, max_length=150)
    phone: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=128)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("full_name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        return " ".join(v.split())

    @field_validator("phone")
    @classmethod
    def _valid_phone(cls, v: str) -> str:
        phone = normalize_phone(v)
        if phone is None:
            raise ValueError("telefone inválido")
        return phone


class StartRegistrationInput(_SignupInput):
    cpf_cnpj: str | None = None
    plan_id: str | None = None
    terms_accepted: bool = False

    @field_validator("cpf_cnpj")
    @classmethod
    def _cpf_cnpj_digits(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        digits = only_digits(v)
        if len(digits) not in (11, 14):
            raise ValueError("CPF/CNPJ deve ter 11 ou 14 dígitos")
        return digits


class TrialRegistrationInput(_SignupInput):
    otp_code: str = Field(pattern=r"^\d{6}$")
    plan_id: str | None = None


class ChargeInput(BaseModel):
    billing_type: Literal["PIX", "BOLETO", "CREDIT_CARD"]


# ───────────────────────────────────────────────
# Resultados
# ───────────────────────────────────────────────
@dataclass(frozen=True)
class RegistrationStartedResult:
    registration_id: str
    customer_id: str
    status: str
    expires_at: datetime
    reused: bool
    events: list[DomainEvent] = field(default_factory=list)


@dataclass(frozen=True)
class ChargeCreatedResult:
    registration_id: str
    payment_id: str
    billing_type: str
    value: float | None
    due_date: str | None
    invoice_url: str | None = None
    boleto_url: str | None = None
    pix_code: str | None = None
    pix_qr_code: str | None = None
    pix_expiration: str | None = None


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Resultado de webhook/poll/varredura.

    `applied` indica se ESTA chamada fez a transição; quem perdeu a corrida
    recebe applied=False e o status vencedor, sem erro.
    """

    registration_id: str | None
    status: str
    applied: bool = False
    retry: bool = False
    account_id: str | None = None
    detail: str = ""
    events: list[DomainEvent] = field(default_factory=list)

    @property
    def is_paid(self) -> bool:
        return self.status in ("paid", "registered")


@dataclass(frozen=True)
class TrialRegisteredResult:
    account_id: str
    subscription_id: str
    trial_ends_at: datetime
    events: list[DomainEvent] = field(default_factory=list)


@dataclass(frozen=True)
class OpenRegistrationView:
    registration_id: str
    email: str
    status: str
    expires_at: datetime
    payment_id: str | None
    payment_method: str | None
    invoice_url: str | None
    boleto_url: str | None
    pix_code: str | None
    pix_qr_code: str | None


def parse_input(model: type[BaseModel], payload: dict[str, Any] | None) -> Any:
    """Valida a entrada; erros de pydantic viram InvalidInputError com os campos."""
    try:
        return model.model_validate(payload or {})
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise InvalidInputError("Dados inválidos.", code="invalid_input", fields=fields) from exc
