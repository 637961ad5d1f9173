from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any

from subscription_billing.core.domain.entities.registration_entity import (
    RegistrationEntity,
    RegistrationStatus,
)


class RegistrationRepository(ABC):
    @abstractmethod
    def find_by_id(self, registration_id: str) -> RegistrationEntity | None:
        """Retorna o cadastro por ID."""
        ...

    @abstractmethod
    def find_by_payment_id(self, payment_id: str) -> RegistrationEntity | None:
        """Retorna o cadastro vinculado à cobrança do gateway."""
        ...

    @abstractmethod
    def find_open_by_email(self, email: str) -> RegistrationEntity | None:
        """Cadastro em pending_payment ou paid para o e-mail (no máximo um)."""
        ...

    @abstractmethod
    def find_open_by_customer(self, customer_id: str) -> RegistrationEntity | None:
        """Cadastro aberto mais recente do cliente do gateway."""
        ...

    @abstractmethod
    def create(self, entity: RegistrationEntity) -> RegistrationEntity:
        """
        Insere um cadastro novo.
        Levanta ConflictError se já existir cadastro aberto para o e-mail.
        """
        ...

    @abstractmethod
    def restart_pending(self, registration_id: str, now: datetime, **fields: Any) -> bool:
        """
        Reaproveita um cadastro pending_payment: sobrescreve dados e zera a
        cobrança anterior. Só afeta a linha se ela ainda estiver pending_payment.
        """
        ...

    @abstractmethod
    def attach_charge(self, registration_id: str, now: datetime, **fields: Any) -> bool:
        """Grava os dados da cobrança, condicionado a pending_payment."""
        ...

    @abstractmethod
    def compare_and_set(
        self,
        registration_id: str,
        expected: RegistrationStatus,
        target: RegistrationStatus,
        now: datetime,
        **changes: Any,
    ) -> bool:
        """
        Escrita condicionada: aplica `target` somente se o status atual for
        `expected`. Retorna False quando outro escritor venceu (zero linhas).
        """
        ...

    @abstractmethod
    def claim_provisioning(self, registration_id: str, now: datetime, lease: timedelta) -> bool:
        """
        Reserva a criação da conta para um único chamador: registro paid sem
        reserva, ou com reserva mais antiga que `lease`.
        """
        ...

    @abstractmethod
    def expire_overdue(self, now: datetime) -> int:
        """
        pending_payment com prazo vencido e sem cobrança → expired, em lote.
        Retorna a contagem. Registros com cobrança ficam para list_overdue_charged.
        """
        ...

    @abstractmethod
    def list_overdue_charged(self, now: datetime, limit: int = 100) -> list[RegistrationEntity]:
        """pending_payment vencidos que têm cobrança no gateway (precisam de consulta antes de expirar)."""
        ...

    @abstractmethod
    def list_stalled_paid(self, now: datetime, lease: timedelta, limit: int = 100) -> list[RegistrationEntity]:
        """Registros paid cuja reserva de provisionamento expirou (ou nunca existiu)."""
        ...
