from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from enum import StrEnum

from subscription_billing.core.application.dtos.asaas_dtos import (
    AsaasCustomerDTO,
    AsaasPaymentDTO,
    AsaasPixQrCodeDTO,
)


class GatewayCancelOutcome(StrEnum):
    CANCELLED = "cancelled"
    GONE = "gone"  # 404: já não existe no gateway


class PaymentGateway(ABC):
    """
    Porta para o gateway de cobrança. Toda chamada tem timeout e uma única
    tentativa; falhas viram UpstreamUnavailableError.
    """

    @abstractmethod
    def find_customer_by_email(self, email: str) -> AsaasCustomerDTO | None: ...

    @abstractmethod
    def create_customer(
        self, *, name: str, email: str, phone: str, cpf_cnpj: str | None = None
    ) -> AsaasCustomerDTO: ...

    @abstractmethod
    def create_payment(  # noqa: PLR0913
        self,
        *,
        customer_id: str,
        billing_type: str,
        value: float,
        due_date: date,
        description: str,
        external_reference: str,
    ) -> AsaasPaymentDTO: ...

    @abstractmethod
    def get_pix_qr_code(self, payment_id: str) -> AsaasPixQrCodeDTO: ...

    @abstractmethod
    def get_payment(self, payment_id: str) -> AsaasPaymentDTO: ...

    @abstractmethod
    def cancel_subscription(self, subscription_id: str) -> GatewayCancelOutcome: ...
