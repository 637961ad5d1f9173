from __future__ import annotations

from datetime import date

from django.conf import settings
from iafe_core.adapters.api_clients.base_api_client import BaseAPIClient
from iafe_core.core.domain.exceptions import NotFoundError

from subscription_billing.core.application.dtos.asaas_dtos import (
    AsaasCustomerDTO,
    AsaasCustomerListDTO,
    AsaasPaymentDTO,
    AsaasPixQrCodeDTO,
)
from subscription_billing.core.domain.repositories.payment_gateway import (
    GatewayCancelOutcome,
    PaymentGateway,
)

PIX_EXPIRATION_SECONDS = 24 * 60 * 60


class AsaasAPIClient(BaseAPIClient, PaymentGateway):
    """
    Cliente da API Asaas v3 (cobranças avulsas + assinaturas).

    Sem retry interno: o Asaas reenvia webhooks e o front volta a consultar
    o status, então uma falha aqui só precisa ser reportada.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url or settings.ASAAS_API_URL,
            default_headers={
                "accept": "application/json",
                "content-type": "application/json",
                "access_token": api_key if api_key is not None else settings.ASAAS_API_KEY,
                "User-Agent": "iafe-financas",
            },
            timeout=timeout or settings.ASAAS_TIMEOUT,
            retries=0,
        )

    # ─── clientes ─────────────────────────────────────────────
    def find_customer_by_email(self, email: str) -> AsaasCustomerDTO | None:
        result = self._get("/customers", params={"email": email}, response_model=AsaasCustomerListDTO)
        return result.data[0] if result.data else None

    def create_customer(
        self, *, name: str, email: str, phone: str, cpf_cnpj: str | None = None
    ) -> AsaasCustomerDTO:
        payload = {
            "name": name,
            "email": email,
            "mobilePhone": phone,
            "notificationDisabled": False,
        }
        if cpf_cnpj:
            payload["cpfCnpj"] = cpf_cnpj
        customer = self._post("/customers", json=payload, response_model=AsaasCustomerDTO)
        self.log.info("asaas.customer_created", customer_id=customer.id)
        return customer

    # ─── cobranças ────────────────────────────────────────────
    def create_payment(  # noqa: PLR0913
        self,
        *,
        customer_id: str,
        billing_type: str,
        value: float,
        due_date: date,
        description: str,
        external_reference: str,
    ) -> AsaasPaymentDTO:
        payload = {
            "customer": customer_id,
            "billingType": billing_type,
            "value": value,
            "dueDate": due_date.isoformat(),
            "description": description,
            "externalReference": external_reference,
        }
        if billing_type == "PIX":
            payload["pixExpirationSeconds"] = PIX_EXPIRATION_SECONDS
        payment = self._post("/payments", json=payload, response_model=AsaasPaymentDTO)
        self.log.info("asaas.payment_created", payment_id=payment.id, billing_type=billing_type)
        return payment

    def get_pix_qr_code(self, payment_id: str) -> AsaasPixQrCodeDTO:
        return self._get(f"/payments/{payment_id}/pixQrCode", response_model=AsaasPixQrCodeDTO)

    def get_payment(self, payment_id: str) -> AsaasPaymentDTO:
        return self._get(f"/payments/{payment_id}", response_model=AsaasPaymentDTO)

    # ─── assinaturas ──────────────────────────────────────────
    def cancel_subscription(self, subscription_id: str) -> GatewayCancelOutcome:
        try:
            resp = self._delete(f"/subscriptions/{subscription_id}")
        except NotFoundError:
            self.log.info("asaas.subscription_gone", subscription_id=subscription_id)
            return GatewayCancelOutcome.GONE
        self.log.info("asaas.subscription_cancelled", subscription_id=subscription_id, status_code=resp.status_code)
        return GatewayCancelOutcome.CANCELLED
