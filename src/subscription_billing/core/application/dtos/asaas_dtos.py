from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ───────────────────────────────────────────────
# DTOs da API Asaas (v3)
# Campos extras são ignorados: a API adiciona campos sem aviso.
# ───────────────────────────────────────────────


class _AsaasModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AsaasCustomerDTO(_AsaasModel):
    id: str
    name: str | None = None
    email: str | None = None
    cpfCnpj: str | None = None
    mobilePhone: str | None = None


class AsaasCustomerListDTO(_AsaasModel):
    data: list[AsaasCustomerDTO] = Field(default_factory=list)
    totalCount: int | None = None


class AsaasPaymentDTO(_AsaasModel):
    id: str
    status: str = ""
    customer: str | None = None
    billingType: str | None = None
    value: float | None = None
    dueDate: str | None = None
    externalReference: str | None = None
    invoiceUrl: str | None = None
    bankSlipUrl: str | None = None
    paymentDate: str | None = None
    confirmedDate: str | None = None


class AsaasPixQrCodeDTO(_AsaasModel):
    payload: str | None = None
    encodedImage: str | None = None
    expirationDate: str | None = None


class AsaasWebhookDTO(_AsaasModel):
    """
    Evento de cobrança do Asaas.

    Aceita também o envelope usado por relays (n8n): {"body": {...}}.
    """

    event: str = ""
    payment: AsaasPaymentDTO | None = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_relay_envelope(cls, data: Any) -> Any:
        while isinstance(data, dict) and "event" not in data and isinstance(data.get("body"), dict):
            data = data["body"]
        return data
