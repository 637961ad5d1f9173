from datetime import date
from unittest.mock import MagicMock

import requests
from django.test import SimpleTestCase
from iafe_core.core.domain.exceptions import InvalidInputError, NotFoundError, UpstreamUnavailableError

from subscription_billing.adapters.api_clients.asaas_api_client import AsaasAPIClient
from subscription_billing.core.application.dtos.asaas_dtos import AsaasWebhookDTO
from subscription_billing.core.application.services.payment_status_classifier import (
    WebhookOutcome,
    classify_webhook,
    is_paid_status,
)
from subscription_billing.core.domain.repositories.payment_gateway import GatewayCancelOutcome


def _response(status_code: int, body=None, text: str = ""):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    resp.text = text
    return resp


class AsaasClientTests(SimpleTestCase):
    def setUp(self):
        self.client = AsaasAPIClient(base_url="https://asaas.test/v3", api_key="key", timeout=3)
        self.client.session = MagicMock()

    def test_every_call_has_timeout_and_access_token(self):
        self.client.session.request.return_value = _response(200, {"id": "pay_1", "status": "PENDING"})
        self.client.get_payment("pay_1")
        _, kwargs = self.client.session.request.call_args
        self.assertEqual(kwargs["timeout"], 3)

        fresh = AsaasAPIClient(base_url="https://asaas.test/v3", api_key="key", timeout=3)
        self.assertEqual(fresh.session.headers["access_token"], "key")

    def test_get_payment_parses_dto(self):
        self.client.session.request.return_value = _response(
            200, {"id": "pay_1", "status": "RECEIVED", "externalReference": "reg-1", "novoCampo": 1}
        )
        payment = self.client.get_payment("pay_1")
        self.assertEqual(payment.status, "RECEIVED")
        self.assertEqual(payment.externalReference, "reg-1")
        method, url = self.client.session.request.call_args[0]
        self.assertEqual((method, url), ("GET", "https://asaas.test/v3/payments/pay_1"))

    def test_timeout_maps_to_upstream_unavailable(self):
        self.client.session.request.side_effect = requests.Timeout("slow")
        with self.assertRaises(UpstreamUnavailableError) as ctx:
            self.client.get_payment("pay_1")
        self.assertEqual(ctx.exception.code, "upstream_timeout")

    def test_connection_error_and_5xx_map_to_upstream_unavailable(self):
        self.client.session.request.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(UpstreamUnavailableError):
            self.client.get_payment("pay_1")

        self.client.session.request.side_effect = None
        self.client.session.request.return_value = _response(502, text="bad gateway")
        with self.assertRaises(UpstreamUnavailableError):
            self.client.get_payment("pay_1")

    def test_unparseable_2xx_is_not_a_negative_answer(self):
        self.client.session.request.return_value = _response(200, {"unexpected": True})
        with self.assertRaises(UpstreamUnavailableError) as ctx:
            self.client.get_payment("pay_1")
        self.assertEqual(ctx.exception.code, "upstream_bad_payload")

    def test_4xx_carries_gateway_description(self):
        self.client.session.request.return_value = _response(
            400, {"errors": [{"code": "invalid_cpfCnpj", "description": "CPF inválido"}]}
        )
        with self.assertRaises(InvalidInputError) as ctx:
            self.client.create_customer(name="Ana", email="a@x.com", phone="5511999990000", cpf_cnpj="1")
        self.assertEqual(ctx.exception.message, "CPF inválido")

    def test_404_on_get_is_not_found(self):
        self.client.session.request.return_value = _response(404, {"errors": []})
        with self.assertRaises(NotFoundError):
            self.client.get_payment("pay_x")

    def test_cancel_subscription_gone_on_404(self):
        self.client.session.request.return_value = _response(404, {"errors": []})
        self.assertIs(self.client.cancel_subscription("sub_1"), GatewayCancelOutcome.GONE)

        self.client.session.request.return_value = _response(200, {"deleted": True, "id": "sub_1"})
        self.assertIs(self.client.cancel_subscription("sub_1"), GatewayCancelOutcome.CANCELLED)

    def test_pix_payment_sets_expiration(self):
        self.client.session.request.return_value = _response(200, {"id": "pay_2", "status": "PENDING"})
        self.client.create_payment(
            customer_id="cus_1",
            billing_type="PIX",
            value=29.9,
            due_date=date(2026, 1, 2),
            description="Plano",
            external_reference="reg-1",
        )
        body = self.client.session.request.call_args.kwargs["json"]
        self.assertEqual(body["pixExpirationSeconds"], 86400)
        self.assertEqual(body["dueDate"], "2026-01-02")
        self.assertEqual(body["externalReference"], "reg-1")

    def test_find_customer_by_email(self):
        self.client.session.request.return_value = _response(200, {"data": [], "totalCount": 0})
        self.assertIsNone(self.client.find_customer_by_email("a@x.com"))
        self.client.session.request.return_value = _response(200, {"data": [{"id": "cus_9"}]})
        self.assertEqual(self.client.find_customer_by_email("a@x.com").id, "cus_9")


class PaymentStatusClassifierTests(SimpleTestCase):
    def test_paid_statuses(self):
        for status in ("CONFIRMED", "RECEIVED", "received_in_cash", " Received "):
            self.assertTrue(is_paid_status(status), status)

    def test_unknown_or_pending_is_not_paid(self):
        for status in ("PENDING", "OVERDUE", "SOMETHING_NEW", "", None):
            self.assertFalse(is_paid_status(status), status)

    def test_event_mapping(self):
        self.assertIs(classify_webhook("PAYMENT_CONFIRMED", "PENDING"), WebhookOutcome.PAID)
        self.assertIs(classify_webhook("PAYMENT_RECEIVED_IN_CASH", None), WebhookOutcome.PAID)
        self.assertIs(classify_webhook("PAYMENT_OVERDUE", "OVERDUE"), WebhookOutcome.EXPIRED)
        self.assertIs(classify_webhook("PAYMENT_DELETED", "PENDING"), WebhookOutcome.CANCELLED)
        self.assertIs(classify_webhook("PAYMENT_REFUNDED", "REFUNDED"), WebhookOutcome.CANCELLED)
        self.assertIs(classify_webhook("PAYMENT_UPDATED", "RECEIVED"), WebhookOutcome.PAID)
        self.assertIs(classify_webhook("PAYMENT_CREATED", "PENDING"), WebhookOutcome.IGNORED)

    def test_relay_envelope_is_unwrapped(self):
        dto = AsaasWebhookDTO.model_validate(
            {"body": {"event": "PAYMENT_RECEIVED", "payment": {"id": "pay_1", "status": "RECEIVED"}}}
        )
        self.assertEqual(dto.event, "PAYMENT_RECEIVED")
        self.assertEqual(dto.payment.id, "pay_1")
