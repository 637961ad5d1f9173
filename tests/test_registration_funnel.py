from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from iafe_core.core.domain.exceptions import (
    AlreadyTerminalError,
    InvalidInputError,
    NotFoundError,
    UpstreamUnavailableError,
)

from plugins.django_interface.models import Registration
from subscription_billing.adapters.config.composition_root import container as sb_container
from subscription_billing.core.application.commands.registration_commands import (
    CreateChargeCommand,
    StartRegistrationCommand,
)
from subscription_billing.core.application.dtos.asaas_dtos import (
    AsaasCustomerDTO,
    AsaasPaymentDTO,
    AsaasPixQrCodeDTO,
)
from subscription_billing.core.application.queries.registration_queries import GetOpenRegistrationQuery
from tests.helpers.factories import make_account, make_plan, make_registration
from tests.helpers.patches import patch_gateway


def _payload(**overrides):
    data = {
        "email": "Joao@Example.com",
        "full_name": "João   Lima",
        "phone": "(11) 98765-4321",
        "password": "segredo123",
        "terms_accepted": True,
    }
    data.update(overrides)
    return data


class StartRegistrationTests(TestCase):
    def setUp(self):
        self.bus = sb_container.command_bus()
        self.plan = make_plan()
        self.gw = patch_gateway(
            self,
            find_customer_by_email=None,
            create_customer=AsaasCustomerDTO(id="cus_new"),
        )

    def test_creates_pending_record_with_hashed_password(self):
        res = self.bus.dispatch(StartRegistrationCommand(payload=_payload()))

        self.assertFalse(res.reused)
        self.assertEqual(res.customer_id, "cus_new")
        reg = Registration.objects.get(id=res.registration_id)
        self.assertEqual(reg.email, "joao@example.com")
        self.assertEqual(reg.full_name, "João Lima")
        self.assertEqual(reg.phone, "5511987654321")
        self.assertEqual(reg.status, Registration.Status.PENDING_PAYMENT)
        self.assertEqual(reg.plan_id, self.plan.id)
        self.assertTrue(reg.password_hash.startswith("$2"))
        self.assertNotIn("segredo123", reg.password_hash)
        self.assertIsNotNone(reg.terms_accepted_at)

    def test_second_start_reuses_open_record_and_resets_charge(self):
        first = self.bus.dispatch(StartRegistrationCommand(payload=_payload()))
        Registration.objects.filter(id=first.registration_id).update(asaas_payment_id="pay_old", pix_code="000")

        second = self.bus.dispatch(StartRegistrationCommand(payload=_payload(full_name="João Lima Neto")))

        self.assertTrue(second.reused)
        self.assertEqual(second.registration_id, first.registration_id)
        self.assertEqual(Registration.objects.filter(email="joao@example.com").count(), 1)
        reg = Registration.objects.get(id=first.registration_id)
        self.assertIsNone(reg.asaas_payment_id)
        self.assertIsNone(reg.pix_code)
        self.assertEqual(reg.full_name, "João Lima Neto")
        # cliente já vinculado: o gateway não é consultado de novo
        self.assertEqual(self.gw["find_customer_by_email"].call_count, 1)

    def test_overdue_open_record_is_expired_and_replaced(self):
        old = make_registration(email="joao@example.com", expires_at=timezone.now() - timedelta(minutes=1))

        res = self.bus.dispatch(StartRegistrationCommand(payload=_payload()))

        self.assertNotEqual(res.registration_id, str(old.id))
        old.refresh_from_db()
        self.assertEqual(old.status, Registration.Status.EXPIRED)

    def test_overdue_record_paid_at_gateway_is_not_replaced(self):
        old = make_registration(
            email="joao@example.com", plan=self.plan, asaas_payment_id="pay_1",
            expires_at=timezone.now() - timedelta(minutes=1),
        )
        patch_gateway(self, get_payment=AsaasPaymentDTO(id="pay_1", status="RECEIVED"))

        with self.assertRaises(AlreadyTerminalError) as ctx:
            self.bus.dispatch(StartRegistrationCommand(payload=_payload()))

        self.assertEqual(ctx.exception.code, "registration_already_paid")
        old.refresh_from_db()
        self.assertEqual(old.status, Registration.Status.REGISTERED)
        self.assertEqual(Registration.objects.count(), 1)

    def test_existing_account_is_rejected(self):
        make_account(email="joao@example.com")
        with self.assertRaises(AlreadyTerminalError) as ctx:
            self.bus.dispatch(StartRegistrationCommand(payload=_payload()))
        self.assertEqual(ctx.exception.code, "account_exists")

    def test_already_paid_is_rejected(self):
        make_registration(email="joao@example.com", status=Registration.Status.PAID)
        with self.assertRaises(AlreadyTerminalError) as ctx:
            self.bus.dispatch(StartRegistrationCommand(payload=_payload()))
        self.assertEqual(ctx.exception.code, "registration_already_paid")

    def test_invalid_input_lists_fields_and_writes_nothing(self):
        with self.assertRaises(InvalidInputError) as ctx:
            self.bus.dispatch(StartRegistrationCommand(payload=_payload(email="nope", password="1")))
        self.assertIn("email", ctx.exception.context["fields"])
        self.assertIn("password", ctx.exception.context["fields"])
        self.assertFalse(Registration.objects.exists())

    def test_gateway_down_leaves_no_record(self):
        self.gw["find_customer_by_email"].side_effect = UpstreamUnavailableError()
        with self.assertRaises(UpstreamUnavailableError):
            self.bus.dispatch(StartRegistrationCommand(payload=_payload()))
        self.assertFalse(Registration.objects.exists())

    def test_unknown_plan_is_invalid(self):
        with self.assertRaises(InvalidInputError) as ctx:
            self.bus.dispatch(
                StartRegistrationCommand(payload=_payload(plan_id="00000000-0000-0000-0000-000000000000"))
            )
        self.assertEqual(ctx.exception.code, "invalid_plan")

    def test_insert_race_reuses_the_winner(self):
        """O primeiro find não vê nada; o insert bate na UK parcial e o vencedor é reaproveitado."""
        winner = make_registration(email="joao@example.com")
        repo = sb_container.registration_repo()
        real_find = repo.find_open_by_email
        calls = {"n": 0}

        def stale_then_real(email):
            calls["n"] += 1
            return None if calls["n"] == 1 else real_find(email)

        repo.find_open_by_email = stale_then_real
        self.addCleanup(delattr, repo, "find_open_by_email")

        res = self.bus.dispatch(StartRegistrationCommand(payload=_payload()))

        self.assertTrue(res.reused)
        self.assertEqual(res.registration_id, str(winner.id))
        self.assertEqual(Registration.objects.filter(email="joao@example.com").count(), 1)


class CreateChargeTests(TestCase):
    def setUp(self):
        self.bus = sb_container.command_bus()
        self.plan = make_plan(price="29.90")

    def test_pix_charge_is_attached_to_record(self):
        reg = make_registration(plan=self.plan)
        gw = patch_gateway(
            self,
            create_payment=AsaasPaymentDTO(id="pay_1", status="PENDING", value=29.9, invoiceUrl="https://i/1"),
            get_pix_qr_code=AsaasPixQrCodeDTO(payload="000201...", encodedImage="iVBOR", expirationDate="2026-01-02"),
        )

        res = self.bus.dispatch(CreateChargeCommand(registration_id=str(reg.id), billing_type="pix"))

        self.assertEqual(res.payment_id, "pay_1")
        self.assertEqual(res.pix_code, "000201...")
        kwargs = gw["create_payment"].call_args.kwargs
        self.assertEqual(kwargs["external_reference"], str(reg.id))
        self.assertEqual(kwargs["value"], 29.9)
        self.assertEqual(kwargs["due_date"], timezone.localdate() + timedelta(days=1))
        reg.refresh_from_db()
        self.assertEqual(reg.asaas_payment_id, "pay_1")
        self.assertEqual(reg.payment_method, "PIX")
        self.assertEqual(reg.pix_qr_code, "iVBOR")

    def test_boleto_skips_qr_code(self):
        reg = make_registration(plan=self.plan)
        gw = patch_gateway(
            self,
            create_payment=AsaasPaymentDTO(id="pay_2", status="PENDING", bankSlipUrl="https://b/2"),
            get_pix_qr_code=AsaasPixQrCodeDTO(),
        )
        res = self.bus.dispatch(CreateChargeCommand(registration_id=str(reg.id), billing_type="BOLETO"))
        self.assertEqual(res.boleto_url, "https://b/2")
        gw["get_pix_qr_code"].assert_not_called()

    def test_expired_record_rejected(self):
        reg = make_registration(plan=self.plan, expires_at=timezone.now() - timedelta(seconds=1))
        with self.assertRaises(AlreadyTerminalError) as ctx:
            self.bus.dispatch(CreateChargeCommand(registration_id=str(reg.id), billing_type="PIX"))
        self.assertEqual(ctx.exception.code, "registration_expired")
        reg.refresh_from_db()
        self.assertEqual(reg.status, Registration.Status.EXPIRED)

    def test_overdue_charged_record_kept_when_gateway_is_down(self):
        reg = make_registration(
            plan=self.plan, asaas_payment_id="pay_1", expires_at=timezone.now() - timedelta(seconds=1)
        )
        gw = patch_gateway(self, get_payment=UpstreamUnavailableError(), create_payment=AsaasPaymentDTO(id="x"))
        with self.assertRaises(UpstreamUnavailableError) as ctx:
            self.bus.dispatch(CreateChargeCommand(registration_id=str(reg.id), billing_type="PIX"))
        self.assertEqual(ctx.exception.code, "payment_status_unknown")
        gw["create_payment"].assert_not_called()
        reg.refresh_from_db()
        self.assertEqual(reg.status, Registration.Status.PENDING_PAYMENT)

    def test_invalid_billing_type(self):
        reg = make_registration(plan=self.plan)
        with self.assertRaises(InvalidInputError):
            self.bus.dispatch(CreateChargeCommand(registration_id=str(reg.id), billing_type="BITCOIN"))

    def test_unknown_registration(self):
        with self.assertRaises(NotFoundError):
            self.bus.dispatch(CreateChargeCommand(registration_id="not-a-uuid", billing_type="PIX"))


class GetOpenRegistrationTests(TestCase):
    def setUp(self):
        self.bus = sb_container.query_bus()

    def test_returns_open_record(self):
        reg = make_registration(email="joao@example.com", asaas_payment_id="pay_1")
        view = self.bus.dispatch(GetOpenRegistrationQuery(email="JOAO@example.com"))
        self.assertEqual(view.registration_id, str(reg.id))
        self.assertEqual(view.payment_id, "pay_1")

    def test_overdue_record_is_expired_on_read(self):
        reg = make_registration(email="joao@example.com", expires_at=timezone.now() - timedelta(hours=1))
        with self.assertRaises(NotFoundError):
            self.bus.dispatch(GetOpenRegistrationQuery(email="joao@example.com"))
        reg.refresh_from_db()
        self.assertEqual(reg.status, Registration.Status.EXPIRED)

    def test_overdue_record_paid_at_gateway_is_no_longer_open(self):
        reg = make_registration(
            email="joao@example.com", plan=make_plan(), asaas_payment_id="pay_1",
            expires_at=timezone.now() - timedelta(hours=1),
        )
        patch_gateway(self, get_payment=AsaasPaymentDTO(id="pay_1", status="CONFIRMED"))
        with self.assertRaises(NotFoundError):
            self.bus.dispatch(GetOpenRegistrationQuery(email="joao@example.com"))
        reg.refresh_from_db()
        self.assertEqual(reg.status, Registration.Status.REGISTERED)
