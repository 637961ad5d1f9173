"""
Conciliação do funil: webhook, consulta do front e varreduras.

O gateway é sempre mockado; o banco (SQLite de teste) é real, então as
transições condicionadas e as constraints são exercitadas de verdade.
"""
from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone
from iafe_core.adapters.repositories.account_repo_impl import AccountRepoImpl
from iafe_core.core.domain.exceptions import InvalidInputError, NotFoundError, UpstreamUnavailableError

from plugins.django_interface.models import Account, PaymentHistory, Registration, Subscription
from subscription_billing.adapters.repositories.registration_repo_impl import RegistrationRepoImpl
from subscription_billing.adapters.config.composition_root import container as sb_container
from subscription_billing.core.application.commands.registration_commands import (
    ExpireRegistrationsCommand,
    PollPaymentStatusCommand,
    ReconcileWebhookCommand,
    ResumeProvisioningCommand,
)
from subscription_billing.core.application.dtos.asaas_dtos import AsaasPaymentDTO
from subscription_billing.core.domain.events.events import AccountProvisionedEvent, RegistrationPaidEvent
from tests.helpers.factories import make_account, make_plan, make_registration, make_subscription
from tests.helpers.patches import patch_gateway


def _webhook(event="PAYMENT_RECEIVED", payment_id="pay_1", status="RECEIVED", **payment):
    return {"event": event, "payment": {"id": payment_id, "status": status, **payment}}


class WebhookReconciliationTests(TestCase):
    def setUp(self):
        self.bus = sb_container.command_bus()
        self.plan = make_plan()
        self.reg = make_registration(plan=self.plan, asaas_payment_id="pay_1", payment_method="PIX")
        self.gw = patch_gateway(self, get_payment=NotFoundError())

    def test_paid_webhook_provisions_account_once(self):
        res = self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook(externalReference=str(self.reg.id))))

        self.assertEqual(res.status, "registered")
        self.assertTrue(res.applied)
        self.assertEqual([type(e) for e in res.events], [RegistrationPaidEvent, AccountProvisionedEvent])

        self.reg.refresh_from_db()
        account = Account.objects.get(email=self.reg.email)
        self.assertEqual(self.reg.status, Registration.Status.REGISTERED)
        self.assertEqual(self.reg.account_id, account.id)
        self.assertEqual(self.reg.password_hash, "")
        self.assertEqual(account.password_hash, "$2b$12$funnelhash")
        sub = Subscription.objects.get(account=account)
        self.assertEqual(sub.status, Subscription.Status.ACTIVE)
        self.assertFalse(sub.is_trial)
        self.assertTrue(PaymentHistory.objects.filter(asaas_payment_id="pay_1", account=account).exists())

    def test_redelivery_is_a_no_op(self):
        payload = _webhook(externalReference=str(self.reg.id))
        real = AccountRepoImpl.create_account
        with patch.object(AccountRepoImpl, "create_account", autospec=True, side_effect=real) as spy:
            first = self.bus.dispatch(ReconcileWebhookCommand(payload=payload))
            second = self.bus.dispatch(ReconcileWebhookCommand(payload=payload))
            third = self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook(event="PAYMENT_CONFIRMED",
                                                                                   status="CONFIRMED",
                                                                                   externalReference=str(self.reg.id))))

        self.assertTrue(first.applied)
        self.assertFalse(second.applied)
        self.assertFalse(third.applied)
        self.assertEqual(second.status, "registered")
        self.assertEqual(second.account_id, first.account_id)
        self.assertEqual(spy.call_count, 1)
        self.assertEqual(Account.objects.count(), 1)
        self.assertEqual(PaymentHistory.objects.count(), 1)

    def test_lookup_by_stored_payment_id(self):
        res = self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook()))
        self.assertEqual(res.registration_id, str(self.reg.id))
        self.gw["get_payment"].assert_not_called()

    def test_lookup_through_gateway_external_reference(self):
        other = make_registration(email="maria@example.com", plan=self.plan, asaas_customer_id="cus_2")
        self.gw["get_payment"].side_effect = None
        self.gw["get_payment"].return_value = AsaasPaymentDTO(
            id="pay_9", status="RECEIVED", externalReference=str(other.id)
        )
        res = self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook(payment_id="pay_9")))
        self.assertEqual(res.registration_id, str(other.id))
        self.assertEqual(res.status, "registered")

    def test_lookup_by_gateway_customer(self):
        other = make_registration(email="maria@example.com", plan=self.plan, asaas_customer_id="cus_2")
        res = self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook(payment_id="pay_9", customer="cus_2")))
        self.assertEqual(res.registration_id, str(other.id))

    def test_unknown_payment_is_acknowledged(self):
        res = self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook(payment_id="pay_404", customer="cus_x")))
        self.assertEqual(res.status, "not_found")
        self.assertFalse(Account.objects.exists())

    def test_gateway_down_without_local_match_raises_for_redelivery(self):
        self.gw["get_payment"].side_effect = UpstreamUnavailableError()
        with self.assertRaises(UpstreamUnavailableError):
            self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook(payment_id="pay_404")))

    def test_overdue_event_expires_pending_record(self):
        res = self.bus.dispatch(
            ReconcileWebhookCommand(payload=_webhook(event="PAYMENT_OVERDUE", status="OVERDUE"))
        )
        self.assertEqual(res.status, "expired")
        self.reg.refresh_from_db()
        self.assertEqual(self.reg.status, Registration.Status.EXPIRED)

    def test_deleted_event_cancels_only_pending(self):
        res = self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook(event="PAYMENT_DELETED", status="DELETED")))
        self.assertEqual(res.status, "cancelled")

        # já cancelado: novo evento de pagamento não cria conta
        late = self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook()))
        self.assertEqual(late.status, "cancelled")
        self.assertFalse(Account.objects.exists())

    def test_paid_after_deadline_is_still_honoured(self):
        Registration.objects.filter(id=self.reg.id).update(expires_at=timezone.now() - timedelta(hours=1))
        res = self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook()))
        self.assertEqual(res.status, "registered")

    def test_ignored_event(self):
        res = self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook(event="PAYMENT_CREATED", status="PENDING")))
        self.assertEqual(res.status, "ignored")
        self.reg.refresh_from_db()
        self.assertEqual(self.reg.status, Registration.Status.PENDING_PAYMENT)

    def test_relay_envelope(self):
        res = self.bus.dispatch(ReconcileWebhookCommand(payload={"body": _webhook()}))
        self.assertEqual(res.status, "registered")

    def test_payload_without_payment_is_invalid(self):
        with self.assertRaises(InvalidInputError):
            self.bus.dispatch(ReconcileWebhookCommand(payload={"event": "PAYMENT_RECEIVED"}))


class PollPaymentStatusTests(TestCase):
    def setUp(self):
        self.bus = sb_container.command_bus()
        self.plan = make_plan()

    def test_paid_at_gateway_completes_registration(self):
        reg = make_registration(plan=self.plan, asaas_payment_id="pay_1")
        patch_gateway(self, get_payment=AsaasPaymentDTO(id="pay_1", status="CONFIRMED"))

        res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))

        self.assertEqual(res.status, "registered")
        self.assertTrue(res.is_paid)
        self.assertIsNotNone(res.account_id)

    def test_still_pending(self):
        reg = make_registration(plan=self.plan, asaas_payment_id="pay_1")
        patch_gateway(self, get_payment=AsaasPaymentDTO(id="pay_1", status="PENDING"))
        res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))
        self.assertEqual(res.status, "pending_payment")
        self.assertFalse(res.retry)

    def test_gateway_unavailable_reports_pending_with_retry(self):
        reg = make_registration(plan=self.plan, asaas_payment_id="pay_1")
        patch_gateway(self, get_payment=UpstreamUnavailableError())
        res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))
        self.assertEqual(res.status, "pending_payment")
        self.assertTrue(res.retry)
        reg.refresh_from_db()
        self.assertEqual(reg.status, Registration.Status.PENDING_PAYMENT)

    def test_without_charge(self):
        reg = make_registration(plan=self.plan)
        gw = patch_gateway(self, get_payment=AsaasPaymentDTO(id="x"))
        res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))
        self.assertEqual(res.detail, "no_charge")
        gw["get_payment"].assert_not_called()

    def _overdue(self, **kw):
        kw.setdefault("asaas_payment_id", "pay_1")
        return make_registration(
            plan=self.plan, expires_at=timezone.now() - timedelta(minutes=5), **kw
        )

    def test_overdue_paid_at_gateway_is_registered(self):
        reg = self._overdue()
        gw = patch_gateway(self, get_payment=AsaasPaymentDTO(id="pay_1", status="RECEIVED"))

        res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))

        self.assertEqual(res.status, "registered")
        gw["get_payment"].assert_called_once_with("pay_1")
        self.assertEqual(Account.objects.count(), 1)

    def test_overdue_unpaid_at_gateway_is_expired(self):
        reg = self._overdue()
        gw = patch_gateway(self, get_payment=AsaasPaymentDTO(id="pay_1", status="PENDING"))

        res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))

        self.assertEqual(res.status, "expired")
        gw["get_payment"].assert_called_once_with("pay_1")
        reg.refresh_from_db()
        self.assertEqual(reg.status, Registration.Status.EXPIRED)

    def test_overdue_with_gateway_down_is_not_expired(self):
        reg = self._overdue()
        patch_gateway(self, get_payment=UpstreamUnavailableError())

        res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))

        self.assertEqual(res.status, "pending_payment")
        self.assertTrue(res.retry)
        reg.refresh_from_db()
        self.assertEqual(reg.status, Registration.Status.PENDING_PAYMENT)

    def test_overdue_without_charge_expires_without_gateway(self):
        reg = make_registration(plan=self.plan, expires_at=timezone.now() - timedelta(minutes=5))
        gw = patch_gateway(self, get_payment=AsaasPaymentDTO(id="x", status="RECEIVED"))
        res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))
        self.assertEqual(res.status, "expired")
        gw["get_payment"].assert_not_called()

    def test_overdue_paid_ends_registered_in_either_order(self):
        patch_gateway(self, get_payment=lambda pid: AsaasPaymentDTO(id=pid, status="RECEIVED"))
        first = self._overdue(email="a@example.com")
        second = self._overdue(email="b@example.com", asaas_payment_id="pay_2")

        # webhook → consulta
        self.bus.dispatch(ReconcileWebhookCommand(payload=_webhook(externalReference=str(first.id))))
        after_webhook = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(first.id)))
        # consulta → webhook
        after_poll = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(second.id)))
        self.bus.dispatch(
            ReconcileWebhookCommand(payload=_webhook(payment_id="pay_2", externalReference=str(second.id)))
        )

        self.assertEqual(after_webhook.status, "registered")
        self.assertEqual(after_poll.status, "registered")
        for reg in (first, second):
            reg.refresh_from_db()
            self.assertEqual(reg.status, Registration.Status.REGISTERED)
        self.assertEqual(Account.objects.count(), 2)

    def test_provisioning_held_by_another_worker(self):
        reg = make_registration(
            plan=self.plan, status=Registration.Status.PAID, paid_at=timezone.now(),
            provisioning_claimed_at=timezone.now(),
        )
        res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))
        self.assertEqual(res.status, "paid")
        self.assertEqual(res.detail, "provisioning_in_progress")
        self.assertFalse(Account.objects.exists())

    def test_unknown_registration(self):
        with self.assertRaises(NotFoundError):
            self.bus.dispatch(PollPaymentStatusCommand(registration_id="00000000-0000-0000-0000-000000000000"))


class ProvisioningTests(TestCase):
    def setUp(self):
        self.bus = sb_container.command_bus()
        self.plan = make_plan()

    def test_existing_account_is_reused(self):
        account = make_account(email="joao@example.com")
        reg = make_registration(plan=self.plan, status=Registration.Status.PAID, paid_at=timezone.now())
        res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))
        self.assertEqual(res.account_id, str(account.id))
        self.assertEqual(Account.objects.count(), 1)

    def test_trial_account_is_upgraded(self):
        account = make_account(email="joao@example.com")
        sub = make_subscription(account, status=Subscription.Status.TRIALING)
        reg = make_registration(plan=self.plan, status=Registration.Status.PAID, paid_at=timezone.now())

        self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(reg.id)))

        sub.refresh_from_db()
        self.assertEqual(sub.status, Subscription.Status.ACTIVE)
        self.assertFalse(sub.is_trial)

    def test_database_rejects_second_open_record_per_email(self):
        from django.db import IntegrityError, transaction

        make_registration(email="joao@example.com")
        with self.assertRaises(IntegrityError), transaction.atomic():
            make_registration(email="joao@example.com", status=Registration.Status.PAID)
        # fechados não contam
        make_registration(email="joao@example.com", status=Registration.Status.EXPIRED)


class SweepTests(TestCase):
    def setUp(self):
        self.bus = sb_container.command_bus()
        self.plan = make_plan()

    def test_expire_sweep_only_touches_overdue_pending(self):
        now = timezone.now()
        overdue = make_registration(email="a@example.com", expires_at=now - timedelta(minutes=1))
        alive = make_registration(email="b@example.com", expires_at=now + timedelta(hours=1))
        paid = make_registration(
            email="c@example.com", status=Registration.Status.PAID, expires_at=now - timedelta(hours=1)
        )

        self.assertEqual(self.bus.dispatch(ExpireRegistrationsCommand(now=now)), 1)

        for reg, expected in ((overdue, "expired"), (alive, "pending_payment"), (paid, "paid")):
            reg.refresh_from_db()
            self.assertEqual(reg.status, expected)

    def test_resume_sweep_respects_lease(self):
        now = timezone.now()
        stalled = make_registration(
            email="a@example.com", plan=self.plan, status=Registration.Status.PAID,
            paid_at=now - timedelta(minutes=10), provisioning_claimed_at=now - timedelta(minutes=10),
        )
        in_flight = make_registration(
            email="b@example.com", plan=self.plan, status=Registration.Status.PAID,
            paid_at=now, provisioning_claimed_at=now - timedelta(seconds=30),
        )

        results = self.bus.dispatch(ResumeProvisioningCommand(now=now))

        self.assertEqual([r.registration_id for r in results], [str(stalled.id)])
        stalled.refresh_from_db()
        in_flight.refresh_from_db()
        self.assertEqual(stalled.status, Registration.Status.REGISTERED)
        self.assertEqual(in_flight.status, Registration.Status.PAID)

    def test_expire_sweep_checks_gateway_for_charged_records(self):
        now = timezone.now()
        paid_late = make_registration(
            email="a@example.com", plan=self.plan, asaas_payment_id="pay_a", expires_at=now - timedelta(minutes=1)
        )
        unpaid = make_registration(
            email="b@example.com", plan=self.plan, asaas_payment_id="pay_b", expires_at=now - timedelta(minutes=1)
        )
        statuses = {"pay_a": "RECEIVED", "pay_b": "OVERDUE"}
        patch_gateway(self, get_payment=lambda pid: AsaasPaymentDTO(id=pid, status=statuses[pid]))

        self.assertEqual(self.bus.dispatch(ExpireRegistrationsCommand(now=now)), 1)

        paid_late.refresh_from_db()
        unpaid.refresh_from_db()
        self.assertEqual(paid_late.status, Registration.Status.REGISTERED)
        self.assertEqual(unpaid.status, Registration.Status.EXPIRED)
        self.assertEqual(Account.objects.get().email, "a@example.com")

    def test_expire_sweep_keeps_charged_record_when_gateway_is_down(self):
        now = timezone.now()
        reg = make_registration(plan=self.plan, asaas_payment_id="pay_1", expires_at=now - timedelta(minutes=1))
        patch_gateway(self, get_payment=UpstreamUnavailableError())

        self.assertEqual(self.bus.dispatch(ExpireRegistrationsCommand(now=now)), 0)

        reg.refresh_from_db()
        self.assertEqual(reg.status, Registration.Status.PENDING_PAYMENT)


class ConcurrentTriggerTests(TestCase):
    """
    Webhook e consulta intercalados dentro da mesma thread: o segundo gatilho
    roda no meio do primeiro, entre a leitura e a escrita condicionada.
    """

    def setUp(self):
        self.bus = sb_container.command_bus()
        self.plan = make_plan()
        self.reg = make_registration(plan=self.plan, asaas_payment_id="pay_1", payment_method="PIX")
        self.webhook = _webhook(externalReference=str(self.reg.id))

    def test_webhook_lands_while_poll_waits_on_gateway(self):
        def gateway_answer(payment_id):
            # o webhook conclui tudo antes de a consulta receber a resposta
            self.bus.dispatch(ReconcileWebhookCommand(payload=self.webhook))
            return AsaasPaymentDTO(id=payment_id, status="RECEIVED")

        patch_gateway(self, get_payment=gateway_answer)
        real = AccountRepoImpl.create_account
        with patch.object(AccountRepoImpl, "create_account", autospec=True, side_effect=real) as spy:
            res = self.bus.dispatch(PollPaymentStatusCommand(registration_id=str(self.reg.id)))

        self.assertEqual(res.status, "registered")
        self.assertFalse(res.applied)
        self.assertEqual(spy.call_count, 1)
        self.assertEqual(Account.objects.count(), 1)
        self.reg.refresh_from_db()
        self.assertEqual(self.reg.status, Registration.Status.REGISTERED)

    def test_poll_runs_between_paid_and_provisioning_claim(self):
        patch_gateway(self, get_payment=NotFoundError())
        real_claim = RegistrationRepoImpl.claim_provisioning
        claims, entered = [], []

        def claim(repo, registration_id, now, lease):
            if not entered:
                # primeira reserva (webhook): a consulta entra antes dela
                entered.append(registration_id)
                self.bus.dispatch(PollPaymentStatusCommand(registration_id=registration_id))
            won = real_claim(repo, registration_id, now, lease)
            claims.append(won)
            return won

        real_create = AccountRepoImpl.create_account
        with patch.object(RegistrationRepoImpl, "claim_provisioning", autospec=True, side_effect=claim), \
                patch.object(AccountRepoImpl, "create_account", autospec=True, side_effect=real_create) as spy:
            res = self.bus.dispatch(ReconcileWebhookCommand(payload=self.webhook))

        self.assertEqual(sorted(claims), [False, True])
        self.assertEqual(spy.call_count, 1)
        self.assertEqual(res.status, "registered")
        self.assertEqual(Account.objects.count(), 1)
        self.reg.refresh_from_db()
        self.assertEqual(self.reg.status, Registration.Status.REGISTERED)
