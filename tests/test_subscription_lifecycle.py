from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from iafe_core.core.domain.exceptions import AlreadyTerminalError, NotFoundError, UpstreamUnavailableError

from plugins.django_interface.models import Subscription
from subscription_billing.adapters.config.composition_root import container as sb_container
from subscription_billing.core.application.commands.subscription_commands import (
    CancelSubscriptionCommand,
    ExpireSubscriptionsCommand,
)
from subscription_billing.core.domain.repositories.payment_gateway import GatewayCancelOutcome
from tests.helpers.factories import make_account, make_subscription
from tests.helpers.patches import patch_gateway


class CancelSubscriptionTests(TestCase):
    def setUp(self):
        self.bus = sb_container.command_bus()
        self.account = make_account()
        self.gw = patch_gateway(self, cancel_subscription=GatewayCancelOutcome.CANCELLED)

    def test_trial_ends_immediately(self):
        sub = make_subscription(self.account, status=Subscription.Status.TRIALING)
        now = timezone.now()

        res = self.bus.dispatch(CancelSubscriptionCommand(account_id=str(self.account.id), now=now))

        self.assertEqual(res.effective, "immediate")
        self.assertIsNone(res.access_until)
        self.assertEqual(res.gateway, "skipped")
        sub.refresh_from_db()
        self.assertEqual(sub.status, Subscription.Status.CANCELLED)
        self.assertEqual(sub.current_period_end, now)
        self.gw["cancel_subscription"].assert_not_called()

    def test_paid_keeps_access_until_period_end(self):
        period_end = timezone.now() + timedelta(days=12)
        sub = make_subscription(self.account, current_period_end=period_end, asaas_subscription_id="sub_1")

        res = self.bus.dispatch(CancelSubscriptionCommand(account_id=str(self.account.id)))

        self.assertEqual(res.effective, "end_of_period")
        self.assertEqual(res.access_until, period_end)
        self.assertEqual(res.gateway, "cancelled")
        self.assertIn(timezone.localtime(period_end).strftime("%d/%m/%Y"), res.message)
        self.assertEqual(res.as_payload()["accessUntil"], period_end.isoformat())
        sub.refresh_from_db()
        self.assertEqual(sub.status, Subscription.Status.ACTIVE)
        self.assertTrue(sub.cancel_at_period_end)
        self.gw["cancel_subscription"].assert_called_once_with("sub_1")

    def test_gateway_gone_is_success(self):
        make_subscription(self.account, asaas_subscription_id="sub_1")
        self.gw["cancel_subscription"].return_value = GatewayCancelOutcome.GONE
        res = self.bus.dispatch(CancelSubscriptionCommand(account_id=str(self.account.id)))
        self.assertEqual(res.gateway, "gone")

    def test_gateway_failure_does_not_block_local_cancel(self):
        sub = make_subscription(self.account, asaas_subscription_id="sub_1")
        self.gw["cancel_subscription"].side_effect = UpstreamUnavailableError()
        res = self.bus.dispatch(CancelSubscriptionCommand(account_id=str(self.account.id)))
        self.assertEqual(res.gateway, "failed")
        sub.refresh_from_db()
        self.assertTrue(sub.cancel_at_period_end)

    def test_second_cancel_of_paid_is_idempotent(self):
        make_subscription(self.account, asaas_subscription_id="sub_1")
        self.bus.dispatch(CancelSubscriptionCommand(account_id=str(self.account.id)))
        again = self.bus.dispatch(CancelSubscriptionCommand(account_id=str(self.account.id)))
        self.assertEqual(again.effective, "end_of_period")
        self.assertEqual(again.gateway, "skipped")
        self.assertEqual(self.gw["cancel_subscription"].call_count, 1)

    def test_terminal_subscription(self):
        make_subscription(self.account, status=Subscription.Status.CANCELLED)
        with self.assertRaises(AlreadyTerminalError) as ctx:
            self.bus.dispatch(CancelSubscriptionCommand(account_id=str(self.account.id)))
        self.assertEqual(ctx.exception.code, "already_cancelled")

    def test_no_subscription(self):
        with self.assertRaises(NotFoundError):
            self.bus.dispatch(CancelSubscriptionCommand(account_id=str(self.account.id)))


class ExpireSubscriptionsTests(TestCase):
    def test_period_end_sweep(self):
        now = timezone.now()
        past = now - timedelta(minutes=1)
        trial = make_subscription(make_account("t@example.com"), status=Subscription.Status.TRIALING,
                                  current_period_end=past)
        scheduled = make_subscription(make_account("s@example.com"), current_period_end=past,
                                      cancel_at_period_end=True)
        renewing = make_subscription(make_account("r@example.com"), current_period_end=past)
        future_trial = make_subscription(make_account("f@example.com"), status=Subscription.Status.TRIALING,
                                         current_period_end=now + timedelta(days=1))

        changed = sb_container.command_bus().dispatch(ExpireSubscriptionsCommand(now=now))

        self.assertEqual(changed, 2)
        expected = {
            trial: Subscription.Status.EXPIRED,
            scheduled: Subscription.Status.CANCELLED,
            renewing: Subscription.Status.ACTIVE,
            future_trial: Subscription.Status.TRIALING,
        }
        for sub, status in expected.items():
            sub.refresh_from_db()
            self.assertEqual(sub.status, status)
