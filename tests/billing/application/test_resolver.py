"""Tests for subscription type and custom amount resolution."""

from datetime import UTC, datetime

from billing.recurrent.recurrent_payment import RecurrentPayment
from billing.recurrent.resolver import RecurrentPaymentsResolver
from billing.subscription.subscription_type import SubscriptionType
from protean import current_domain


class TestResolveSubscriptionType:
    def test_uses_token_subscription_type(self, make_subscription_type, make_paid_payment, make_token):
        monthly = make_subscription_type(code="monthly")
        parent = make_paid_payment(monthly)
        token = make_token(parent)

        assert RecurrentPaymentsResolver().resolve_subscription_type(token).id == monthly.id

    def test_falls_back_to_parent_payment_type(self, make_subscription_type, make_paid_payment, make_token):
        monthly = make_subscription_type(code="monthly")
        parent = make_paid_payment(monthly)
        token = make_token(parent)
        token.subscription_type_id = None

        assert RecurrentPaymentsResolver().resolve_subscription_type(token).id == monthly.id

    def test_follow_up_type_replaces_trial(self, make_subscription_type, make_paid_payment, make_token):
        full = make_subscription_type(code="full")
        trial = make_subscription_type(code="trial", next_subscription_type_id=str(full.id))
        token = make_token(make_paid_payment(trial))

        resolved = RecurrentPaymentsResolver().resolve_subscription_type(token)

        assert resolved.id == full.id
        assert current_domain.repository_for(SubscriptionType).get(trial.id).next_subscription_type_id == str(full.id)


class TestResolveCustomChargeAmount:
    def test_no_custom_amount(self, make_subscription_type, make_paid_payment, make_token):
        token = make_token(make_paid_payment(make_subscription_type()))
        assert RecurrentPaymentsResolver().resolve_custom_charge_amount(token) is None

    def test_custom_amount(self, make_subscription_type, make_paid_payment, make_token):
        token = make_token(make_paid_payment(make_subscription_type()), custom_amount=3.33)
        assert RecurrentPaymentsResolver().resolve_custom_charge_amount(token) == 3.33

    def test_zero_custom_amount_means_none(self):
        token = RecurrentPayment(
            cid="card-token-001",
            user_id="user-001",
            payment_gateway="fake",
            charge_at=datetime(2026, 3, 10, 12, 0, tzinfo=UTC),
            custom_amount=0.0,
        )
        assert RecurrentPaymentsResolver().resolve_custom_charge_amount(token) is None
