"""Boundary tests for the retry schedule.

Delays ``P1D, P3D`` reverse to ``P3D, P1D``; retries index into the reversed
list and anything outside it falls back to the first configured delay.
"""

from datetime import UTC, datetime, timedelta

import pytest
from billing.exceptions import ConfigurationError
from billing.recurrent.schedule import RetrySchedulePolicy, period_end
from dateutil.relativedelta import relativedelta

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def policy():
    return RetrySchedulePolicy(["P1D", "P3D"])


class TestNextDelay:
    def test_zero_retries_uses_last_configured_delay(self, policy):
        assert policy.next_delay(0) == relativedelta(days=3)

    def test_one_retry_uses_first_configured_delay(self, policy):
        assert policy.next_delay(1) == relativedelta(days=1)

    def test_retries_equal_to_list_length_fall_back(self, policy):
        assert policy.next_delay(2) == relativedelta(days=1)

    def test_retries_beyond_list_length_saturate(self, policy):
        assert policy.next_delay(25) == relativedelta(days=1)

    def test_negative_retries_fall_back(self, policy):
        assert policy.next_delay(-1) == relativedelta(days=1)

    def test_three_step_schedule(self):
        policy = RetrySchedulePolicy(["PT6H", "P1D", "P7D"])
        assert policy.next_delay(0) == relativedelta(days=7)
        assert policy.next_delay(1) == relativedelta(days=1)
        assert policy.next_delay(2) == relativedelta(hours=6)
        assert policy.next_delay(3) == relativedelta(hours=6)


class TestNextChargeAt:
    def test_is_now_plus_delay(self, policy):
        assert policy.next_charge_at(0, now=NOW) == NOW + timedelta(days=3)

    def test_calendar_month(self):
        policy = RetrySchedulePolicy(["P1M"])
        assert policy.next_charge_at(0, now=datetime(2026, 1, 31, tzinfo=UTC)) == datetime(2026, 2, 28, tzinfo=UTC)

    def test_naive_now_is_treated_as_utc(self, policy):
        result = policy.next_charge_at(1, now=NOW.replace(tzinfo=None))
        assert result == NOW + timedelta(days=1)


class TestInitialSchedule:
    def test_initial_retries(self, policy):
        assert policy.initial_retries() == 1
        assert RetrySchedulePolicy(["P1D"]).initial_retries() == 0

    def test_initial_charge_at_uses_paid_at(self, policy, make_subscription_type, make_paid_payment):
        subscription_type = make_subscription_type(length=31)
        payment = make_paid_payment(subscription_type)
        assert policy.initial_charge_at(payment, subscription_type, now=NOW) == period_end(
            payment.paid_at, 31
        )

    def test_initial_charge_at_falls_back_to_now(self, policy, make_subscription_type, make_paid_payment):
        subscription_type = make_subscription_type(length=30)
        payment = make_paid_payment(subscription_type, paid=False)
        assert policy.initial_charge_at(payment, subscription_type, now=NOW) == NOW + timedelta(days=30)


class TestConfiguration:
    def test_empty_schedule_is_rejected(self):
        with pytest.raises(ConfigurationError):
            RetrySchedulePolicy([])

    @pytest.mark.parametrize("spec", ["1D", "P", "PT", "P1X", "every day", ""])
    def test_malformed_entry_is_rejected(self, spec):
        with pytest.raises(ConfigurationError):
            RetrySchedulePolicy(["P1D", spec])
