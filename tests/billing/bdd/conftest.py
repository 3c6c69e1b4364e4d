"""Shared BDD fixtures and step definitions for recurrent charging."""

from datetime import UTC, datetime, timedelta

import pytest
from billing.config import ChargeConfig
from billing.gateway import get_gateway
from billing.gateway.port import ChargeOutcome
from billing.payment.payment import Payment
from billing.recurrent.charge import RecurrentChargeOrchestrator
from billing.recurrent.recurrent_payment import FAST_CHARGE_NOTE, RecurrentPayment, RecurrentPaymentState
from billing.utils.clock import as_utc
from protean import current_domain
from pytest_bdd import given, parsers, then, when

AS_OF = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def context():
    return {"as_of": AS_OF}


def _token(token_id):
    return current_domain.repository_for(RecurrentPayment).get(token_id)


def _successors(token):
    return current_domain.repository_for(RecurrentPayment).renewing(_token(token.id).payment_id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.parse('the retry schedule is "{schedule}"'))
def _retry_schedule(context, schedule):
    context["config"] = ChargeConfig.build(recurrent_payment_charges=schedule, gateway_fail_delay="PT1H")


@given(
    parsers.parse("a subscription type priced at {price:f} renewed every {length:d} days"),
    target_fixture="subscription_type",
)
def _subscription_type(make_subscription_type, price, length):
    return make_subscription_type(items=[{"name": "Web access", "amount": price}], length=length)


@given("a paid payment for that subscription type", target_fixture="parent_payment")
def _parent_payment(make_paid_payment, subscription_type):
    return make_paid_payment(subscription_type)


@given(parsers.parse("a due token with {retries:d} retries left"), target_fixture="token")
def _due_token(make_token, parent_payment, retries):
    return make_token(parent_payment, charge_at=AS_OF - timedelta(hours=1), retries=retries)


@given("the gateway declines with a recoverable error")
def _recoverable():
    get_gateway("fake").configure(outcome=ChargeOutcome.RECOVERABLE)


@given("the gateway refuses for good")
def _terminal():
    get_gateway("fake").configure(outcome=ChargeOutcome.TERMINAL)


@given("the gateway is unreachable")
def _unreachable():
    get_gateway("fake").configure(raise_error=True, result_code="503", result_message="Service unavailable")


@given("the charge batch has run")
def _batch_has_run(context):
    RecurrentChargeOrchestrator(context["config"]).run_batch(as_of=context["as_of"])


@given("the successor is due later the same day", target_fixture="successor")
def _successor_same_day(token):
    repo = current_domain.repository_for(RecurrentPayment)
    successor = _successors(token)[0]
    successor.charge_at = AS_OF + timedelta(hours=1)
    repo.add(successor)
    return successor


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the charge batch runs")
def _run_batch(context):
    context["summary"] = RecurrentChargeOrchestrator(context["config"]).run_batch(as_of=context["as_of"])


@when("the charge batch runs two hours later")
def _run_batch_later(context):
    context["summary"] = RecurrentChargeOrchestrator(context["config"]).run_batch(
        as_of=context["as_of"] + timedelta(hours=2)
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.parse('the token is "{state}"'))
def _token_state(token, state):
    assert _token(token.id).state == state


@then(parsers.parse('the charged payment is "{status}"'))
def _payment_status(token, status):
    payment = current_domain.repository_for(Payment).get(_token(token.id).payment_id)
    assert payment.status == status


@then(parsers.parse("a successor is scheduled {amount:d} {unit} later with {retries:d} retries"))
def _successor_scheduled(context, token, amount, unit, retries):
    successors = _successors(token)
    assert len(successors) == 1
    assert successors[0].retries == retries
    assert as_utc(successors[0].charge_at) == context["as_of"] + timedelta(**{unit: amount})


@then("no successor is scheduled")
def _no_successor(token):
    assert _successors(token) == []


@then("the successor is stopped as a fast charge")
def _fast_charge_stop(successor, context):
    stopped = _token(successor.id)
    assert stopped.state == RecurrentPaymentState.SYSTEM_STOP.value
    assert stopped.note == FAST_CHARGE_NOTE
    assert context["summary"].skipped == 1


@then(parsers.parse("the gateway was called {count:d} times"))
def _gateway_calls(count):
    assert len(get_gateway("fake").calls) == count
