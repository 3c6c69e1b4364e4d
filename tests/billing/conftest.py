from datetime import UTC, datetime, timedelta

import pytest
from billing.config import ChargeConfig
from billing.payment.payment import AdditionalType, Payment, PaymentItem, PaymentItemType, PaymentStatus
from billing.recurrent.recurrent_payment import RecurrentPayment
from billing.subscription.subscription_type import SubscriptionType
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def billing_bed():
    from billing.domain import billing

    bed = DomainFixture(billing)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(billing_bed):
    with billing_bed.domain_context():
        yield


@pytest.fixture
def charge_config():
    return ChargeConfig.build(
        recurrent_payment_charges="P1D, P3D",
        gateway_fail_delay="PT1H",
        donation_vat_rate=0.0,
        gateway_timeout_seconds=2,
    )


@pytest.fixture
def now():
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------
def create_subscription_type(code="monthly", items=None, length=31, **extra):
    items = items or [{"name": "Monthly web access", "amount": 9.99, "vat": 20.0}]
    subscription_type = SubscriptionType.create(name=code.title(), code=code, length=length, items_data=items)
    for field_name, value in extra.items():
        setattr(subscription_type, field_name, value)
    current_domain.repository_for(SubscriptionType).add(subscription_type)
    return subscription_type


def create_paid_payment(subscription_type, user_id="user-001", donation=None, gateway="fake", paid=True):
    items = [
        PaymentItem(
            name=item.name,
            amount=item.amount,
            vat=item.vat,
            count=1,
            item_type=PaymentItemType.SUBSCRIPTION_TYPE.value,
            subscription_type_id=str(subscription_type.id),
        )
        for item in subscription_type.sorted_items()
    ]
    if donation:
        items.append(
            PaymentItem(
                name="Donation",
                amount=donation,
                vat=0.0,
                count=1,
                item_type=PaymentItemType.DONATION.value,
            )
        )
    payment = Payment.create(
        user_id=user_id,
        payment_gateway=gateway,
        items=items,
        subscription_type_id=str(subscription_type.id),
        additional_amount=donation or 0.0,
        additional_type=AdditionalType.RECURRENT.value if donation else None,
    )
    if paid:
        payment.update_status(PaymentStatus.PAID.value)
    current_domain.repository_for(Payment).add(payment)
    return payment


def create_token(parent_payment, charge_at=None, retries=1, custom_amount=None, cid="card-token-001"):
    token = RecurrentPayment.create(
        cid=cid,
        user_id=parent_payment.user_id,
        payment_gateway=parent_payment.payment_gateway,
        parent_payment_id=str(parent_payment.id),
        charge_at=charge_at or datetime.now(UTC) - timedelta(minutes=5),
        retries=retries,
        custom_amount=custom_amount,
        subscription_type_id=parent_payment.subscription_type_id,
    )
    current_domain.repository_for(RecurrentPayment).add(token)
    return token


@pytest.fixture
def make_subscription_type():
    return create_subscription_type


@pytest.fixture
def make_paid_payment():
    return create_paid_payment


@pytest.fixture
def make_token():
    return create_token
