"""Payment aggregate — one billing transaction with itemized line items.

Payments are created in ``form`` status and settled once per charge attempt.
The amount is always derived from the items: the sum of every non-donation
item (``count * amount``) plus the donation carried in ``additional_amount``.
The donation, when present, is also listed as its own item so the item set
stays a complete breakdown of the charge.

Status rules:
    FORM → PAID / FAIL / TIMEOUT / ...
    PAID → FAIL is rejected (logged, status preserved)
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

import structlog
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text

from billing.domain import billing
from billing.payment.events import PaymentCreated, PaymentItemsReplaced, PaymentStatusChanged

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PaymentStatus(Enum):
    FORM = "form"
    PAID = "paid"
    FAIL = "fail"
    TIMEOUT = "timeout"
    REFUND = "refund"
    IMPORTED = "imported"
    PREPAID = "prepaid"


class PaymentItemType(Enum):
    SUBSCRIPTION_TYPE = "subscription_type"
    DONATION = "donation"
    CUSTOM = "custom"


class AdditionalType(Enum):
    SINGLE = "single"
    RECURRENT = "recurrent"


def new_variable_symbol() -> str:
    """Ten-digit business identifier printed on invoices and bank transfers."""
    return f"{uuid4().int % 10**10:010d}"


def items_total(items) -> float:
    """Sum of ``count * amount`` over the non-donation items."""
    return round(
        sum(
            (item.amount or 0.0) * (item.count or 1)
            for item in items
            if item.item_type != PaymentItemType.DONATION.value
        ),
        2,
    )


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@billing.entity(part_of="Payment")
class PaymentItem:
    """One line of a payment: a subscription entitlement, a donation or a custom charge."""

    name = String(required=True, max_length=255)
    amount = Float(required=True)
    vat = Float(default=0.0)
    count = Integer(default=1, min_value=1)
    item_type = String(
        choices=PaymentItemType,
        default=PaymentItemType.SUBSCRIPTION_TYPE.value,
    )
    subscription_type_id = Identifier()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@billing.aggregate
class Payment:
    user_id = Identifier(required=True)
    payment_gateway = String(required=True, max_length=50)
    subscription_type_id = Identifier()
    status = String(
        choices=PaymentStatus,
        default=PaymentStatus.FORM.value,
    )
    amount = Float(default=0.0)
    variable_symbol = String(required=True, max_length=20)
    additional_amount = Float(default=0.0)
    additional_type = String(choices=AdditionalType)
    recurrent_charge = Boolean(default=False)
    invoiceable = Boolean(default=True)
    note = Text()
    items = HasMany(PaymentItem)
    created_at = DateTime()
    modified_at = DateTime()
    paid_at = DateTime()

    @classmethod
    def create(
        cls,
        user_id: str,
        payment_gateway: str,
        items: list[PaymentItem],
        subscription_type_id: str | None = None,
        additional_amount: float = 0.0,
        additional_type: str | None = None,
        recurrent_charge: bool = False,
        invoiceable: bool = True,
        variable_symbol: str | None = None,
        note: str | None = None,
    ):
        """Create a payment in ``form`` status with its amount derived from ``items``."""
        now = datetime.now(UTC)
        additional_amount = additional_amount or 0.0
        amount = round(items_total(items) + additional_amount, 2)

        payment = cls(
            user_id=user_id,
            payment_gateway=payment_gateway,
            subscription_type_id=subscription_type_id,
            amount=amount,
            variable_symbol=variable_symbol or new_variable_symbol(),
            additional_amount=additional_amount,
            additional_type=additional_type,
            recurrent_charge=recurrent_charge,
            invoiceable=invoiceable,
            note=note,
            created_at=now,
            modified_at=now,
        )
        for item in items:
            payment.add_items(item)
        payment.assert_amount_matches_items()

        payment.raise_(
            PaymentCreated(
                payment_id=str(payment.id),
                user_id=str(user_id),
                subscription_type_id=str(subscription_type_id) if subscription_type_id else None,
                payment_gateway=payment_gateway,
                variable_symbol=payment.variable_symbol,
                amount=amount,
                additional_amount=additional_amount,
                recurrent_charge=recurrent_charge,
                created_at=now,
            )
        )
        return payment

    def assert_amount_matches_items(self) -> None:
        expected = round(items_total(self.items) + (self.additional_amount or 0.0), 2)
        if round(self.amount or 0.0, 2) != expected:
            raise ValidationError({"amount": [f"Amount {self.amount} does not match item total {expected}"]})

        donations = [i for i in self.items if i.item_type == PaymentItemType.DONATION.value]
        donated = round(sum((i.amount or 0.0) * (i.count or 1) for i in donations), 2)
        if donations and donated != round(self.additional_amount or 0.0, 2):
            raise ValidationError({"items": ["Donation item does not match the additional amount"]})

    def donation_items(self) -> list[PaymentItem]:
        return [i for i in self.items if i.item_type == PaymentItemType.DONATION.value]

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def update_status(self, status: str, note: str | None = None) -> bool:
        """Move the payment to ``status``.

        Returns False, leaving the payment untouched, when asked to turn a paid
        payment into a failed one.
        """
        target = PaymentStatus(status)
        current = PaymentStatus(self.status)

        if current == PaymentStatus.PAID and target == PaymentStatus.FAIL:
            logger.warning(
                "Rejected payment status change from paid to fail",
                payment_id=str(self.id),
                variable_symbol=self.variable_symbol,
            )
            return False

        now = datetime.now(UTC)
        self.status = target.value
        self.modified_at = now
        if target == PaymentStatus.PAID and not self.paid_at:
            self.paid_at = now
        if note:
            self.note = note

        self.raise_(
            PaymentStatusChanged(
                payment_id=str(self.id),
                user_id=str(self.user_id),
                previous_status=current.value,
                status=target.value,
                amount=self.amount,
                changed_at=now,
            )
        )
        return True

    def is_paid(self) -> bool:
        return PaymentStatus(self.status) == PaymentStatus.PAID

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def replace_items(self, items: list[PaymentItem]) -> None:
        """Replace the whole item set and recompute the amount.

        Items are never edited one by one; an unpaid payment gets a fresh set.
        """
        if PaymentStatus(self.status) != PaymentStatus.FORM:
            raise ValidationError({"status": ["Items can only be replaced on payments in form status"]})

        for item in list(self.items):
            self.remove_items(item)
        for item in items:
            self.add_items(item)

        now = datetime.now(UTC)
        self.amount = round(items_total(items) + (self.additional_amount or 0.0), 2)
        self.modified_at = now
        self.assert_amount_matches_items()

        self.raise_(
            PaymentItemsReplaced(
                payment_id=str(self.id),
                amount=self.amount,
                replaced_at=now,
            )
        )
