"""RecurrentPayment aggregate — one link of a recurrent payment chain.

Each token carries a gateway credential (``cid``) and the time it should be
charged. After an attempt the token is settled in place and, unless the chain
ends, a successor token is created for the next attempt. Tokens are never
deleted, so the chain doubles as the charging history of a subscription.

State Machine:
    ACTIVE → CHARGED          (gateway accepted the charge)
    ACTIVE → CHARGE_FAILED    (declined or gateway failure, successor scheduled)
    ACTIVE → SYSTEM_STOP      (declined for good, or stopped before charging)
"""

from datetime import datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from billing.domain import billing
from billing.recurrent.events import (
    RecurrentPaymentCharged,
    RecurrentPaymentCreated,
    RecurrentPaymentFailStop,
    RecurrentPaymentFailTry,
    RecurrentPaymentStopped,
)
from billing.utils.clock import as_utc, utcnow

FAST_CHARGE_NOTE = "Fast charge"


class RecurrentPaymentState(Enum):
    ACTIVE = "active"
    CHARGED = "charged"
    CHARGE_FAILED = "charge_failed"
    SYSTEM_STOP = "system_stop"


@billing.aggregate
class RecurrentPayment:
    cid = String(required=True, max_length=255)
    user_id = Identifier(required=True)
    payment_gateway = String(required=True, max_length=50)
    parent_payment_id = Identifier()
    payment_id = Identifier()
    subscription_type_id = Identifier()
    custom_amount = Float()
    retries = Integer(default=0)
    charge_at = DateTime(required=True)
    state = String(
        choices=RecurrentPaymentState,
        default=RecurrentPaymentState.ACTIVE.value,
    )
    status = String(max_length=100)
    approval = String(max_length=1000)
    note = Text()
    created_at = DateTime()
    modified_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        cid: str,
        user_id: str,
        payment_gateway: str,
        parent_payment_id: str | None,
        charge_at: datetime,
        retries: int,
        custom_amount: float | None = None,
        subscription_type_id: str | None = None,
    ):
        """Create an active token scheduled for ``charge_at``."""
        charge_at = as_utc(charge_at)
        now = utcnow()
        token = cls(
            cid=cid,
            user_id=user_id,
            payment_gateway=payment_gateway,
            parent_payment_id=parent_payment_id,
            subscription_type_id=subscription_type_id,
            custom_amount=custom_amount,
            retries=retries,
            charge_at=charge_at,
            created_at=now,
            modified_at=now,
        )
        token.raise_(
            RecurrentPaymentCreated(
                recurrent_payment_id=str(token.id),
                cid=cid,
                user_id=str(user_id),
                parent_payment_id=str(parent_payment_id) if parent_payment_id else None,
                charge_at=charge_at,
                retries=retries,
                custom_amount=custom_amount,
                created_at=now,
            )
        )
        return token

    def successor(
        self,
        parent_payment_id: str,
        subscription_type_id: str | None,
        charge_at: datetime,
        retries: int,
    ):
        """Next link of this chain, renewing the payment ``parent_payment_id``."""
        return RecurrentPayment.create(
            cid=self.cid,
            user_id=self.user_id,
            payment_gateway=self.payment_gateway,
            parent_payment_id=parent_payment_id,
            charge_at=charge_at,
            retries=retries,
            custom_amount=self.custom_amount,
            subscription_type_id=subscription_type_id,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_active(self) -> bool:
        return RecurrentPaymentState(self.state) == RecurrentPaymentState.ACTIVE

    def is_due(self, as_of: datetime) -> bool:
        return self.is_active() and as_utc(self.charge_at) <= as_utc(as_of)

    def _assert_active(self) -> None:
        if not self.is_active():
            raise ValidationError({"state": [f"Recurrent payment is already {self.state}"]})

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def link_payment(self, payment_id: str) -> None:
        """Attach the payment this attempt charges."""
        self._assert_active()
        if self.payment_id and str(self.payment_id) != str(payment_id):
            raise ValidationError({"payment_id": ["Recurrent payment is already linked to another payment"]})
        self.payment_id = payment_id
        self.modified_at = utcnow()

    def mark_charged(self, result_code: str | None, result_message: str | None) -> None:
        self._assert_active()
        now = utcnow()
        self.state = RecurrentPaymentState.CHARGED.value
        self.status = result_code
        self.approval = result_message
        self.modified_at = now
        self.raise_(
            RecurrentPaymentCharged(
                recurrent_payment_id=str(self.id),
                payment_id=str(self.payment_id),
                user_id=str(self.user_id),
                result_code=result_code,
                result_message=result_message,
                charged_at=now,
            )
        )

    def mark_charge_failed(self, result_code: str | None, result_message: str | None) -> None:
        """Record a failed attempt that will be retried by a successor token."""
        self._assert_active()
        now = utcnow()
        self.state = RecurrentPaymentState.CHARGE_FAILED.value
        self.status = result_code
        self.approval = result_message
        self.modified_at = now
        self.raise_(
            RecurrentPaymentFailTry(
                recurrent_payment_id=str(self.id),
                payment_id=str(self.payment_id) if self.payment_id else None,
                user_id=str(self.user_id),
                cid=self.cid,
                retries=self.retries,
                result_code=result_code,
                result_message=result_message,
                failed_at=now,
            )
        )

    def stop(self, result_code: str | None, result_message: str | None) -> None:
        """End the chain after a definitive decline."""
        self._assert_active()
        now = utcnow()
        self.state = RecurrentPaymentState.SYSTEM_STOP.value
        self.status = result_code
        self.approval = result_message
        self.modified_at = now
        self.raise_(
            RecurrentPaymentFailStop(
                recurrent_payment_id=str(self.id),
                payment_id=str(self.payment_id) if self.payment_id else None,
                user_id=str(self.user_id),
                cid=self.cid,
                result_code=result_code,
                result_message=result_message,
                failed_at=now,
            )
        )

    def stop_fast_charge(self) -> None:
        """Stop a token whose chain was already charged the same day."""
        self._assert_active()
        now = utcnow()
        self.state = RecurrentPaymentState.SYSTEM_STOP.value
        self.note = FAST_CHARGE_NOTE
        self.modified_at = now
        self.raise_(
            RecurrentPaymentStopped(
                recurrent_payment_id=str(self.id),
                user_id=str(self.user_id),
                note=FAST_CHARGE_NOTE,
                stopped_at=now,
            )
        )
