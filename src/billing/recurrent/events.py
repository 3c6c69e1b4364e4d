"""Domain events for the RecurrentPayment aggregate.

``RecurrentPaymentFailTry`` and ``RecurrentPaymentFailStop`` are the
charge-failed notifications other parts of the platform subscribe to (dunning
emails, churn reports).
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from billing.domain import billing


@billing.event(part_of="RecurrentPayment")
class RecurrentPaymentCreated:
    """A new link was added to a recurrent payment chain."""

    __version__ = 1

    recurrent_payment_id = Identifier(required=True)
    cid = String(required=True)
    user_id = Identifier(required=True)
    parent_payment_id = Identifier()
    charge_at = DateTime(required=True)
    retries = Integer(required=True)
    custom_amount = Float()
    created_at = DateTime(required=True)


@billing.event(part_of="RecurrentPayment")
class RecurrentPaymentCharged:
    """The token was charged successfully."""

    __version__ = 1

    recurrent_payment_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    user_id = Identifier(required=True)
    result_code = String()
    result_message = String()
    charged_at = DateTime(required=True)


@billing.event(part_of="RecurrentPayment")
class RecurrentPaymentFailTry:
    """The charge failed and another attempt is scheduled."""

    __version__ = 1

    recurrent_payment_id = Identifier(required=True)
    payment_id = Identifier()
    user_id = Identifier(required=True)
    cid = String(required=True)
    retries = Integer(required=True)
    result_code = String()
    result_message = String()
    failed_at = DateTime(required=True)


@billing.event(part_of="RecurrentPayment")
class RecurrentPaymentFailStop:
    """The charge failed and the chain ends here."""

    __version__ = 1

    recurrent_payment_id = Identifier(required=True)
    payment_id = Identifier()
    user_id = Identifier(required=True)
    cid = String(required=True)
    result_code = String()
    result_message = String()
    failed_at = DateTime(required=True)


@billing.event(part_of="RecurrentPayment")
class RecurrentPaymentStopped:
    """The token was stopped by the system before any gateway call."""

    __version__ = 1

    recurrent_payment_id = Identifier(required=True)
    user_id = Identifier(required=True)
    note = String(required=True)
    stopped_at = DateTime(required=True)
