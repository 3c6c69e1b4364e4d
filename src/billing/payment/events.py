"""Domain events for the Payment aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from billing.domain import billing


@billing.event(part_of="Payment")
class PaymentCreated:
    """A payment was created in ``form`` status."""

    __version__ = 1

    payment_id = Identifier(required=True)
    user_id = Identifier(required=True)
    subscription_type_id = Identifier()
    payment_gateway = String(required=True)
    variable_symbol = String(required=True)
    amount = Float(required=True)
    additional_amount = Float(default=0.0)
    recurrent_charge = Boolean(default=False)
    created_at = DateTime(required=True)


@billing.event(part_of="Payment")
class PaymentStatusChanged:
    """A payment moved to a new status."""

    __version__ = 1

    payment_id = Identifier(required=True)
    user_id = Identifier(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    amount = Float(required=True)
    changed_at = DateTime(required=True)


@billing.event(part_of="Payment")
class PaymentItemsReplaced:
    """The full item set of a payment was replaced."""

    __version__ = 1

    payment_id = Identifier(required=True)
    amount = Float(required=True)
    replaced_at = DateTime(required=True)
