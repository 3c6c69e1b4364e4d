"""Payment status — latest state of every payment."""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.payment.events import PaymentCreated, PaymentItemsReplaced, PaymentStatusChanged
from billing.payment.payment import Payment


@billing.projection
class PaymentStatusView:
    payment_id = Identifier(identifier=True, required=True)
    user_id = Identifier(required=True)
    variable_symbol = String(max_length=20)
    payment_gateway = String(max_length=50)
    amount = Float()
    status = String(required=True)
    recurrent_charge = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()


@billing.projector(projector_for=PaymentStatusView, aggregates=[Payment])
class PaymentStatusProjector:
    @on(PaymentCreated)
    def on_payment_created(self, event):
        current_domain.repository_for(PaymentStatusView).add(
            PaymentStatusView(
                payment_id=event.payment_id,
                user_id=event.user_id,
                variable_symbol=event.variable_symbol,
                payment_gateway=event.payment_gateway,
                amount=event.amount,
                status="form",
                recurrent_charge=event.recurrent_charge,
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    @on(PaymentStatusChanged)
    def on_payment_status_changed(self, event):
        repo = current_domain.repository_for(PaymentStatusView)
        try:
            view = repo.get(event.payment_id)
        except ObjectNotFoundError:
            view = PaymentStatusView(
                payment_id=event.payment_id,
                user_id=event.user_id,
                status=event.status,
            )
        view.status = event.status
        view.amount = event.amount
        view.updated_at = event.changed_at
        repo.add(view)

    @on(PaymentItemsReplaced)
    def on_payment_items_replaced(self, event):
        repo = current_domain.repository_for(PaymentStatusView)
        view = repo.get(event.payment_id)
        view.amount = event.amount
        view.updated_at = event.replaced_at
        repo.add(view)
