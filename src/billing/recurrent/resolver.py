"""Resolves what a recurrent payment token should be charged for."""

from protean.utils.globals import current_domain

from billing.payment.payment import Payment
from billing.recurrent.recurrent_payment import RecurrentPayment
from billing.subscription.subscription_type import SubscriptionType


class RecurrentPaymentsResolver:
    """Subscription type and custom amount for the next charge of a token.

    The token's own subscription type wins; tokens created without one fall
    back to the type of the payment they renew. A type configured with a
    follow-up (``next_subscription_type_id``, e.g. a trial that converts to a
    full plan) is replaced by that follow-up.
    """

    def resolve_subscription_type(self, token: RecurrentPayment) -> SubscriptionType:
        repo = current_domain.repository_for(SubscriptionType)

        subscription_type_id = token.subscription_type_id
        if not subscription_type_id and token.parent_payment_id:
            parent = current_domain.repository_for(Payment).get(token.parent_payment_id)
            subscription_type_id = parent.subscription_type_id

        subscription_type = repo.get(subscription_type_id)
        if subscription_type.next_subscription_type_id:
            subscription_type = repo.get(subscription_type.next_subscription_type_id)
        return subscription_type

    def resolve_custom_charge_amount(self, token: RecurrentPayment) -> float | None:
        return token.custom_amount or None
