"""Builds the payment charged by a recurrent payment token.

Item selection, in priority order:

1. Same subscription type as the renewed payment and no custom amount: copy
   the renewed payment's items, minus its donation line.
2. No custom amount: the subscription type's canonical items (the type
   changed, e.g. a trial converted to a full plan).
3. Custom amount: the canonical item set must be a single item, charged at
   the custom amount. Several items cannot be split, so the token is skipped.

A recurrent donation on the renewed payment is carried over as
``additional_amount`` together with a fresh donation item.
"""

import structlog

from billing.config import ChargeConfig
from billing.exceptions import UnchargeableCustomAmount
from billing.payment.payment import AdditionalType, Payment, PaymentItem, PaymentItemType
from billing.recurrent.recurrent_payment import RecurrentPayment
from billing.subscription.subscription_type import SubscriptionType

logger = structlog.get_logger(__name__)


class PaymentBuilder:
    def __init__(self, config: ChargeConfig):
        self.config = config

    def build(
        self,
        token: RecurrentPayment,
        parent_payment: Payment | None,
        subscription_type: SubscriptionType,
        custom_amount: float | None,
    ) -> Payment:
        """Return a new, unsaved ``form`` payment for ``token``.

        Raises ``UnchargeableCustomAmount`` when a custom amount meets a
        multi-item subscription type, and ``ConfigurationError`` when a donation
        has to be carried but no donation VAT rate is configured.
        """
        subscription_type_id = str(subscription_type.id)

        if self._same_subscription_type(token, parent_payment, subscription_type) and not custom_amount:
            items = self._copy_parent_items(parent_payment, subscription_type_id)
        elif not custom_amount:
            items = self._canonical_items(subscription_type)
        else:
            items = self._custom_amount_items(token, subscription_type, custom_amount)

        additional_amount = 0.0
        additional_type = None
        if (
            parent_payment is not None
            and parent_payment.additional_type == AdditionalType.RECURRENT.value
            and parent_payment.additional_amount
        ):
            additional_amount = parent_payment.additional_amount
            additional_type = AdditionalType.RECURRENT.value
            items.append(
                PaymentItem(
                    name=self.config.donation_item_name,
                    amount=additional_amount,
                    vat=self.config.require_donation_vat_rate(),
                    count=1,
                    item_type=PaymentItemType.DONATION.value,
                )
            )

        return Payment.create(
            user_id=token.user_id,
            payment_gateway=token.payment_gateway,
            items=items,
            subscription_type_id=subscription_type_id,
            additional_amount=additional_amount,
            additional_type=additional_type,
            recurrent_charge=True,
            invoiceable=True,
        )

    @staticmethod
    def _same_subscription_type(token, parent_payment, subscription_type) -> bool:
        if parent_payment is None:
            return False
        subscription_type_id = str(subscription_type.id)
        return (
            str(parent_payment.subscription_type_id) == subscription_type_id
            and str(token.subscription_type_id) == subscription_type_id
        )

    def _is_donation(self, item: PaymentItem, parent_payment: Payment) -> bool:
        """Whether ``item`` is part of the parent's donation and must not be copied.

        Every donation-typed item counts, whatever its name or amount: together
        they make up ``additional_amount``, which comes back as a single donation
        item, and a copied one would break the payment's donation total. Untyped
        items from older payments are matched on donation name and amount.
        """
        if item.item_type == PaymentItemType.DONATION.value:
            return True
        return item.name == self.config.donation_item_name and item.amount == parent_payment.additional_amount

    def _copy_parent_items(self, parent_payment: Payment, subscription_type_id: str) -> list[PaymentItem]:
        items = []
        for item in parent_payment.items:
            # The donation is re-added from additional_amount, never copied.
            if self._is_donation(item, parent_payment):
                continue
            items.append(
                PaymentItem(
                    name=item.name,
                    amount=item.amount,
                    vat=item.vat,
                    count=item.count,
                    item_type=item.item_type,
                    subscription_type_id=subscription_type_id,
                )
            )
        return items

    @staticmethod
    def _canonical_items(subscription_type: SubscriptionType) -> list[PaymentItem]:
        return [
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

    def _custom_amount_items(
        self,
        token: RecurrentPayment,
        subscription_type: SubscriptionType,
        custom_amount: float,
    ) -> list[PaymentItem]:
        canonical = subscription_type.sorted_items()
        if len(canonical) != 1:
            logger.warning(
                "Custom amount cannot be charged for a multi-item subscription type",
                recurrent_payment_id=str(token.id),
                cid=token.cid,
                user_id=str(token.user_id),
                subscription_type_id=str(subscription_type.id),
                item_count=len(canonical),
            )
            raise UnchargeableCustomAmount(
                f"Subscription type {subscription_type.code} has {len(canonical)} items; "
                f"custom amount {custom_amount} cannot be split"
            )

        item = canonical[0]
        return [
            PaymentItem(
                name=item.name,
                amount=custom_amount,
                vat=item.vat,
                count=1,
                item_type=PaymentItemType.CUSTOM.value,
                subscription_type_id=str(subscription_type.id),
            )
        ]
