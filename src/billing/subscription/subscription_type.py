"""Subscription type — the product a recurrent payment renews.

Only the parts the charging flow needs live here: the canonical item set that
makes up the price and the period length used to schedule the next charge.
"""

from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, HasMany, Identifier, Integer, String

from billing.domain import billing


@billing.entity(part_of="SubscriptionType")
class SubscriptionTypeItem:
    name = String(required=True, max_length=255)
    amount = Float(required=True)
    vat = Float(default=0.0)
    sorting = Integer(default=0)


@billing.aggregate
class SubscriptionType:
    name = String(required=True, max_length=255)
    code = String(required=True, max_length=100, unique=True)
    price = Float(default=0.0)
    length = Integer(required=True, min_value=1)  # days
    active = Boolean(default=True)
    next_subscription_type_id = Identifier()
    items = HasMany(SubscriptionTypeItem)

    @classmethod
    def create(cls, name: str, code: str, length: int, items_data: list[dict]):
        """Create a subscription type priced as the sum of its items."""
        if not items_data:
            raise ValidationError({"items": ["A subscription type needs at least one item"]})

        subscription_type = cls(
            name=name,
            code=code,
            length=length,
            price=round(sum(item["amount"] for item in items_data), 2),
        )
        for sorting, item in enumerate(items_data):
            subscription_type.add_items(
                SubscriptionTypeItem(
                    name=item["name"],
                    amount=item["amount"],
                    vat=item.get("vat", 0.0),
                    sorting=item.get("sorting", sorting),
                )
            )
        return subscription_type

    def sorted_items(self) -> list[SubscriptionTypeItem]:
        return sorted(self.items, key=lambda item: item.sorting or 0)
