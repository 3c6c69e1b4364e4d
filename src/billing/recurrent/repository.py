"""Repository for the RecurrentPayment aggregate with chain navigation queries."""

from datetime import datetime

from billing.domain import billing
from billing.recurrent.recurrent_payment import RecurrentPayment, RecurrentPaymentState
from billing.utils.clock import as_utc


@billing.repository(part_of=RecurrentPayment)
class RecurrentPaymentRepository:
    def chargeable(self, as_of: datetime) -> list[RecurrentPayment]:
        """Active tokens due at ``as_of``, oldest first.

        The query is unbounded: the default page size would otherwise hide
        due tokens behind future ones.
        """
        as_of = as_utc(as_of)
        due = (
            self._dao.query.filter(
                state=RecurrentPaymentState.ACTIVE.value,
                charge_at__lte=as_of,
            )
            .order_by("charge_at")
            .limit(None)
            .all()
            .items
        )
        # SQL backends may hand back naive datetimes
        due = [token for token in due if as_utc(token.charge_at) <= as_of]
        return sorted(due, key=lambda token: as_utc(token.charge_at))

    def charged_by(self, payment_id: str) -> RecurrentPayment | None:
        """The token whose attempt produced ``payment_id``."""
        results = self._dao.query.filter(payment_id=str(payment_id)).limit(1).all().items
        return results[0] if results else None

    def renewing(self, payment_id: str) -> list[RecurrentPayment]:
        """Tokens created to renew ``payment_id`` (its successors)."""
        return self._dao.query.filter(parent_payment_id=str(payment_id)).limit(None).all().items

    def predecessor(self, token: RecurrentPayment) -> RecurrentPayment | None:
        if not token.parent_payment_id:
            return None
        return self.charged_by(token.parent_payment_id)

    def last_with_state(self, token: RecurrentPayment, state: str) -> RecurrentPayment | None:
        """Walk back through the chain and return the nearest token in ``state``."""
        seen = {str(token.id)}
        current = self.predecessor(token)
        while current is not None and str(current.id) not in seen:
            if current.state == state:
                return current
            seen.add(str(current.id))
            current = self.predecessor(current)
        return None
