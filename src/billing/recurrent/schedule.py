"""Retry schedule for recurrent charges.

The schedule is an ordered list of delays, e.g. ``P1D, P2D, P3D``. A new chain
link gets ``len(delays) - 1`` retries. After a declined charge the delay is
picked from the *reversed* list at the position given by the retries still
remaining; counts past the end of the list fall back to the last entry of the
reversed list (the first configured delay)::

    delays = [P1D, P3D]   reversed = [P3D, P1D]
    retries=0 -> P3D   retries=1 -> P1D   retries>=2 -> P1D
"""

from datetime import datetime

from dateutil.relativedelta import relativedelta

from billing.config import ChargeConfig, parse_duration
from billing.exceptions import ConfigurationError
from billing.utils.clock import as_utc, utcnow


def period_end(start: datetime, length_days: int) -> datetime:
    """End of a subscription period of ``length_days`` starting at ``start``."""
    return start + relativedelta(days=length_days)


class RetrySchedulePolicy:
    def __init__(self, delays: list[str] | tuple[str, ...]):
        if not delays:
            raise ConfigurationError("Config 'recurrent_payment_charges' is empty")
        try:
            self._delays = [parse_duration(spec) for spec in delays]
        except ValueError as exc:
            raise ConfigurationError(f"Config 'recurrent_payment_charges' is malformed: {exc}") from exc
        self._reversed = list(reversed(self._delays))

    @classmethod
    def from_config(cls, config: ChargeConfig) -> "RetrySchedulePolicy":
        return cls(config.recurrent_payment_charges)

    @property
    def delays(self) -> list[relativedelta]:
        return list(self._delays)

    def initial_retries(self) -> int:
        """Retry budget of a freshly started chain link."""
        return len(self._delays) - 1

    def next_delay(self, retries_remaining: int) -> relativedelta:
        if 0 <= retries_remaining < len(self._reversed):
            return self._reversed[retries_remaining]
        return self._reversed[-1]

    def next_charge_at(self, retries_remaining: int, now: datetime | None = None) -> datetime:
        return as_utc(now or utcnow()) + self.next_delay(retries_remaining)

    def initial_charge_at(self, payment, subscription_type, now: datetime | None = None) -> datetime:
        """First attempt of the link that renews ``payment``: the end of its paid period."""
        start = as_utc(payment.paid_at) or as_utc(now or utcnow())
        return period_end(start, subscription_type.length)
