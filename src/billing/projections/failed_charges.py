"""Failed recurrent charges — operations monitoring dashboard.

One row per token whose attempt failed: ``retrying`` while a successor is
scheduled, ``stopped`` once the chain ended.
"""

from protean.core.projector import on
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.recurrent.events import RecurrentPaymentFailStop, RecurrentPaymentFailTry
from billing.recurrent.recurrent_payment import RecurrentPayment


@billing.projection
class FailedRecurrentCharge:
    recurrent_payment_id = Identifier(identifier=True, required=True)
    payment_id = Identifier()
    user_id = Identifier(required=True)
    cid = String(max_length=255)
    result_code = String(max_length=100)
    result_message = String(max_length=1000)
    retries = Integer()
    status = String(required=True)  # retrying, stopped
    failed_at = DateTime()


@billing.projector(projector_for=FailedRecurrentCharge, aggregates=[RecurrentPayment])
class FailedRecurrentChargeProjector:
    @on(RecurrentPaymentFailTry)
    def on_fail_try(self, event):
        self._record(event, status="retrying", retries=event.retries)

    @on(RecurrentPaymentFailStop)
    def on_fail_stop(self, event):
        self._record(event, status="stopped", retries=None)

    @staticmethod
    def _record(event, status: str, retries: int | None) -> None:
        current_domain.repository_for(FailedRecurrentCharge).add(
            FailedRecurrentCharge(
                recurrent_payment_id=event.recurrent_payment_id,
                payment_id=event.payment_id,
                user_id=event.user_id,
                cid=event.cid,
                result_code=event.result_code,
                result_message=event.result_message,
                retries=retries,
                status=status,
                failed_at=event.failed_at,
            )
        )
