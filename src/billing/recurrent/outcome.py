"""Recording a charge outcome — command and handler.

Applies everything one gateway decision changes in a single unit of work:
the payment status, the token state and the successor token.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.gateway.port import ChargeOutcome
from billing.payment.payment import Payment, PaymentStatus
from billing.recurrent.recurrent_payment import RecurrentPayment

logger = structlog.get_logger(__name__)


@billing.command(part_of="RecurrentPayment")
class RecordChargeOutcome:
    """Settle a token and its payment after a gateway attempt."""

    recurrent_payment_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    outcome = String(choices=ChargeOutcome, required=True)
    result_code = String(max_length=100)
    result_message = String(max_length=1000)
    successor_charge_at = DateTime()
    successor_retries = Integer()


@billing.command_handler(part_of=RecurrentPayment)
class RecordChargeOutcomeHandler:
    @handle(RecordChargeOutcome)
    def record_charge_outcome(self, command):
        token_repo = current_domain.repository_for(RecurrentPayment)
        payment_repo = current_domain.repository_for(Payment)

        token = token_repo.get(command.recurrent_payment_id)
        payment = payment_repo.get(command.payment_id)
        outcome = ChargeOutcome(command.outcome)

        if outcome == ChargeOutcome.SUCCESS:
            payment.update_status(PaymentStatus.PAID.value)
            token.mark_charged(command.result_code, command.result_message)
        elif outcome == ChargeOutcome.TERMINAL:
            payment.update_status(PaymentStatus.FAIL.value)
            token.stop(command.result_code, command.result_message)
        else:
            payment.update_status(PaymentStatus.FAIL.value)
            token.mark_charge_failed(command.result_code, command.result_message)

        payment_repo.add(payment)
        token_repo.add(token)

        if outcome == ChargeOutcome.TERMINAL:
            logger.info(
                "Recurrent payment chain stopped",
                recurrent_payment_id=str(token.id),
                payment_id=str(payment.id),
                result_code=command.result_code,
            )
            return None

        successor = token.successor(
            parent_payment_id=str(payment.id),
            subscription_type_id=payment.subscription_type_id,
            charge_at=command.successor_charge_at,
            retries=command.successor_retries,
        )
        token_repo.add(successor)

        logger.info(
            "Recurrent payment successor scheduled",
            recurrent_payment_id=str(token.id),
            successor_id=str(successor.id),
            outcome=outcome.value,
            charge_at=str(successor.charge_at),
            retries=successor.retries,
        )
        return str(successor.id)
