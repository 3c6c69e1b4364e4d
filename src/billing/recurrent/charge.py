"""Recurrent charge batch — charges every due recurrent payment token.

Designed to be triggered periodically by an external scheduler (cron, K8s
CronJob) through ``manage.py charge`` or the maintenance API endpoint. Only
one batch may run at a time; the scheduler has to hold a lock for the whole
run (e.g. ``flock -n /var/lock/billing-charge.lock python src/manage.py charge``).

Per due token:

1. Stop it when its chain was already charged the same calendar day.
2. Resolve the subscription type and custom amount.
3. Reuse the linked payment, or build one and link it *before* charging.
4. Charge through the gateway and record the outcome in one unit of work.
5. Append a payment log entry, whatever happened in step 4.

A ``ConfigurationError`` aborts the batch. Any other error stays with its
token and the batch moves on.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.utils.globals import current_domain

from billing.config import ChargeConfig
from billing.exceptions import ConfigurationError, FastChargeError, LinkedPaymentSettled, TokenSkipped
from billing.gateway import TEST_GATEWAY, get_gateway
from billing.gateway.invoker import GatewayInvoker
from billing.gateway.port import ChargeOutcome, ChargeResult
from billing.payment.log import RECURRENT_CHARGE_SOURCE, PaymentLog
from billing.payment.payment import Payment, PaymentStatus
from billing.recurrent.builder import PaymentBuilder
from billing.recurrent.outcome import RecordChargeOutcome
from billing.recurrent.recurrent_payment import RecurrentPayment, RecurrentPaymentState
from billing.recurrent.resolver import RecurrentPaymentsResolver
from billing.recurrent.schedule import RetrySchedulePolicy
from billing.utils.clock import as_utc, utcnow

logger = structlog.get_logger(__name__)


class ChargeMode(Enum):
    LIVE = "live"
    TEST = "test"


class TokenStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class TokenReport:
    """What happened to one token in a batch."""

    recurrent_payment_id: str
    cid: str
    user_id: str
    status: TokenStatus
    result_code: str | None = None
    payment_id: str | None = None


@dataclass
class BatchSummary:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    duration: float = 0.0
    reports: list[TokenReport] = field(default_factory=list)

    def record(self, report: TokenReport) -> None:
        self.reports.append(report)
        if report.status == TokenStatus.SKIPPED:
            self.skipped += 1
            return
        self.attempted += 1
        if report.status == TokenStatus.SUCCEEDED:
            self.succeeded += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration": round(self.duration, 2),
        }


class RecurrentChargeOrchestrator:
    def __init__(
        self,
        config: ChargeConfig,
        charge_mode: ChargeMode = ChargeMode.LIVE,
        resolver: RecurrentPaymentsResolver | None = None,
        on_token: Callable[[TokenReport], None] | None = None,
    ):
        self.config = config
        self.charge_mode = charge_mode
        self.resolver = resolver or RecurrentPaymentsResolver()
        self.builder = PaymentBuilder(config)
        self.on_token = on_token
        self.policy = RetrySchedulePolicy.from_config(config)

    def run_batch(self, as_of: datetime | None = None) -> BatchSummary:
        """Charge every token due at ``as_of`` (defaults to now)."""
        started = time.monotonic()
        now = as_utc(as_of) if as_of else utcnow()

        tokens = current_domain.repository_for(RecurrentPayment).chargeable(now)
        logger.info(
            "Recurrent charge batch started",
            due_count=len(tokens),
            charge_mode=self.charge_mode.value,
            as_of=now.isoformat(),
        )

        summary = BatchSummary()
        for token in tokens:
            try:
                report = self.charge_token(token, now)
            except ConfigurationError as exc:
                logger.error(
                    "Recurrent charge batch aborted",
                    recurrent_payment_id=str(token.id),
                    error=str(exc),
                )
                raise
            except TokenSkipped as exc:
                logger.warning(
                    "Recurrent payment skipped",
                    recurrent_payment_id=str(token.id),
                    cid=token.cid,
                    user_id=str(token.user_id),
                    reason=exc.reason,
                    error=str(exc),
                )
                report = self._report(token, TokenStatus.SKIPPED, exc.reason)
            except Exception as exc:
                logger.exception(
                    "Recurrent charge failed",
                    recurrent_payment_id=str(token.id),
                    cid=token.cid,
                    user_id=str(token.user_id),
                    error=str(exc),
                )
                report = self._report(token, TokenStatus.FAILED, type(exc).__name__)

            summary.record(report)
            if self.on_token:
                self.on_token(report)

        summary.duration = time.monotonic() - started
        logger.info("Recurrent charge batch complete", **summary.to_dict())
        return summary

    def charge_token(self, token: RecurrentPayment, now: datetime) -> TokenReport:
        self.guard_fast_charge(token, now)

        subscription_type = self.resolver.resolve_subscription_type(token)
        custom_amount = self.resolver.resolve_custom_charge_amount(token)
        payment = self.payment_for(token, subscription_type, custom_amount)

        gateway_code = TEST_GATEWAY if self.charge_mode == ChargeMode.TEST else payment.payment_gateway
        invoker = GatewayInvoker(get_gateway(gateway_code), self.config.gateway_timeout_seconds)

        result = None
        try:
            result = invoker.charge(payment, token.cid)
            outcome = self.effective_outcome(token, result)
            charge_at, retries = self.successor_schedule(token, payment, subscription_type, outcome, now)
            current_domain.process(
                RecordChargeOutcome(
                    recurrent_payment_id=str(token.id),
                    payment_id=str(payment.id),
                    outcome=outcome.value,
                    result_code=result.result_code,
                    result_message=result.result_message,
                    successor_charge_at=charge_at,
                    successor_retries=retries,
                ),
                asynchronous=False,
            )
        finally:
            self.append_log(payment, result)

        status = TokenStatus.SUCCEEDED if result.is_successful else TokenStatus.FAILED
        return self._report(token, status, result.result_code, payment_id=str(payment.id))

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def guard_fast_charge(self, token: RecurrentPayment, now: datetime) -> None:
        repo = current_domain.repository_for(RecurrentPayment)
        last_charged = repo.last_with_state(token, RecurrentPaymentState.CHARGED.value)
        if last_charged is None:
            return

        charged_on = as_utc(last_charged.charge_at).date()
        if charged_on != now.date() and charged_on != as_utc(token.charge_at).date():
            return

        token.stop_fast_charge()
        repo.add(token)
        raise FastChargeError(
            f"Chain already charged on {charged_on.isoformat()} by recurrent payment {last_charged.id}"
        )

    def payment_for(self, token: RecurrentPayment, subscription_type, custom_amount) -> Payment:
        payment_repo = current_domain.repository_for(Payment)

        if token.payment_id:
            payment = payment_repo.get(token.payment_id)
            if PaymentStatus(payment.status) != PaymentStatus.FORM:
                raise LinkedPaymentSettled(f"Payment {payment.id} is already {payment.status}")
            logger.info(
                "Reusing linked payment",
                recurrent_payment_id=str(token.id),
                payment_id=str(payment.id),
            )
            return payment

        parent_payment = payment_repo.get(token.parent_payment_id) if token.parent_payment_id else None
        payment = self.builder.build(token, parent_payment, subscription_type, custom_amount)

        # Both writes are committed before the gateway is called.
        with UnitOfWork():
            payment_repo.add(payment)
            token.link_payment(str(payment.id))
            current_domain.repository_for(RecurrentPayment).add(token)

        logger.info(
            "Built recurrent payment",
            recurrent_payment_id=str(token.id),
            payment_id=str(payment.id),
            amount=payment.amount,
            item_count=len(payment.items),
        )
        return payment

    @staticmethod
    def effective_outcome(token: RecurrentPayment, result: ChargeResult) -> ChargeOutcome:
        if result.outcome == ChargeOutcome.RECOVERABLE and (token.retries or 0) <= 0:
            logger.info(
                "Retries exhausted, stopping chain",
                recurrent_payment_id=str(token.id),
                result_code=result.result_code,
            )
            return ChargeOutcome.TERMINAL
        return result.outcome

    def successor_schedule(self, token, payment, subscription_type, outcome, now):
        """``(charge_at, retries)`` of the successor, or ``(None, None)`` for none."""
        if outcome == ChargeOutcome.SUCCESS:
            return (
                self.policy.initial_charge_at(payment, subscription_type, now=now),
                self.policy.initial_retries(),
            )
        if outcome == ChargeOutcome.RECOVERABLE:
            return self.policy.next_charge_at(token.retries, now=now), token.retries - 1
        if outcome == ChargeOutcome.TRANSIENT:
            return now + self.config.gateway_fail_interval, token.retries
        return None, None

    @staticmethod
    def append_log(payment: Payment, result: ChargeResult | None) -> None:
        if result is None:
            response_data = {"error": "Charge attempt aborted before the gateway answered"}
        else:
            response_data = result.response_data
        entry = PaymentLog.record(
            successful=result is not None and result.is_successful,
            response_data=response_data,
            source=RECURRENT_CHARGE_SOURCE,
            payment_id=str(payment.id),
        )
        current_domain.repository_for(PaymentLog).add(entry)

    @staticmethod
    def _report(token, status: TokenStatus, result_code: str | None, payment_id: str | None = None) -> TokenReport:
        return TokenReport(
            recurrent_payment_id=str(token.id),
            cid=token.cid,
            user_id=str(token.user_id),
            status=status,
            result_code=result_code,
            payment_id=payment_id,
        )
