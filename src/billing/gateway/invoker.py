"""Gateway invoker, the boundary between the charging flow and a gateway.

Runs the adapter's ``charge`` with a bounded timeout and folds transport
problems (``GatewayError``, connection errors, timeouts) into a TRANSIENT
result, so the caller always gets a ``ChargeResult`` for a gateway decision.
"""

import threading

import structlog

from billing.gateway.port import ChargeOutcome, ChargeResult, GatewayError, RecurrentGateway

logger = structlog.get_logger(__name__)

TIMEOUT_RESULT_CODE = "timeout"


class _GatewayCall(threading.Thread):
    """One adapter call on a daemon thread.

    A stalled call is abandoned, and being a daemon it never holds up
    interpreter exit.
    """

    def __init__(self, gateway: RecurrentGateway, payment, cid: str):
        super().__init__(name="gateway-charge", daemon=True)
        self.gateway = gateway
        self.payment = payment
        self.cid = cid
        self.result: ChargeResult | None = None
        self.error: BaseException | None = None

    def run(self) -> None:
        try:
            self.result = self.gateway.charge(self.payment, self.cid)
        except BaseException as exc:  # re-raised on the calling thread
            self.error = exc


class GatewayInvoker:
    def __init__(self, gateway: RecurrentGateway, timeout_seconds: float = 30.0):
        self.gateway = gateway
        self.timeout_seconds = timeout_seconds

    @property
    def gateway_name(self) -> str:
        return type(self.gateway).__name__

    def charge(self, payment, cid: str) -> ChargeResult:
        call = _GatewayCall(self.gateway, payment, cid)
        call.start()
        call.join(self.timeout_seconds)

        if call.is_alive():
            logger.error(
                "Gateway charge timed out",
                gateway=self.gateway_name,
                payment_id=str(payment.id),
                timeout_seconds=self.timeout_seconds,
            )
            message = f"Gateway did not respond within {self.timeout_seconds}s"
            return ChargeResult(
                outcome=ChargeOutcome.TRANSIENT,
                result_code=TIMEOUT_RESULT_CODE,
                result_message=message,
                response_data={"error": message},
            )

        try:
            if call.error is not None:
                raise call.error
            result = call.result
        except GatewayError as exc:
            logger.error(
                "Gateway charge failed",
                gateway=self.gateway_name,
                payment_id=str(payment.id),
                code=exc.code,
                error=exc.message,
            )
            return ChargeResult(
                outcome=ChargeOutcome.TRANSIENT,
                result_code=exc.code,
                result_message=exc.message,
                response_data=exc.response_data,
            )
        except OSError as exc:
            logger.error(
                "Gateway connection failed",
                gateway=self.gateway_name,
                payment_id=str(payment.id),
                error=str(exc),
            )
            return ChargeResult(
                outcome=ChargeOutcome.TRANSIENT,
                result_code=type(exc).__name__,
                result_message=str(exc),
                response_data={"error": str(exc)},
            )

        logger.info(
            "Gateway charge completed",
            gateway=self.gateway_name,
            payment_id=str(payment.id),
            outcome=result.outcome.value,
            result_code=result.result_code,
        )
        return result
