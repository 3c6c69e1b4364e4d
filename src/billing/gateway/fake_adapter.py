"""Configurable fake recurrent gateway for development and testing.

Simulates a card gateway without any external calls. It can be configured at
runtime to return any of the four charge outcomes, to raise a transport error,
or to stall (for exercising the invoker's timeout).
"""

import time
from uuid import uuid4

from billing.gateway.port import ChargeOutcome, ChargeResult, GatewayError, RecurrentGateway

_DEFAULT_CODES = {
    ChargeOutcome.SUCCESS: ("00", "Approved"),
    ChargeOutcome.RECOVERABLE: ("51", "Insufficient funds"),
    ChargeOutcome.TERMINAL: ("54", "Expired card"),
    ChargeOutcome.TRANSIENT: ("91", "Issuer unavailable"),
}


class FakeGateway(RecurrentGateway):
    """Configurable fake recurrent gateway."""

    def __init__(self) -> None:
        self.outcome: ChargeOutcome = ChargeOutcome.SUCCESS
        self.result_code: str | None = None
        self.result_message: str | None = None
        self.raise_error: bool = False
        self.delay_seconds: float = 0.0
        self.calls: list[dict] = []

    def configure(
        self,
        outcome: ChargeOutcome | str = ChargeOutcome.SUCCESS,
        result_code: str | None = None,
        result_message: str | None = None,
        raise_error: bool = False,
        delay_seconds: float = 0.0,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.outcome = ChargeOutcome(outcome)
        self.result_code = result_code
        self.result_message = result_message
        self.raise_error = raise_error
        self.delay_seconds = delay_seconds

    def charge(self, payment, cid: str) -> ChargeResult:
        call = {
            "method": "charge",
            "payment_id": str(payment.id),
            "amount": payment.amount,
            "variable_symbol": payment.variable_symbol,
            "cid": cid,
        }
        self.calls.append(call)

        if self.delay_seconds:
            time.sleep(self.delay_seconds)

        default_code, default_message = _DEFAULT_CODES[self.outcome]
        code = self.result_code or default_code
        message = self.result_message or default_message

        if self.raise_error:
            raise GatewayError(message, code=code, response_data={"error": message, "code": code})

        return ChargeResult(
            outcome=self.outcome,
            result_code=code,
            result_message=message,
            response_data={
                "transaction_id": f"fake_txn_{uuid4().hex[:12]}",
                "cid": cid,
                "amount": payment.amount,
                "code": code,
                "message": message,
            },
        )
