"""Recurrent charge gateway port (abstract interface).

Every gateway adapter maps its native responses onto one of four outcomes.
The charging flow only ever reacts to the outcome, never to gateway internals:

- SUCCESS      the charge went through
- RECOVERABLE  declined, worth retrying later (insufficient funds, ...)
- TERMINAL     declined for good (card closed, authorization revoked, ...)
- TRANSIENT    the gateway or the network failed before a decision was made

Adapters may also raise ``GatewayError`` for transport failures; the invoker
turns those into TRANSIENT results.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class ChargeOutcome(Enum):
    SUCCESS = "success"
    RECOVERABLE = "recoverable"
    TERMINAL = "terminal"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class ChargeResult:
    """Result of a recurrent charge attempt."""

    outcome: ChargeOutcome
    result_code: str | None = None
    result_message: str | None = None
    response_data: dict = field(default_factory=dict)

    @property
    def is_successful(self) -> bool:
        return self.outcome is ChargeOutcome.SUCCESS


class GatewayError(Exception):
    """The gateway could not be reached or answered with garbage."""

    def __init__(self, message: str, code: str | None = None, response_data: dict | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.response_data = response_data or {}


class RecurrentGateway(ABC):
    """Abstract gateway able to charge a stored card/customer token."""

    @abstractmethod
    def charge(self, payment, cid: str) -> ChargeResult:
        """Charge ``payment.amount`` against the stored credential ``cid``."""
        ...
