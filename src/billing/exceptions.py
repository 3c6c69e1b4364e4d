"""Errors raised while charging recurrent payments.

``ConfigurationError`` is the only one that aborts a batch; the others are
caught at the token boundary by the orchestrator.
"""


class ConfigurationError(Exception):
    """A required billing setting is missing or malformed."""


class TokenSkipped(Exception):
    """The token was not charged in this run."""

    reason = "skipped"


class FastChargeError(TokenSkipped):
    """The chain was already charged on the same calendar day."""

    reason = "Fast charge"


class UnchargeableCustomAmount(TokenSkipped):
    """A custom amount cannot be split across several subscription type items."""

    reason = "Unchargeable custom amount"


class LinkedPaymentSettled(TokenSkipped):
    """The payment linked to an active token was already settled."""

    reason = "Linked payment already settled"
