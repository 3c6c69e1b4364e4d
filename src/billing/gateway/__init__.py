"""Recurrent gateway registry.

Gateways are looked up by the code stored on payments and tokens:
- ``fake`` (default) and ``test`` resolve to a FakeGateway unless overridden
- real adapters are registered at startup with register_gateway()
"""

from billing.gateway.fake_adapter import FakeGateway
from billing.gateway.port import RecurrentGateway

DEFAULT_GATEWAY = "fake"
TEST_GATEWAY = "test"

_FAKE_CODES = (DEFAULT_GATEWAY, TEST_GATEWAY)

_gateways: dict[str, RecurrentGateway] = {}


class UnknownGatewayError(LookupError):
    """No gateway is registered under the requested code."""


def get_gateway(code: str = DEFAULT_GATEWAY) -> RecurrentGateway:
    """Return the gateway registered under ``code``."""
    if code not in _gateways:
        if code not in _FAKE_CODES:
            raise UnknownGatewayError(f"No gateway registered for code '{code}'")
        _gateways[code] = FakeGateway()
    return _gateways[code]


def register_gateway(code: str, gateway: RecurrentGateway) -> None:
    """Register (or override) the gateway for ``code``."""
    _gateways[code] = gateway


def reset_gateways() -> None:
    """Drop every registered gateway; fakes are recreated on demand."""
    _gateways.clear()
