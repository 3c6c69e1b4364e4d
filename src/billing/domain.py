"""Billing bounded context — recurrent payment charging.

Handles payments and their line items, recurrent payment tokens (the
authorization chain that is charged periodically), the append-only payment
log, and the batch job that charges due tokens through external gateways.
"""

import structlog
from protean.domain import Domain

from billing.utils.logging import configure_logging

configure_logging()

billing = Domain(name="billing")

logger = structlog.get_logger(__name__)
