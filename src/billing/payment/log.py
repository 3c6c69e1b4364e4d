"""Payment log — append-only audit trail of gateway attempts.

One entry is written per charge attempt with the raw gateway response. Entries
are never updated or deleted.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, String, Text

from billing.domain import billing

RECURRENT_CHARGE_SOURCE = "recurring-payment-automatic-charge"


class PaymentLogStatus(Enum):
    OK = "OK"
    ERROR = "ERROR"


@billing.aggregate
class PaymentLog:
    status = String(choices=PaymentLogStatus, required=True)
    data = Text()
    source = String(required=True, max_length=100)
    payment_id = Identifier()
    created_at = DateTime()

    @classmethod
    def record(cls, successful: bool, response_data, source: str, payment_id: str | None):
        return cls(
            status=(PaymentLogStatus.OK if successful else PaymentLogStatus.ERROR).value,
            data=json.dumps(response_data, default=str),
            source=source,
            payment_id=payment_id,
            created_at=datetime.now(UTC),
        )
