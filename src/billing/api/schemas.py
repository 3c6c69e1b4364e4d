"""Pydantic request/response schemas for the Billing API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from billing.gateway.port import ChargeOutcome
from billing.recurrent.charge import ChargeMode


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class RunChargeRequest(BaseModel):
    charge: ChargeMode = ChargeMode.LIVE
    as_of: datetime | None = None


class ConfigureGatewayRequest(BaseModel):
    gateway: str = "fake"
    outcome: ChargeOutcome = ChargeOutcome.SUCCESS
    result_code: str | None = None
    result_message: str | None = None
    raise_error: bool = False
    delay_seconds: float = Field(default=0.0, ge=0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "gateway": "fake",
                    "outcome": "recoverable",
                    "result_code": "51",
                    "result_message": "Insufficient funds",
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class TokenReportResponse(BaseModel):
    recurrent_payment_id: str
    cid: str
    user_id: str
    status: str
    result_code: str | None = None
    payment_id: str | None = None


class BatchSummaryResponse(BaseModel):
    attempted: int
    succeeded: int
    failed: int
    skipped: int
    duration: float
    reports: list[TokenReportResponse] = []


class RecurrentPaymentResponse(BaseModel):
    recurrent_payment_id: str
    cid: str
    user_id: str
    payment_gateway: str
    parent_payment_id: str | None = None
    payment_id: str | None = None
    state: str
    status: str | None = None
    approval: str | None = None
    retries: int
    charge_at: datetime
    custom_amount: float | None = None
    note: str | None = None


class FailedChargeResponse(BaseModel):
    recurrent_payment_id: str
    payment_id: str | None = None
    user_id: str
    result_code: str | None = None
    result_message: str | None = None
    retries: int | None = None
    status: str
    failed_at: datetime | None = None


class GatewayConfigResponse(BaseModel):
    gateway: str
    outcome: ChargeOutcome
    result_code: str | None = None
    result_message: str | None = None
    raise_error: bool
    delay_seconds: float
