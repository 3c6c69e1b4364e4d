"""FastAPI routes for the Billing domain — recurrent payment charging."""

import os

from fastapi import APIRouter, HTTPException
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from billing.api.schemas import (
    BatchSummaryResponse,
    ConfigureGatewayRequest,
    FailedChargeResponse,
    GatewayConfigResponse,
    RecurrentPaymentResponse,
    RunChargeRequest,
    TokenReportResponse,
)
from billing.config import ChargeConfig
from billing.exceptions import ConfigurationError
from billing.gateway import UnknownGatewayError, get_gateway
from billing.gateway.fake_adapter import FakeGateway
from billing.projections.failed_charges import FailedRecurrentCharge
from billing.recurrent.charge import RecurrentChargeOrchestrator
from billing.recurrent.recurrent_payment import RecurrentPayment

recurrent_payment_router = APIRouter(prefix="/recurrent-payments", tags=["recurrent-payments"])


@recurrent_payment_router.post("/charge", response_model=BatchSummaryResponse)
async def run_charge(body: RunChargeRequest | None = None) -> BatchSummaryResponse:
    """Charge every due recurrent payment (maintenance trigger).

    Meant for an external scheduler. Runs synchronously and returns the
    batch summary.
    """
    body = body or RunChargeRequest()
    try:
        orchestrator = RecurrentChargeOrchestrator(ChargeConfig.from_env(), charge_mode=body.charge)
        summary = orchestrator.run_batch(as_of=body.as_of)
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=f"Billing misconfigured: {exc}") from exc

    return BatchSummaryResponse(
        **summary.to_dict(),
        reports=[
            TokenReportResponse(
                recurrent_payment_id=report.recurrent_payment_id,
                cid=report.cid,
                user_id=report.user_id,
                status=report.status.value,
                result_code=report.result_code,
                payment_id=report.payment_id,
            )
            for report in summary.reports
        ],
    )


@recurrent_payment_router.get("/failed", response_model=list[FailedChargeResponse])
async def list_failed_charges(status: str | None = None) -> list[FailedChargeResponse]:
    """Failed recurrent charges, optionally filtered by ``retrying``/``stopped``."""
    dao = current_domain.repository_for(FailedRecurrentCharge)._dao
    query = dao.query.filter(status=status) if status else dao.query
    return [
        FailedChargeResponse(
            recurrent_payment_id=str(record.recurrent_payment_id),
            payment_id=str(record.payment_id) if record.payment_id else None,
            user_id=str(record.user_id),
            result_code=record.result_code,
            result_message=record.result_message,
            retries=record.retries,
            status=record.status,
            failed_at=record.failed_at,
        )
        for record in query.limit(None).all().items
    ]


@recurrent_payment_router.get("/{recurrent_payment_id}", response_model=RecurrentPaymentResponse)
async def get_recurrent_payment(recurrent_payment_id: str) -> RecurrentPaymentResponse:
    try:
        token = current_domain.repository_for(RecurrentPayment).get(recurrent_payment_id)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Recurrent payment not found") from exc

    return RecurrentPaymentResponse(
        recurrent_payment_id=str(token.id),
        cid=token.cid,
        user_id=str(token.user_id),
        payment_gateway=token.payment_gateway,
        parent_payment_id=str(token.parent_payment_id) if token.parent_payment_id else None,
        payment_id=str(token.payment_id) if token.payment_id else None,
        state=token.state,
        status=token.status,
        approval=token.approval,
        retries=token.retries,
        charge_at=token.charge_at,
        custom_amount=token.custom_amount,
        note=token.note,
    )


@recurrent_payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure a FakeGateway's behavior (non-production only).

    This endpoint is only available when PROTEAN_ENV is not 'production'.
    It lets manual API testing pick the outcome of the next charges.
    """
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    try:
        gateway = get_gateway(body.gateway)
    except UnknownGatewayError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        outcome=body.outcome,
        result_code=body.result_code,
        result_message=body.result_message,
        raise_error=body.raise_error,
        delay_seconds=body.delay_seconds,
    )
    return GatewayConfigResponse(
        gateway=body.gateway,
        outcome=gateway.outcome,
        result_code=gateway.result_code,
        result_message=gateway.result_message,
        raise_error=gateway.raise_error,
        delay_seconds=gateway.delay_seconds,
    )
