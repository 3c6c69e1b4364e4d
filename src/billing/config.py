"""Charging configuration.

Settings are passed explicitly into the policy, builder and orchestrator;
nothing reads global state while a batch is running.

Durations use ISO-8601 specifiers (``P1D``, ``PT12H``, ``P1M``, ``P2W``) and
are applied with calendar arithmetic, so ``P1M`` means "same day next month".
"""

import os
import re
from collections.abc import Mapping

from dateutil.relativedelta import relativedelta
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from billing.exceptions import ConfigurationError

_DURATION_RE = re.compile(
    r"^P(?!$)"
    r"(?:(?P<years>\d+)Y)?"
    r"(?:(?P<months>\d+)M)?"
    r"(?:(?P<weeks>\d+)W)?"
    r"(?:(?P<days>\d+)D)?"
    r"(?:T(?=\d)"
    r"(?:(?P<hours>\d+)H)?"
    r"(?:(?P<minutes>\d+)M)?"
    r"(?:(?P<seconds>\d+)S)?"
    r")?$"
)


def parse_duration(spec: str) -> relativedelta:
    """Parse an ISO-8601 duration specifier into a ``relativedelta``."""
    if not isinstance(spec, str):
        raise ValueError(f"Invalid duration specifier: {spec!r}")
    match = _DURATION_RE.match(spec.strip())
    if match is None:
        raise ValueError(f"Invalid duration specifier: {spec!r}")
    parts = {name: int(value) for name, value in match.groupdict().items() if value}
    return relativedelta(**parts)


def split_durations(value: str) -> list[str]:
    """Split a comma-separated list of duration specifiers."""
    return [part.strip() for part in value.split(",") if part.strip()]


class ChargeConfig(BaseModel):
    """Settings consumed by the recurrent charge batch."""

    model_config = ConfigDict(frozen=True)

    recurrent_payment_charges: tuple[str, ...] = Field(min_length=1)
    gateway_fail_delay: str
    donation_vat_rate: float | None = None
    donation_item_name: str = "Donation"
    gateway_timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("recurrent_payment_charges", mode="before")
    @classmethod
    def _split_charges(cls, value):
        if isinstance(value, str):
            value = split_durations(value)
        return tuple(value)

    @field_validator("recurrent_payment_charges")
    @classmethod
    def _validate_charges(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for spec in value:
            parse_duration(spec)
        return value

    @field_validator("gateway_fail_delay")
    @classmethod
    def _validate_fail_delay(cls, value: str) -> str:
        parse_duration(value)
        return value.strip()

    @property
    def charge_delays(self) -> list[relativedelta]:
        return [parse_duration(spec) for spec in self.recurrent_payment_charges]

    @property
    def gateway_fail_interval(self) -> relativedelta:
        return parse_duration(self.gateway_fail_delay)

    def require_donation_vat_rate(self) -> float:
        if self.donation_vat_rate is None:
            raise ConfigurationError("Config 'donation_vat_rate' is not set")
        return self.donation_vat_rate

    @classmethod
    def build(cls, **values) -> "ChargeConfig":
        """Construct a config, converting validation problems into ``ConfigurationError``."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid charge configuration: {exc}") from exc

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ChargeConfig":
        """Load settings from the process environment (and ``.env`` when present)."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        charges = environ.get("RECURRENT_PAYMENT_CHARGES")
        if not charges:
            raise ConfigurationError("Config 'recurrent_payment_charges' is not set")
        fail_delay = environ.get("RECURRENT_PAYMENT_GATEWAY_FAIL_DELAY")
        if not fail_delay:
            raise ConfigurationError("Config 'recurrent_payment_gateway_fail_delay' is not set")

        values = {
            "recurrent_payment_charges": charges,
            "gateway_fail_delay": fail_delay,
            "donation_item_name": environ.get("DONATION_ITEM_NAME") or "Donation",
        }
        vat_rate = environ.get("DONATION_VAT_RATE")
        if vat_rate not in (None, ""):
            values["donation_vat_rate"] = vat_rate
        timeout = environ.get("GATEWAY_TIMEOUT_SECONDS")
        if timeout:
            values["gateway_timeout_seconds"] = timeout
        return cls.build(**values)
