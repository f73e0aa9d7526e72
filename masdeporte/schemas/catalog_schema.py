"""Club catalog models: companies, their services and booking windows."""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from masdeporte.config import settings


class Service(BaseModel):
    """A bookable service offered by a company. Read-only on the client."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    name: str
    price: Decimal = Field(gt=0)
    duration_minutes: int = Field(gt=0, alias="durationMinutes")
    description: Optional[str] = None


class BookingPolicy(BaseModel):
    """How far ahead a company accepts reservations, in whole days."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    min_advance_days: int = Field(
        default=settings.booking.default_min_advance_days, ge=0, alias="minAdvanceDays"
    )
    max_advance_days: int = Field(
        default=settings.booking.default_max_advance_days, ge=0, alias="maxAdvanceDays"
    )

    @model_validator(mode="after")
    def _check_window(self) -> "BookingPolicy":
        if self.max_advance_days < self.min_advance_days:
            raise ValueError(
                f"max_advance_days ({self.max_advance_days}) must be >= "
                f"min_advance_days ({self.min_advance_days})"
            )
        return self


class Company(BaseModel):
    """A club as returned by the public company endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    slug: Optional[str] = Field(default=None, alias="urlSlug")
    address: Optional[str] = None
    services: list[Service] = Field(default_factory=list)
    policy: BookingPolicy = Field(default_factory=BookingPolicy)

    @classmethod
    def from_backend(cls, data: dict[str, Any]) -> "Company":
        """Build a Company from a backend payload.

        The backend sends the advance-day limits at the top level. A null or
        zero limit means the club never set one, so the configured default
        applies.
        """
        policy_fields = {
            key: data[key]
            for key in ("minAdvanceDays", "maxAdvanceDays")
            if data.get(key)
        }
        payload = {k: v for k, v in data.items() if k not in ("minAdvanceDays", "maxAdvanceDays")}
        return cls(**payload, policy=BookingPolicy(**policy_fields))
