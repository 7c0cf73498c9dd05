from __future__ import annotations

from datetime import time
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Channel = Literal["inapp", "whatsapp", "sms", "email", "ota"]
BackfillPolicy = Literal["skip_if_past", "until_checkin", "always"]


class _Timing(BaseModel):
    # Parameters of other variants are rejected, not ignored
    model_config = ConfigDict(extra="forbid")


class OnCreateDelayTiming(_Timing):
    type: Literal["on_create_delay"]
    minutes: int = Field(..., ge=0)


class BeforeArrivalTiming(_Timing):
    type: Literal["before_arrival"]
    days: int = Field(..., ge=0)
    at_time: time


class ArrivalDayBeforeCheckinTiming(_Timing):
    type: Literal["arrival_day_before_checkin"]
    hours: int = Field(..., ge=0, le=24)


class AfterCheckinTiming(_Timing):
    type: Literal["after_checkin"]
    hours: int = Field(..., ge=0)


class BeforeCheckoutTiming(_Timing):
    type: Literal["before_checkout"]
    hours: int = Field(..., ge=0)


class AfterDepartureTiming(_Timing):
    type: Literal["after_departure"]
    days: int = Field(..., ge=0)


TimingPayload = Annotated[
    Union[
        OnCreateDelayTiming,
        BeforeArrivalTiming,
        ArrivalDayBeforeCheckinTiming,
        AfterCheckinTiming,
        BeforeCheckoutTiming,
        AfterDepartureTiming,
    ],
    Field(discriminator="type"),
]


class RuleFilters(BaseModel):
    model_config = ConfigDict(extra="forbid")

    booking_sources: Optional[list[str]] = None
    min_nights: Optional[int] = Field(None, ge=0)
    min_guests: Optional[int] = Field(None, ge=0)
    max_guests: Optional[int] = Field(None, ge=0)


class RuleCreatePayload(BaseModel):
    """
    Schema for creating an automation rule.

    ``timing`` carries exactly one variant, selected by its ``type``.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=255)
    template_id: int
    channel: Channel
    timing: TimingPayload
    property_id: Optional[int] = Field(None, description="NULL makes the rule global")
    backfill_policy: BackfillPolicy = "skip_if_past"
    filters: Optional[RuleFilters] = None
    enabled: bool = True


class RuleUpdatePayload(BaseModel):
    """Schema for updating a rule. All fields are optional."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    template_id: Optional[int] = None
    channel: Optional[Channel] = None
    timing: Optional[TimingPayload] = None
    backfill_policy: Optional[BackfillPolicy] = None
    filters: Optional[RuleFilters] = None
    enabled: Optional[bool] = None


class TemplateCreatePayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    subject: Optional[str] = None
    language: str = Field("en", max_length=8)
    enabled: bool = True


class TemplateUpdatePayload(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    subject: Optional[str] = None
    language: Optional[str] = Field(None, max_length=8)
    enabled: Optional[bool] = None


class CancelPayload(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)


class BackfillPayload(BaseModel):
    days_ahead: int = Field(30, ge=0, le=365)
    limit: int = Field(100, ge=1, le=1000)
