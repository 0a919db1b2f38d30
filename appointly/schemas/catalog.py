# appointly/schemas/catalog.py

from datetime import date as _Date, datetime as _Datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, RootModel, model_validator
from pydantic.config import ConfigDict

from appointly.services.schedule import validate_weekly_schedule


class TenantInfo(BaseModel):
    slug: str
    business_name: str
    timezone: str
    currency: str
    logo: Optional[str] = None
    primary_color: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ServiceOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    duration_minutes: int
    buffer_minutes: int
    price: Decimal
    currency: Optional[str] = None
    require_staff: bool
    model_config = ConfigDict(from_attributes=True)


class StaffOut(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


class TimeRange(BaseModel):
    start: str
    end: str


class WeeklySchedule(RootModel[dict[str, list[TimeRange]]]):
    """weekday -> [{start, end}] in HH:MM, validated and normalized."""

    @model_validator(mode="before")
    @classmethod
    def _check(cls, value):
        return validate_weekly_schedule(value or {})


class WorkingWindow(BaseModel):
    start_time: _Datetime
    end_time: _Datetime


class StaffAvailabilityOut(BaseModel):
    staff_id: int
    date: _Date
    timezone: str
    windows: list[WorkingWindow]
    weekly_schedule: WeeklySchedule
