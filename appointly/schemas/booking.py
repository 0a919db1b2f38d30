# appointly/schemas/booking.py
"""Request bodies. Clients send camelCase; snake_case is accepted too."""
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class BookingCreate(_Request):
    service_id: int = Field(..., alias="serviceId", gt=0)
    staff_id: Optional[int] = Field(None, alias="staffId", gt=0)
    start_time: str = Field(..., alias="startTime", min_length=1, examples=["2024-03-11T10:00:00-04:00"])
    end_time: str = Field(..., alias="endTime", min_length=1, examples=["2024-03-11T10:30:00-04:00"])
    customer_name: str = Field(..., alias="customerName", min_length=1, max_length=120)
    customer_email: EmailStr = Field(..., alias="customerEmail")
    customer_phone: Optional[str] = Field(None, alias="customerPhone", max_length=20)
    customer_timezone: str = Field(..., alias="customerTimezone", min_length=1, max_length=64)
    notes: Optional[str] = Field(None, max_length=1000)
    payment_option: Literal["prepaid", "pay_at_venue"] = Field("pay_at_venue", alias="paymentOption")
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)

    @field_validator("customer_name")
    @classmethod
    def _clean_name(cls, v: str) -> str:
        # collapse internal extra spaces
        v = " ".join(v.split())
        if not v:
            raise ValueError("customerName cannot be empty")
        return v

    @field_validator("customer_phone")
    @classmethod
    def _clean_phone(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        return v.replace(" ", "").replace("-", "")


class RescheduleRequest(_Request):
    start_time: str = Field(..., alias="startTime", min_length=1)
    end_time: str = Field(..., alias="endTime", min_length=1)


class StatusUpdate(_Request):
    status: Literal["confirmed", "completed", "cancelled", "no-show"]
    reason: Optional[str] = Field(None, max_length=500)


class CancelRequest(_Request):
    reason: Optional[str] = Field(None, max_length=500)


class SlotCheck(_Request):
    service_id: int = Field(..., alias="serviceId", gt=0)
    staff_id: Optional[int] = Field(None, alias="staffId", gt=0)
    start_time: str = Field(..., alias="startTime", min_length=1)
    timezone: Optional[str] = Field(None, max_length=64)


class PaymentUpdate(_Request):
    payment_status: Literal["unpaid", "paid", "refunded"] = Field(..., alias="paymentStatus")
    payment_id: Optional[str] = Field(None, alias="paymentId", max_length=255)
