"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
  - *Brief              → compact embedded representations

Request bodies only check shape. Business rules (reason required, half-day
part, date admissibility) are enforced by the service so that every caller
gets the same errors.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coreops.common.constants import HalfDayPart, LeaveStatus, LeaveUnit


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    display_name: Optional[str] = None


class LeaveTypeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    is_paid: bool = True


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_paid: bool = True
    supports_half_day: bool = False
    affects_payroll: bool = False
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalise_code(cls, v: str) -> str:
        return v.strip().upper()


class LeaveTypeUpdate(BaseModel):
    """Partial update; ``version`` is the token read by the caller."""

    version: int = Field(..., ge=1)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_paid: Optional[bool] = None
    supports_half_day: Optional[bool] = None
    affects_payroll: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def normalise_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v is not None else None


class LeaveTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    is_paid: bool
    supports_half_day: bool
    affects_payroll: bool
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceGrant(BaseModel):
    """Administrative grant. ``opening_balance`` replaces the stored opening
    value only when present."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int = Field(..., ge=1900, le=9999)
    granted_balance: Decimal = Field(Decimal("0"), ge=0, max_digits=6, decimal_places=2)
    opening_balance: Optional[Decimal] = Field(None, ge=0, max_digits=6, decimal_places=2)
    reason: Optional[str] = Field(None, max_length=1000)


class LeaveBalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    opening_balance: Decimal
    granted_balance: Decimal
    consumed_balance: Decimal
    available_balance: Decimal
    version: int
    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Request: write
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for applying a leave request.

    ``employee_id`` defaults to the acting employee when omitted.
    """

    employee_id: Optional[uuid.UUID] = None
    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    unit: LeaveUnit = LeaveUnit.FULL_DAY
    half_day_part: Optional[HalfDayPart] = None
    reason: Optional[str] = Field(None, max_length=1000)
    override_reason: Optional[str] = Field(
        None, max_length=1000, description="Required to file into a closed month",
    )


class LeaveTransitionRequest(BaseModel):
    """Body shared by approve / reject / cancel.

    ``version`` pins the write to the version the caller last read; when
    omitted the version observed under the row lock is used.
    """

    reason: Optional[str] = Field(None, max_length=1000)
    version: Optional[int] = Field(None, ge=1)


class LeaveApproveRequest(LeaveTransitionRequest):
    pass


class LeaveRejectRequest(LeaveTransitionRequest):
    pass


class LeaveCancelRequest(LeaveTransitionRequest):
    pass


# ═════════════════════════════════════════════════════════════════════
# Leave Request: read
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    unit: LeaveUnit
    half_day_part: Optional[HalfDayPart] = None
    units: Decimal
    reason: str
    status: LeaveStatus

    approved_l1_by: Optional[uuid.UUID] = None
    approved_l1_at: Optional[datetime] = None
    approved_l2_by: Optional[uuid.UUID] = None
    approved_l2_at: Optional[datetime] = None
    rejected_by: Optional[uuid.UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_by: Optional[uuid.UUID] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    version: int
    created_at: datetime
    updated_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def normalise_legacy_status(cls, v):
        # Rows from before the two-level workflow still say SUBMITTED
        if v == LeaveStatus.SUBMITTED or v == LeaveStatus.SUBMITTED.value:
            return LeaveStatus.PENDING_L1
        return v


# ═════════════════════════════════════════════════════════════════════
# Leave Attachment
# ═════════════════════════════════════════════════════════════════════


class LeaveAttachmentCreate(BaseModel):
    """Metadata for a file already placed in object storage."""

    file_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=100)
    size_bytes: int = Field(..., ge=1)
    storage_key: str = Field(..., min_length=1)

    @field_validator("file_name", "mime_type", "storage_key")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class LeaveAttachmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    leave_request_id: uuid.UUID
    file_name: str
    mime_type: str
    size_bytes: int
    storage_key: str
    uploaded_by: Optional[uuid.UUID] = None
    uploaded_at: datetime
