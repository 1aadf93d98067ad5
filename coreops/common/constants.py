"""Enums and constants for CoreOps leave administration."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    hr_admin = "hr_admin"
    system_admin = "system_admin"


class RoleScope(str, enum.Enum):
    COMPANY = "COMPANY"
    DIVISION = "DIVISION"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    PENDING_L1 = "PENDING_L1"
    PENDING_L2 = "PENDING_L2"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    # Rows written before the two-level workflow existed; read as PENDING_L1.
    SUBMITTED = "SUBMITTED"


class LeaveUnit(str, enum.Enum):
    FULL_DAY = "FULL_DAY"
    HALF_DAY = "HALF_DAY"


class HalfDayPart(str, enum.Enum):
    AM = "AM"
    PM = "PM"


# Statuses that block another request over the same days
ACTIVE_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.PENDING_L1,
    LeaveStatus.PENDING_L2,
    LeaveStatus.SUBMITTED,
    LeaveStatus.APPROVED,
)


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    half_day = "half_day"
    on_leave = "on_leave"


ATTENDANCE_SOURCE_SYSTEM = "system"


# ── Month close ─────────────────────────────────────────────────────

class MonthCloseStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


# ── Tenant settings keys (app_settings table) ───────────────────────

class SettingKey(str, enum.Enum):
    LEAVE_ENABLED = "LEAVE_ENABLED"
    LEAVE_APPROVAL_LEVELS = "LEAVE_APPROVAL_LEVELS"
    LEAVE_ALLOW_HALF_DAY = "LEAVE_ALLOW_HALF_DAY"
    LEAVE_ALLOW_BACKDATED_REQUESTS = "LEAVE_ALLOW_BACKDATED_REQUESTS"
    LEAVE_BACKDATE_LIMIT_DAYS = "LEAVE_BACKDATE_LIMIT_DAYS"
    LEAVE_ATTACHMENTS_ENABLED = "LEAVE_ATTACHMENTS_ENABLED"
    MONTH_CLOSE_ENABLED = "MONTH_CLOSE_ENABLED"


# ── Permission codes ────────────────────────────────────────────────

class Permission(str, enum.Enum):
    LEAVE_APPLY_SELF = "LEAVE_APPLY_SELF"
    LEAVE_APPROVE_L1 = "LEAVE_APPROVE_L1"
    LEAVE_APPROVE_L2 = "LEAVE_APPROVE_L2"
    LEAVE_REQUEST_CANCEL = "LEAVE_REQUEST_CANCEL"
    LEAVE_REQUEST_READ = "LEAVE_REQUEST_READ"
    LEAVE_BALANCE_READ = "LEAVE_BALANCE_READ"
    LEAVE_BALANCE_GRANT = "LEAVE_BALANCE_GRANT"
    LEAVE_TYPE_WRITE = "LEAVE_TYPE_WRITE"
    LEAVE_MONTH_CLOSE_OVERRIDE = "LEAVE_MONTH_CLOSE_OVERRIDE"
    LEAVE_ATTACHMENT_UPLOAD = "LEAVE_ATTACHMENT_UPLOAD"
    LEAVE_ATTACHMENT_READ = "LEAVE_ATTACHMENT_READ"


# ── Role-based permissions ──────────────────────────────────────────

PERMISSIONS: dict[UserRole, list[Permission]] = {
    UserRole.employee: [
        Permission.LEAVE_APPLY_SELF,
    ],
    UserRole.manager: [
        Permission.LEAVE_APPLY_SELF,
        Permission.LEAVE_APPROVE_L1,
        Permission.LEAVE_REQUEST_READ,
        Permission.LEAVE_BALANCE_READ,
        Permission.LEAVE_ATTACHMENT_READ,
    ],
    UserRole.hr_admin: [
        Permission.LEAVE_APPLY_SELF,
        Permission.LEAVE_APPROVE_L1,
        Permission.LEAVE_APPROVE_L2,
        Permission.LEAVE_REQUEST_CANCEL,
        Permission.LEAVE_REQUEST_READ,
        Permission.LEAVE_BALANCE_READ,
        Permission.LEAVE_BALANCE_GRANT,
        Permission.LEAVE_TYPE_WRITE,
        Permission.LEAVE_ATTACHMENT_UPLOAD,
        Permission.LEAVE_ATTACHMENT_READ,
    ],
    UserRole.system_admin: [
        Permission.LEAVE_APPLY_SELF,
        Permission.LEAVE_APPROVE_L1,
        Permission.LEAVE_APPROVE_L2,
        Permission.LEAVE_REQUEST_CANCEL,
        Permission.LEAVE_REQUEST_READ,
        Permission.LEAVE_BALANCE_READ,
        Permission.LEAVE_BALANCE_GRANT,
        Permission.LEAVE_TYPE_WRITE,
        Permission.LEAVE_ATTACHMENT_UPLOAD,
        Permission.LEAVE_ATTACHMENT_READ,
        Permission.LEAVE_MONTH_CLOSE_OVERRIDE,
    ],
}

# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
