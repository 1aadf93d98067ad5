"""Common module — shared utilities for CoreOps Leave."""

from coreops.common.audit import AuditMixin, AuditTrail, create_audit_entry
from coreops.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PERMISSIONS,
    AttendanceStatus,
    HalfDayPart,
    LeaveStatus,
    LeaveUnit,
    MonthCloseStatus,
    Permission,
    RoleScope,
    SettingKey,
    UserRole,
)
from coreops.common.exceptions import (
    AppException,
    ConflictError,
    DuplicateException,
    ForbiddenException,
    NotFoundException,
    OverlappingLeaveError,
    ValidationException,
    VersionConflictError,
    register_exception_handlers,
)
from coreops.common.pagination import PaginatedResponse, PaginationMeta, paginate
from coreops.common.versioning import CasOutcome, CasResult, compare_and_swap

__all__ = [
    # Audit
    "AuditMixin",
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "AttendanceStatus",
    "HalfDayPart",
    "LeaveStatus",
    "LeaveUnit",
    "MonthCloseStatus",
    "Permission",
    "RoleScope",
    "SettingKey",
    "UserRole",
    "ACTIVE_LEAVE_STATUSES",
    "PERMISSIONS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "DuplicateException",
    "ForbiddenException",
    "NotFoundException",
    "OverlappingLeaveError",
    "ValidationException",
    "VersionConflictError",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "paginate",
    # Optimistic concurrency
    "CasOutcome",
    "CasResult",
    "compare_and_swap",
]
