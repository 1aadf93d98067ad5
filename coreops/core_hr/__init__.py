"""Core HR module — Division and Employee master data used by leave."""

from coreops.core_hr.models import Division, Employee

__all__ = ["Division", "Employee"]
