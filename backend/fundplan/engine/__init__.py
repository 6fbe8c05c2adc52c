"""Workflow Engine - record status transitions"""
from .engine import WorkflowEngine, WorkflowResult
from .permission_guard import PermissionGuard
from .transition_resolver import TransitionResolver, Outcome, TRANSITION_TABLE
from .audit_writer import AuditWriter

__all__ = [
    "WorkflowEngine",
    "WorkflowResult",
    "PermissionGuard",
    "TransitionResolver",
    "Outcome",
    "TRANSITION_TABLE",
    "AuditWriter",
]
