"""
Site Builder — Changesets

A changeset is a batch of operations proposed together (usually one AI
reply). Each operation moves through its own lifecycle:

    proposed ──accept──▶ accepted ──▶ applied
        │                    └──────▶ rejected
        └──dismiss──▶ dismissed

dismissed, applied and rejected are terminal. An applied operation keeps
the snapshot it produced so re-accepting it is a no-op that returns the
same result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from engine.builder.errors import InvalidTransition, OperationNotFound
from engine.builder.types import (
    ACCEPTED,
    APPLIED,
    DISMISSED,
    PROPOSED,
    REJECTED,
    TERMINAL_STATES,
    Operation,
    Project,
    generate_id,
    now_iso,
)

_TRANSITIONS: dict[str, set[str]] = {
    PROPOSED: {ACCEPTED, DISMISSED},
    ACCEPTED: {APPLIED, REJECTED},
    DISMISSED: set(),
    APPLIED: set(),
    REJECTED: set(),
}


@dataclass
class OperationRecord:
    operation: Operation
    status: str = PROPOSED
    reason: str | None = None
    result: Project | None = None
    updated_at: str = field(default_factory=now_iso)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation.to_dict(),
            "status": self.status,
            "reason": self.reason,
            "result_version": self.result.version if self.result else None,
            "updated_at": self.updated_at,
        }


@dataclass
class Changeset:
    project_id: str
    records: list[OperationRecord] = field(default_factory=list)
    message: str = ""
    suggestions: list[str] = field(default_factory=list)
    usage: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: generate_id("cs"))
    created_at: str = field(default_factory=now_iso)

    @classmethod
    def from_operations(
        cls,
        project_id: str,
        operations: list[Operation],
        message: str = "",
        suggestions: list[str] | None = None,
        usage: dict[str, Any] | None = None,
    ) -> Changeset:
        for op in operations:
            if op.project_id != project_id:
                raise InvalidTransition(f"Operation '{op.id}' targets project '{op.project_id}', not '{project_id}'")
        return cls(
            project_id=project_id,
            records=[OperationRecord(operation=op) for op in operations],
            message=message,
            suggestions=list(suggestions or []),
            usage=dict(usage or {}),
        )

    # -- queries -------------------------------------------------------------

    @property
    def operations(self) -> list[Operation]:
        return [r.operation for r in self.records]

    def get(self, operation_id: str) -> OperationRecord:
        for record in self.records:
            if record.operation.id == operation_id:
                return record
        raise OperationNotFound(f"Operation '{operation_id}' is not part of changeset '{self.id}'")

    def status(self, operation_id: str) -> str:
        return self.get(operation_id).status

    def pending(self) -> list[OperationRecord]:
        """Records that may still be applied, in proposal order."""
        return [r for r in self.records if r.status in (PROPOSED, ACCEPTED)]

    @property
    def is_settled(self) -> bool:
        return all(r.is_terminal for r in self.records)

    # -- transitions ---------------------------------------------------------

    def transition(
        self,
        operation_id: str,
        status: str,
        reason: str | None = None,
        result: Project | None = None,
    ) -> OperationRecord:
        """Move one operation to `status`. Raises InvalidTransition if not allowed."""
        record = self.get(operation_id)
        if status not in _TRANSITIONS.get(record.status, set()):
            raise InvalidTransition(f"Operation '{operation_id}' cannot go from {record.status} to {status}")
        record.status = status
        record.reason = reason
        record.result = result
        record.updated_at = now_iso()
        return record

    def accept(self, operation_id: str) -> OperationRecord:
        """proposed → accepted. Already-accepted operations are left as they are."""
        record = self.get(operation_id)
        if record.status == ACCEPTED:
            return record
        return self.transition(operation_id, ACCEPTED)

    def dismiss(self, operation_id: str) -> OperationRecord:
        return self.transition(operation_id, DISMISSED)

    def mark_applied(self, operation_id: str, result: Project) -> OperationRecord:
        return self.transition(operation_id, APPLIED, result=result)

    def mark_rejected(self, operation_id: str, reason: str) -> OperationRecord:
        return self.transition(operation_id, REJECTED, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "message": self.message,
            "suggestions": self.suggestions,
            "usage": self.usage,
            "created_at": self.created_at,
            "operations": [r.to_dict() for r in self.records],
        }
