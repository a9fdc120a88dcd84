"""Bulk task operations for TaskTrail.

Validates a batch request and applies one operation (update, archive or
delete) to each target in input order.  All mutation goes through the
caller-supplied ``BulkMutators``; the engine itself performs no I/O.

A failure on one target (missing task or a mutator exception) is recorded
and the batch carries on.  Earlier successes are never rolled back.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, TypeVar

from tasktrail.core.config import MAX_BULK_TARGETS, MS_PER_BULK_ITEM
from tasktrail.core.models import (
    BULK_UPDATE_FIELDS,
    BulkFailure,
    BulkMutators,
    BulkOperation,
    BulkOperationResult,
    OperationKind,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

VALIDATION_TARGET = "validation"


class BulkOperationEngine:
    """Applies a ``BulkOperation`` to a list of tasks."""

    def __init__(
        self,
        max_targets: int = MAX_BULK_TARGETS,
        ms_per_item: int = MS_PER_BULK_ITEM,
    ) -> None:
        self.max_targets = max_targets
        self.ms_per_item = ms_per_item

    def validate(self, operation: BulkOperation) -> Optional[str]:
        """Return the reason *operation* is invalid, or ``None`` if it is valid."""
        if not operation.target_ids:
            return "No tasks selected"

        if len(operation.target_ids) > self.max_targets:
            return f"Cannot process more than {self.max_targets} tasks at once"

        if operation.kind is OperationKind.UPDATE:
            if not operation.field_changes:
                return "No changes specified for update operation"
            unsupported = sorted(set(operation.field_changes) - BULK_UPDATE_FIELDS)
            if unsupported:
                return f"Unsupported fields for bulk update: {', '.join(unsupported)}"

        return None

    def apply(
        self,
        entities: Iterable[Any],
        operation: BulkOperation,
        mutators: BulkMutators,
    ) -> BulkOperationResult:
        """Run *operation* against *entities* and report the outcome per target.

        Validation happens before any mutator is called.  On a validation
        failure the result carries a single synthetic failure whose
        ``target_id`` is ``"validation"`` and both counters stay at zero.
        """
        reason = self.validate(operation)
        if reason is not None:
            logger.info("Rejected bulk %s: %s", operation.kind.value, reason)
            return BulkOperationResult(
                overall_success=False,
                failures=[BulkFailure(target_id=VALIDATION_TARGET, reason=reason)],
            )

        known_ids = {_entity_id(e) for e in entities}
        result = BulkOperationResult(overall_success=True)

        for target_id in operation.target_ids:
            if target_id not in known_ids:
                self._record_failure(result, operation, target_id, "Task not found")
                continue
            try:
                self._dispatch(operation, target_id, mutators)
            except Exception as exc:
                self._record_failure(result, operation, target_id, str(exc) or "Unknown error")
                continue
            result.succeeded_count += 1

        result.overall_success = result.failed_count == 0
        logger.info(
            "Bulk %s finished: %d succeeded, %d failed",
            operation.kind.value,
            result.succeeded_count,
            result.failed_count,
        )
        return result

    def estimate_processing_time(self, task_count: int) -> int:
        """Rough processing time for a batch of *task_count* items, in milliseconds."""
        return task_count * self.ms_per_item

    @staticmethod
    def _dispatch(operation: BulkOperation, target_id: str, mutators: BulkMutators) -> None:
        if operation.kind is OperationKind.UPDATE:
            mutators.update(target_id, dict(operation.field_changes or {}))
        elif operation.kind is OperationKind.ARCHIVE:
            mutators.archive(target_id)
        elif operation.kind is OperationKind.DELETE:
            mutators.delete(target_id)
        else:
            raise ValueError(f"Unknown operation type: {operation.kind}")

    @staticmethod
    def _record_failure(
        result: BulkOperationResult,
        operation: BulkOperation,
        target_id: str,
        reason: str,
    ) -> None:
        logger.warning("Bulk %s failed for %s: %s", operation.kind.value, target_id, reason)
        result.failed_count += 1
        result.failures.append(BulkFailure(target_id=target_id, reason=reason))


def _entity_id(entity: Any) -> Any:
    if isinstance(entity, Mapping):
        return entity.get("id")
    return getattr(entity, "id", None)


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------

def create_bulk_update(task_ids: list[str], changes: dict[str, Any]) -> BulkOperation:
    return BulkOperation(kind=OperationKind.UPDATE, target_ids=task_ids, field_changes=changes)


def create_bulk_archive(task_ids: list[str]) -> BulkOperation:
    return BulkOperation(kind=OperationKind.ARCHIVE, target_ids=task_ids)


def create_bulk_delete(task_ids: list[str]) -> BulkOperation:
    return BulkOperation(kind=OperationKind.DELETE, target_ids=task_ids)


# ---------------------------------------------------------------------------
# Batching
# ---------------------------------------------------------------------------

def get_batch_size(total: int) -> int:
    """Return the batch size to use for *total* items."""
    if total <= 10:
        return total
    if total <= 50:
        return 10
    return 25


def batch_items(items: list[T], batch_size: int) -> list[list[T]]:
    """Split *items* into consecutive slices of at most *batch_size*.

    Raises ValueError if *batch_size* is not positive.
    """
    if batch_size <= 0:
        raise ValueError(f"Batch size must be positive, got {batch_size}")
    return [items[i:i + batch_size] for i in range(0, len(items), batch_size)]
