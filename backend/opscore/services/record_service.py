# Overview: Service-layer operations for workflow records; creation and validated status changes.

"""
Workflow Record Service

================================================================================
PURPOSE: Persist status changes only after the workflow table accepts them
================================================================================

RULES (NON-NEGOTIABLE):
1. validate before persist: the registry's table for the record's entity_type
   decides, through transition_service, never ad-hoc checks here
2. Same-state requests succeed and change nothing (no timestamp, no event)
3. Entering a terminal state stamps closed_at
4. Every accepted change appends workflow.status_changed to the ledger in the
   same transaction

The registry is passed in by the caller (app.extensions, CLI, tests).
================================================================================
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Store, WorkflowRecord
from opscore.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_ledger_event, get_entity_events
from .transition_service import next_actions, require_transition
from .workflow_registry import WorkflowRegistry


logger = logging.getLogger(__name__)


class RecordError(ValueError):
    pass


class RecordNotFoundError(RecordError):
    pass


def create_record(
    registry: WorkflowRegistry,
    *,
    store_id: int,
    entity_type: str,
    reference: str,
    status: str | None = None,
    notes: str | None = None,
) -> WorkflowRecord:
    """
    Create a record in its workflow's initial state (or an explicit declared state).

    Raises:
        UnknownWorkflowError: entity_type not registered
        RecordError: unknown store, undeclared status or duplicate reference
    """
    workflow = registry.require(entity_type)
    status = status or workflow.initial
    if not workflow.has_state(status):
        raise RecordError(f"Invalid status '{status}' for workflow '{entity_type}'")

    if db.session.get(Store, store_id) is None:
        raise RecordError(f"Store {store_id} not found")

    now = utcnow()
    record = WorkflowRecord(
        store_id=store_id,
        entity_type=entity_type,
        reference=reference,
        status=status,
        status_changed_at=now,
        closed_at=now if workflow.is_terminal(status) else None,
        notes=notes,
    )
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise RecordError(f"{entity_type} '{reference}' already exists")

    logger.info("Created %s record %s (%s) in '%s'", entity_type, record.id, reference, status)
    return record


def get_record(record_id: int, *, store_id: int | None = None) -> WorkflowRecord:
    query = db.session.query(WorkflowRecord).filter_by(id=record_id)
    if store_id is not None:
        query = query.filter_by(store_id=store_id)
    record = query.first()
    if record is None:
        raise RecordNotFoundError(f"Record {record_id} not found")
    return record


def change_status(
    registry: WorkflowRegistry,
    record_id: int,
    requested: str,
    *,
    store_id: int | None = None,
    note: str | None = None,
) -> WorkflowRecord:
    """
    Move a record to `requested` if its workflow allows it.

    Returns:
        The record (unchanged for a same-state request)

    Raises:
        RecordNotFoundError: If record missing (or in another store)
        TransitionError: If the workflow rejects the change
    """
    def _op() -> WorkflowRecord:
        query = db.session.query(WorkflowRecord).filter_by(id=record_id)
        if store_id is not None:
            query = query.filter_by(store_id=store_id)
        record = lock_for_update(query).first()
        if record is None:
            raise RecordNotFoundError(f"Record {record_id} not found")

        workflow = registry.require(record.entity_type)
        current = record.status
        require_transition(workflow, current, requested)

        if current == requested:
            db.session.rollback()  # release the lock; nothing to write
            return record

        now = utcnow()
        record.status = requested
        record.status_changed_at = now
        if workflow.is_terminal(requested):
            record.closed_at = now

        append_ledger_event(
            store_id=record.store_id,
            event_type="workflow.status_changed",
            event_category="workflow",
            entity_type=record.entity_type,
            entity_id=record.id,
            occurred_at=now,
            note=note,
            payload=f"{current}->{requested}",
        )

        db.session.commit()
        logger.info(
            "%s %s: '%s' -> '%s'", record.entity_type, record.id, current, requested,
        )
        return record

    try:
        return run_with_retry(_op)
    except RecordError:
        db.session.rollback()
        raise
    except ValueError as exc:
        db.session.rollback()
        logger.warning("Rejected status change on record %s: %s", record_id, exc)
        raise


def get_record_detail(registry: WorkflowRegistry, record_id: int, *, store_id: int) -> dict:
    """Record, the actions offerable from its status, and its ledger history."""
    record = get_record(record_id, store_id=store_id)
    workflow = registry.require(record.entity_type)
    history = get_entity_events(
        store_id=record.store_id,
        entity_type=record.entity_type,
        entity_id=record.id,
    )
    data = record.to_dict()
    data["terminal"] = workflow.is_terminal(record.status)
    data["next_actions"] = [a.to_dict() for a in next_actions(workflow, record.status)]
    data["history"] = [e.to_dict() for e in history]
    return data
