# Overview: Service-layer operations for the audit ledger; append-only event writes and reads.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import LedgerEvent, Store
from opscore.time_utils import utcnow
"""
Ledger invariants (authoritative)

- Append-only audit log for workflow and billing events.
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the change they record;
  callers flush, never commit, from here.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_ledger_event(
    *,
    store_id: int,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[str] = None,
) -> LedgerEvent:
    """
    Append-only ledger event.

    - No domain logic here.
    - No deletes/updates of existing events.
    - occurred_at is business time (defaults to now); created_at is system time (db default).
    """
    store = db.session.get(Store, store_id)
    if not store:
        raise ValueError(f"Store {store_id} not found for ledger event")

    ev = LedgerEvent(
        store_id=store_id,
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        occurred_at=occurred_at or utcnow(),
        note=note[:255] if note else None,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def get_entity_events(
    *,
    store_id: int,
    entity_type: str,
    entity_id: int,
    limit: int = 200,
) -> list[LedgerEvent]:
    """Events for one entity, oldest first."""
    return (
        db.session.query(LedgerEvent)
        .filter_by(store_id=store_id, entity_type=entity_type, entity_id=entity_id)
        .order_by(LedgerEvent.occurred_at.asc(), LedgerEvent.id.asc())
        .limit(limit)
        .all()
    )
