from __future__ import annotations

from ..extensions import db
from opscore.time_utils import to_utc_z


class WorkflowRecord(db.Model):
    """
    A business entity (reservation, repair order, legal case, ...) whose status
    is governed by the workflow registered for its entity_type.

    WHY ONE TABLE: the lifecycle rules live in the workflow registry, not in the
    schema. Entity-specific columns belong to the owning module; this row only
    carries what the status contract needs.
    """
    __tablename__ = "workflow_records"
    __table_args__ = (
        db.UniqueConstraint("store_id", "entity_type", "reference", name="uq_workflow_records_store_type_ref"),
        db.Index("ix_workflow_records_store_type_status", "store_id", "entity_type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    entity_type = db.Column(db.String(64), nullable=False)
    # Human-readable identifier supplied by the owning module (order number, case number, ...)
    reference = db.Column(db.String(64), nullable=False)

    status = db.Column(db.String(32), nullable=False)
    status_changed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # Set when a terminal state is entered
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<WorkflowRecord id={self.id} {self.entity_type}:{self.reference} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "entity_type": self.entity_type,
            "reference": self.reference,
            "status": self.status,
            "status_changed_at": to_utc_z(self.status_changed_at),
            "closed_at": to_utc_z(self.closed_at),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
