# Overview: Declarative transition tables for every built-in entity lifecycle.

"""
Built-in workflow tables.

Each table maps a state to the states directly reachable from it. Three shapes
occur and the engine treats them identically:
- forward-only chains (repair orders, lab orders)
- chains with an escape state reachable from many nodes (cancelled)
- graphs with legitimate back-edges (projects on_hold -> in_progress,
  legal cases pending_hearing -> in_progress, enrollments suspended -> active)
"""

from __future__ import annotations

from .workflow_registry import Active, TERMINAL, Workflow


# Hotel / guesthouse / camping stays
RESERVATION = Workflow(
    "reservation",
    initial="confirmed",
    states={
        "confirmed": Active("checked_in", "cancelled", "no_show"),
        "checked_in": Active("checked_out"),
        "checked_out": TERMINAL,
        "cancelled": TERMINAL,
        "no_show": TERMINAL,
    },
)

HOUSEKEEPING_TASK = Workflow(
    "housekeeping_task",
    initial="pending",
    states={
        "pending": Active("in_progress", "skipped"),
        "in_progress": Active("completed", "skipped"),
        "completed": TERMINAL,
        "skipped": TERMINAL,
    },
)

MAINTENANCE_REQUEST = Workflow(
    "maintenance_request",
    initial="reported",
    states={
        "reported": Active("assigned", "cancelled"),
        "assigned": Active("in_progress", "cancelled"),
        "in_progress": Active("completed", "cancelled"),
        "completed": TERMINAL,
        "cancelled": TERMINAL,
    },
)

# Strictly linear; cancellable until the repair is completed
REPAIR_ORDER = Workflow(
    "repair_order",
    initial="received",
    states={
        "received": Active("diagnosed", "cancelled"),
        "diagnosed": Active("quoted", "cancelled"),
        "quoted": Active("approved", "cancelled"),
        "approved": Active("in_repair", "cancelled"),
        "in_repair": Active("completed", "cancelled"),
        "completed": Active("delivered"),
        "delivered": TERMINAL,
        "cancelled": TERMINAL,
    },
)

# Ironing is optional (drying -> ready). Once washing starts the order
# cannot be cancelled.
LAUNDRY_ORDER = Workflow(
    "laundry_order",
    initial="received",
    states={
        "received": Active("processing", "cancelled"),
        "processing": Active("washing", "cancelled"),
        "washing": Active("drying"),
        "drying": Active("ironing", "ready"),
        "ironing": Active("ready"),
        "ready": Active("delivered"),
        "delivered": TERMINAL,
        "cancelled": TERMINAL,
    },
)

# Hearings can send a case back to active work; closed cases are archived later.
LEGAL_CASE = Workflow(
    "legal_case",
    initial="open",
    states={
        "open": Active("in_progress", "closed"),
        "in_progress": Active("pending_hearing", "settled", "closed"),
        "pending_hearing": Active("in_progress", "settled", "closed"),
        "settled": Active("closed", "archived"),
        "closed": Active("archived"),
        "archived": TERMINAL,
    },
)

PROJECT = Workflow(
    "project",
    initial="planning",
    states={
        "planning": Active("in_progress", "cancelled"),
        "in_progress": Active("on_hold", "completed", "cancelled"),
        "on_hold": Active("in_progress", "cancelled"),
        "completed": TERMINAL,
        "cancelled": TERMINAL,
    },
)

CONSULTATION = Workflow(
    "consultation",
    initial="scheduled",
    states={
        "scheduled": Active("in_progress", "cancelled", "no_show", "rescheduled"),
        "rescheduled": Active("in_progress", "cancelled", "no_show"),
        "in_progress": Active("completed"),
        "completed": TERMINAL,
        "cancelled": TERMINAL,
        "no_show": TERMINAL,
    },
)

PHOTO_SESSION = Workflow(
    "photo_session",
    initial="scheduled",
    states={
        "scheduled": Active("in_progress", "cancelled", "no_show"),
        "in_progress": Active("completed"),
        "completed": TERMINAL,
        "cancelled": TERMINAL,
        "no_show": TERMINAL,
    },
)

CLASS_BOOKING = Workflow(
    "class_booking",
    initial="booked",
    states={
        "booked": Active("attended", "cancelled", "no_show"),
        "attended": TERMINAL,
        "cancelled": TERMINAL,
        "no_show": TERMINAL,
    },
)

# Coworking desks
DESK_BOOKING = Workflow(
    "desk_booking",
    initial="confirmed",
    states={
        "confirmed": Active("checked_in", "cancelled", "no_show"),
        "checked_in": Active("completed"),
        "completed": TERMINAL,
        "cancelled": TERMINAL,
        "no_show": TERMINAL,
    },
)

ENROLLMENT = Workflow(
    "enrollment",
    initial="active",
    states={
        "active": Active("completed", "withdrawn", "suspended"),
        "suspended": Active("active", "withdrawn"),
        "completed": TERMINAL,
        "withdrawn": TERMINAL,
    },
)

PURCHASE_ORDER = Workflow(
    "purchase_order",
    initial="draft",
    states={
        "draft": Active("sent", "cancelled"),
        "sent": Active("confirmed", "cancelled"),
        "confirmed": Active("partially_received", "received", "cancelled"),
        "partially_received": Active("received"),
        "received": TERMINAL,
        "cancelled": TERMINAL,
    },
)

TREATMENT_PLAN = Workflow(
    "treatment_plan",
    initial="draft",
    states={
        "draft": Active("active", "cancelled"),
        "active": Active("completed", "cancelled"),
        "completed": TERMINAL,
        "cancelled": TERMINAL,
    },
)

SUBSCRIPTION = Workflow(
    "subscription",
    initial="active",
    states={
        "active": Active("paused", "cancelled", "expired"),
        "paused": Active("active", "cancelled"),
        "cancelled": TERMINAL,
        "expired": TERMINAL,
    },
)

SERVICE_REQUEST = Workflow(
    "service_request",
    initial="pending",
    states={
        "pending": Active("confirmed", "cancelled"),
        "confirmed": Active("in_progress", "cancelled"),
        "in_progress": Active("completed", "cancelled"),
        "completed": TERMINAL,
        "cancelled": TERMINAL,
    },
)

LAB_ORDER = Workflow(
    "lab_order",
    initial="ordered",
    states={
        "ordered": Active("collected", "cancelled"),
        "collected": Active("processing", "cancelled"),
        "processing": Active("completed", "cancelled"),
        "completed": TERMINAL,
        "cancelled": TERMINAL,
    },
)

# Inpatient stays
ADMISSION = Workflow(
    "admission",
    initial="admitted",
    states={
        "admitted": Active("discharged", "transferred"),
        "discharged": TERMINAL,
        "transferred": TERMINAL,
    },
)

MEDICAL_COMPLAINT = Workflow(
    "medical_complaint",
    initial="open",
    states={
        "open": Active("assigned", "closed"),
        "assigned": Active("reviewed", "closed"),
        "reviewed": Active("resolved", "closed"),
        "resolved": Active("closed"),
        "closed": TERMINAL,
    },
)


DEFAULT_WORKFLOWS = (
    RESERVATION,
    HOUSEKEEPING_TASK,
    MAINTENANCE_REQUEST,
    REPAIR_ORDER,
    LAUNDRY_ORDER,
    LEGAL_CASE,
    PROJECT,
    CONSULTATION,
    PHOTO_SESSION,
    CLASS_BOOKING,
    DESK_BOOKING,
    ENROLLMENT,
    PURCHASE_ORDER,
    TREATMENT_PLAN,
    SUBSCRIPTION,
    SERVICE_REQUEST,
    LAB_ORDER,
    ADMISSION,
    MEDICAL_COMPLAINT,
)
