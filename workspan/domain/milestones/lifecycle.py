"""
Milestone lifecycle - state machine and pricing rules.

Pure decision logic with no database access:
- which action is legal from which status (TRANSITIONS)
- what a rejection costs once free revisions are used up
- whether a project is complete given its milestones' statuses
- whether a price/duration change fits under the project ceiling
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ...shared.errors import StateConflict


class MilestoneStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class MilestoneAction(str, Enum):
    UPDATE = "update"
    START = "start"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    DELETE = "delete"


class ProjectStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# (current status, action) -> next status. None means the row is removed.
# Any pair missing from this table is an illegal transition.
TRANSITIONS: dict[tuple[MilestoneStatus, MilestoneAction], Optional[MilestoneStatus]] = {
    (MilestoneStatus.NOT_STARTED, MilestoneAction.UPDATE): MilestoneStatus.NOT_STARTED,
    (MilestoneStatus.NOT_STARTED, MilestoneAction.START): MilestoneStatus.IN_PROGRESS,
    (MilestoneStatus.NOT_STARTED, MilestoneAction.DELETE): None,
    (MilestoneStatus.IN_PROGRESS, MilestoneAction.SUBMIT): MilestoneStatus.SUBMITTED,
    (MilestoneStatus.REJECTED, MilestoneAction.SUBMIT): MilestoneStatus.SUBMITTED,
    (MilestoneStatus.SUBMITTED, MilestoneAction.APPROVE): MilestoneStatus.APPROVED,
    (MilestoneStatus.SUBMITTED, MilestoneAction.REJECT): MilestoneStatus.REJECTED,
}

# Statuses that no longer count as outstanding work
SETTLED_STATUSES = frozenset({MilestoneStatus.APPROVED, MilestoneStatus.CANCELLED})

# Projects whose milestones may still be started
STARTABLE_PROJECT_STATUSES = frozenset({ProjectStatus.PENDING, ProjectStatus.IN_PROGRESS})


def allowed_from(action: MilestoneAction) -> list[MilestoneStatus]:
    """Statuses from which `action` is legal, in declaration order"""
    return [status for (status, act) in TRANSITIONS if act == action]


def parse_status(value: str) -> MilestoneStatus:
    try:
        return MilestoneStatus(value)
    except ValueError as e:
        raise StateConflict(f"Unknown milestone status: {value}") from e


def transition(current: str, action: MilestoneAction) -> Optional[MilestoneStatus]:
    """
    Resolve the next status for `action`, or raise StateConflict.

    Rejecting an already rejected milestone gets its own message since the
    client portal surfaces it directly.
    """
    status = parse_status(current)
    key = (status, action)
    if key in TRANSITIONS:
        return TRANSITIONS[key]

    if action == MilestoneAction.REJECT and status == MilestoneStatus.REJECTED:
        raise StateConflict("Milestone is already rejected", {"current_status": status.value})

    allowed = [s.value for s in allowed_from(action)]
    raise StateConflict(
        f"Cannot {action.value} milestone in current status: {status.value} "
        f"(only {', '.join(repr(s) for s in allowed)} allowed)",
        {"current_status": status.value, "allowed_status": allowed},
    )


# ============================================================================
# REVISION PRICING
# ============================================================================


@dataclass(frozen=True)
class RevisionQuote:
    has_free_revisions: bool
    revision_charge: float
    new_milestone_price: float
    new_project_price: float


def quote_revision(
    milestone_price: float,
    project_price: float,
    used_revisions: int,
    free_revisions: int,
    revision_rate: float,
) -> RevisionQuote:
    """
    Price a rejection.

    Free revisions cost nothing. After that each rejection adds
    `revision_rate` percent of the *current* milestone price, so paid
    revisions compound: 100 -> 110 -> 121 at 10%.
    """
    has_free_revisions = used_revisions < free_revisions
    revision_charge = 0.0
    if not has_free_revisions and revision_rate > 0:
        revision_charge = round(milestone_price * revision_rate / 100, 2)

    return RevisionQuote(
        has_free_revisions=has_free_revisions,
        revision_charge=revision_charge,
        new_milestone_price=round(milestone_price + revision_charge, 2),
        new_project_price=round(project_price + revision_charge, 2),
    )


# ============================================================================
# PROJECT ROLLUP
# ============================================================================


@dataclass(frozen=True)
class MilestoneCounts:
    total: int
    approved: int
    pending: int

    @property
    def project_completed(self) -> bool:
        return self.total > 0 and self.approved == self.total and self.pending == 0

    def as_dict(self) -> dict:
        return {"total": self.total, "approved": self.approved, "pending": self.pending}


def count_milestones(statuses: Iterable[str]) -> MilestoneCounts:
    """Cancelled milestones are neither counted nor pending"""
    total = approved = pending = 0
    for value in statuses:
        status = parse_status(value)
        if status == MilestoneStatus.CANCELLED:
            continue
        total += 1
        if status == MilestoneStatus.APPROVED:
            approved += 1
        else:
            pending += 1
    return MilestoneCounts(total=total, approved=approved, pending=pending)


def blocking_milestones(priority: int, siblings: Iterable) -> list:
    """Earlier milestones (lower priority) that are not yet approved or cancelled"""
    return [
        m
        for m in siblings
        if m.priority < priority and parse_status(m.status) not in SETTLED_STATUSES
    ]


# ============================================================================
# CEILINGS
# ============================================================================


def exceeds_ceiling(siblings_total: float, proposed: float, ceiling: float) -> bool:
    """Reaching the ceiling exactly is allowed"""
    return round(siblings_total + proposed, 2) > round(ceiling, 2)
