"""
Approval domain types (``payroll_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the maker-checker-finance approval workflow.
Defines the payroll record lifecycle, the actor roles, and the single
transition table ``(current_status, action) -> TransitionRule`` that both
the approval service and its tests are driven from.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/`` or ``services/``.  May import only from
``payroll_kernel.exceptions``.

Invariants enforced
-------------------
* ``TRANSITIONS`` is the only source of valid status changes.  A
  ``(status, action)`` pair with no entry is an illegal transition.
* ``Paid`` has no outgoing edges; every mutation of a paid record
  raises ``RecordImmutableError``.
* Segregation of duties: the maker of a record can never approve it, and
  the finance approver must differ from both maker and checker.

Failure modes
-------------
* ``StateTransitionError`` / ``RecordImmutableError`` -- no edge for the
  requested action from the current status.
* ``RoleViolationError`` -- actor role not in the rule's allowed roles.
* ``SelfApprovalForbiddenError`` -- actor is the maker (or the checker,
  for the finance step).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from payroll_kernel.exceptions import (
    RecordImmutableError,
    RoleViolationError,
    SelfApprovalForbiddenError,
    StateTransitionError,
)


class PayrollStatus(str, Enum):
    """Payroll record lifecycle states."""

    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    PROCESSED = "Processed"
    PAID = "Paid"


class PayrollAction(str, Enum):
    """Actions an actor may request against a payroll record."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    FINALIZE = "finalize"
    REOPEN = "reopen"


class ActorRole(str, Enum):
    """Payroll sub-roles of an administrator."""

    MAKER = "Maker"
    CHECKER = "Checker"
    FINANCE = "Finance"


@dataclass(frozen=True)
class Actor:
    """The authenticated administrator performing an operation."""

    actor_id: str
    tenant_id: str
    role: ActorRole
    name: str = ""


@dataclass(frozen=True)
class TransitionRule:
    """One edge of the lifecycle graph.

    ``next_status`` is None for a hard delete.  ``history_label`` is the
    action name written into the record's approval history.
    """

    next_status: PayrollStatus | None
    allowed_roles: frozenset[ActorRole]
    history_label: str
    forbid_maker: bool = False
    forbid_checker: bool = False
    requires_comment: bool = False


_MAKER = frozenset({ActorRole.MAKER})
_CHECKER = frozenset({ActorRole.CHECKER})
_FINANCE = frozenset({ActorRole.FINANCE})

TRANSITIONS: dict[tuple[PayrollStatus | None, PayrollAction], TransitionRule] = {
    (None, PayrollAction.CREATE): TransitionRule(
        PayrollStatus.DRAFT, _MAKER, "Created",
    ),
    (PayrollStatus.DRAFT, PayrollAction.UPDATE): TransitionRule(
        PayrollStatus.DRAFT, _MAKER, "Updated",
    ),
    (PayrollStatus.DRAFT, PayrollAction.DELETE): TransitionRule(
        None, _MAKER, "Deleted",
    ),
    (PayrollStatus.DRAFT, PayrollAction.SUBMIT): TransitionRule(
        PayrollStatus.SUBMITTED, _MAKER, "Submitted",
    ),
    (PayrollStatus.DRAFT, PayrollAction.APPROVE): TransitionRule(
        PayrollStatus.APPROVED, _CHECKER, "Approved", forbid_maker=True,
    ),
    (PayrollStatus.SUBMITTED, PayrollAction.APPROVE): TransitionRule(
        PayrollStatus.APPROVED, _CHECKER, "Approved", forbid_maker=True,
    ),
    (PayrollStatus.SUBMITTED, PayrollAction.REJECT): TransitionRule(
        PayrollStatus.REJECTED, _CHECKER, "Rejected", requires_comment=True,
    ),
    (PayrollStatus.APPROVED, PayrollAction.REJECT): TransitionRule(
        PayrollStatus.REJECTED, _CHECKER | _FINANCE, "Rejected",
        requires_comment=True,
    ),
    (PayrollStatus.APPROVED, PayrollAction.APPROVE): TransitionRule(
        PayrollStatus.PROCESSED, _FINANCE, "Finance Approved",
        forbid_maker=True, forbid_checker=True,
    ),
    (PayrollStatus.PROCESSED, PayrollAction.FINALIZE): TransitionRule(
        PayrollStatus.PAID, _MAKER | _CHECKER | _FINANCE, "Paid",
    ),
    (PayrollStatus.REJECTED, PayrollAction.REOPEN): TransitionRule(
        PayrollStatus.DRAFT, _MAKER, "Reopened",
    ),
}

TERMINAL_STATUSES: frozenset[PayrollStatus] = frozenset({PayrollStatus.PAID})
MUTABLE_STATUSES: frozenset[PayrollStatus] = frozenset({PayrollStatus.DRAFT})


def allowed_actions(status: PayrollStatus | None) -> frozenset[PayrollAction]:
    """Actions with an edge out of ``status``."""
    return frozenset(action for (src, action) in TRANSITIONS if src == status)


def evaluate_transition(
    record_id: str,
    current_status: PayrollStatus | None,
    action: PayrollAction,
    actor: Actor,
    maker_id: str | None = None,
    checker_id: str | None = None,
) -> TransitionRule:
    """Resolve ``(current_status, action, actor)`` to a rule or raise.

    Checks run in a fixed order: edge exists, role allowed, then
    identity separation.
    """
    rule = TRANSITIONS.get((current_status, action))
    if rule is None:
        if current_status in TERMINAL_STATUSES:
            raise RecordImmutableError(record_id, action.value)
        status_label = current_status.value if current_status is not None else "None"
        raise StateTransitionError(record_id, status_label, action.value)

    if actor.role not in rule.allowed_roles:
        raise RoleViolationError(
            action.value,
            actor.role.value,
            sorted(role.value for role in rule.allowed_roles),
        )

    if rule.forbid_maker and maker_id is not None and actor.actor_id == maker_id:
        raise SelfApprovalForbiddenError(
            record_id, actor.actor_id, action.value, actor.role.value,
        )
    if rule.forbid_checker and checker_id is not None and actor.actor_id == checker_id:
        raise SelfApprovalForbiddenError(
            record_id, actor.actor_id, action.value, actor.role.value,
        )

    return rule
