from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from backoffice.core.errors import ConflictError, InvalidTransitionError, ValidationError
from backoffice.metrics import observe_status_transition


@dataclass(frozen=True, slots=True)
class StateMachine:
    """Allowed status edges for one entity type.

    ``orchestrated`` targets can only be entered by a conversion workflow, from
    any non-terminal state; a plain status edit to one of them is a conflict.
    ``protected`` states block deletion.
    """

    entity: str
    initial: str
    transitions: Mapping[str, frozenset[str]]
    terminal: frozenset[str] = frozenset()
    orchestrated: frozenset[str] = frozenset()
    protected: frozenset[str] = frozenset()
    states: frozenset[str] = field(init=False)

    def __post_init__(self) -> None:
        states = set(self.transitions)
        for targets in self.transitions.values():
            states |= targets
        object.__setattr__(self, "states", frozenset(states | self.orchestrated))

    def check(self, current: str, target: str, *, orchestrated: bool = False) -> bool:
        if current == target:
            return True
        if target in self.orchestrated:
            return orchestrated and current in self.states and current not in self.terminal
        return target in self.transitions.get(current, frozenset())

    def ensure(self, current: str, target: str, *, orchestrated: bool = False) -> None:
        self.ensure_known(target)
        if current == target:
            return
        if target in self.orchestrated and not orchestrated and current not in self.terminal:
            raise ConflictError(
                f"{self.entity} can only move to {target} through conversion",
                details={"entity": self.entity, "from": current, "to": target},
            )
        if not self.check(current, target, orchestrated=orchestrated):
            raise InvalidTransitionError(self.entity, current, target)

    def ensure_known(self, status: str) -> None:
        if status not in self.states:
            raise ValidationError(
                f"invalid {self.entity} status: {status}",
                details={"field": "status", "allowed": sorted(self.states)},
            )

    def ensure_deletable(self, status: str) -> None:
        if status in self.protected:
            raise ConflictError(
                f"{self.entity} with status {status} cannot be deleted",
                details={"entity": self.entity, "status": status},
            )

    def allowed_targets(self, current: str) -> list[str]:
        return sorted(self.transitions.get(current, frozenset()))

    def record(self, current: str, target: str) -> None:
        if current != target:
            observe_status_transition(self.entity, target)


LEAD_MACHINE = StateMachine(
    entity="lead",
    initial="new",
    transitions={
        "new": frozenset({"contacted", "lost"}),
        "contacted": frozenset({"qualified", "lost"}),
        "qualified": frozenset({"proposal", "lost"}),
        "proposal": frozenset({"negotiation", "lost"}),
        "negotiation": frozenset({"lost"}),
        "won": frozenset(),
        "lost": frozenset(),
    },
    terminal=frozenset({"won", "lost"}),
    orchestrated=frozenset({"won"}),
)

PROPOSAL_MACHINE = StateMachine(
    entity="proposal",
    initial="draft",
    transitions={
        "draft": frozenset({"sent"}),
        "sent": frozenset({"viewed", "draft"}),
        "viewed": frozenset({"accepted", "declined", "sent", "draft"}),
        "accepted": frozenset(),
        "declined": frozenset(),
    },
    terminal=frozenset({"accepted", "declined"}),
    protected=frozenset({"accepted"}),
)

PROJECT_MACHINE = StateMachine(
    entity="project",
    initial="pending",
    transitions={
        "pending": frozenset({"active", "cancelled"}),
        "active": frozenset({"completed", "cancelled"}),
        "cancelled": frozenset({"active"}),
        "completed": frozenset(),
    },
    terminal=frozenset({"completed"}),
)

SUBCONTRACTOR_MACHINE = StateMachine(
    entity="subcontractor",
    initial="pending",
    transitions={
        "pending": frozenset({"approved", "rejected"}),
        "approved": frozenset({"active"}),
        "active": frozenset({"approved", "suspended"}),
        "suspended": frozenset({"active"}),
        "rejected": frozenset(),
    },
    terminal=frozenset({"rejected"}),
)

INVOICE_MACHINE = StateMachine(
    entity="invoice",
    initial="draft",
    transitions={
        "draft": frozenset({"sent", "cancelled"}),
        "sent": frozenset({"overdue", "paid", "cancelled"}),
        "overdue": frozenset({"paid", "cancelled"}),
        "paid": frozenset(),
        "cancelled": frozenset(),
    },
    terminal=frozenset({"paid", "cancelled"}),
    protected=frozenset({"paid"}),
)

MACHINES: dict[str, StateMachine] = {
    machine.entity: machine
    for machine in (LEAD_MACHINE, PROPOSAL_MACHINE, PROJECT_MACHINE, SUBCONTRACTOR_MACHINE, INVOICE_MACHINE)
}
