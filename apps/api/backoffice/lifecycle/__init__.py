from backoffice.lifecycle.machines import (
    INVOICE_MACHINE,
    LEAD_MACHINE,
    MACHINES,
    PROJECT_MACHINE,
    PROPOSAL_MACHINE,
    SUBCONTRACTOR_MACHINE,
    StateMachine,
)

__all__ = [
    "INVOICE_MACHINE",
    "LEAD_MACHINE",
    "MACHINES",
    "PROJECT_MACHINE",
    "PROPOSAL_MACHINE",
    "SUBCONTRACTOR_MACHINE",
    "StateMachine",
]
