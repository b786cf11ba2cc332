from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum


class Role(StrEnum):
    OWNER = "owner"
    MANAGER = "manager"
    SALES = "sales"
    SUPPORT = "support"


class Capability(StrEnum):
    LEADS_VIEW = "leads.view"
    LEADS_MANAGE = "leads.manage"
    CUSTOMERS_VIEW = "customers.view"
    CUSTOMERS_MANAGE = "customers.manage"
    PROPOSALS_VIEW = "proposals.view"
    PROPOSALS_CREATE = "proposals.create"
    PROPOSALS_EDIT = "proposals.edit"
    INVOICES_VIEW = "invoices.view"
    INVOICES_CREATE = "invoices.create"
    INVOICES_EDIT = "invoices.edit"
    PROJECTS_VIEW = "projects.view"
    PROJECTS_MANAGE = "projects.manage"
    SUBCONTRACTORS_VIEW = "subcontractors.view"
    SUBCONTRACTORS_MANAGE = "subcontractors.manage"
    FINANCIALS_VIEW = "financials.view"
    ANALYTICS_VIEW = "analytics.view"
    USERS_MANAGE = "users.manage"
    SETTINGS_MANAGE = "settings.manage"
    METRICS_READ = "system.metrics.read"


_MANAGER = frozenset(Capability) - {Capability.USERS_MANAGE, Capability.SETTINGS_MANAGE, Capability.METRICS_READ}

_ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.OWNER: frozenset(Capability),
    Role.MANAGER: _MANAGER,
    Role.SALES: frozenset(
        {
            Capability.LEADS_VIEW,
            Capability.LEADS_MANAGE,
            Capability.CUSTOMERS_VIEW,
            Capability.PROPOSALS_VIEW,
            Capability.PROPOSALS_CREATE,
            Capability.PROPOSALS_EDIT,
            Capability.PROJECTS_VIEW,
            Capability.SUBCONTRACTORS_VIEW,
        }
    ),
    Role.SUPPORT: frozenset(
        {
            Capability.LEADS_VIEW,
            Capability.CUSTOMERS_VIEW,
            Capability.PROPOSALS_VIEW,
            Capability.PROJECTS_VIEW,
            Capability.SUBCONTRACTORS_VIEW,
        }
    ),
}


def capabilities(role: Role | str) -> frozenset[Capability]:
    """Return the capabilities granted to ``role``; unknown roles get none."""
    try:
        resolved = Role(str(role).lower())
    except ValueError:
        return frozenset()
    return _ROLE_CAPABILITIES[resolved]


def capabilities_for_roles(roles: Iterable[Role | str]) -> frozenset[Capability]:
    granted: set[Capability] = set()
    for role in roles:
        granted |= capabilities(role)
    return frozenset(granted)
