from __future__ import annotations

import pytest

from backoffice.core.errors import ValidationError
from backoffice.core.passwords import hash_password, is_password_hash, verify_password
from backoffice.platform.security import ActorUser, Capability, Role, capabilities, capabilities_for_roles


def test_owner_has_every_capability() -> None:
    assert capabilities(Role.OWNER) == frozenset(Capability)


def test_manager_cannot_manage_users_or_read_metrics() -> None:
    granted = capabilities("manager")
    assert Capability.INVOICES_EDIT in granted
    assert Capability.USERS_MANAGE not in granted
    assert Capability.METRICS_READ not in granted


def test_sales_can_work_leads_and_proposals_but_not_invoices() -> None:
    granted = capabilities("SALES")
    assert {Capability.LEADS_MANAGE, Capability.PROPOSALS_CREATE, Capability.PROPOSALS_EDIT} <= granted
    assert Capability.INVOICES_VIEW not in granted
    assert Capability.PROJECTS_MANAGE not in granted


def test_unknown_role_grants_nothing() -> None:
    assert capabilities("intern") == frozenset()


def test_capabilities_union_across_roles() -> None:
    granted = capabilities_for_roles(["support", "system.metrics.read", "sales"])
    assert Capability.LEADS_MANAGE in granted
    assert Capability.METRICS_READ not in granted


def test_actor_from_roles_resolves_capabilities() -> None:
    actor = ActorUser.from_roles("user-7", ["support"], correlation_id="corr-7")
    assert actor.can(Capability.LEADS_VIEW)
    assert not actor.can(Capability.LEADS_MANAGE)
    assert actor.correlation_id == "corr-7"


def test_password_hash_never_holds_the_secret() -> None:
    stored = hash_password("s3cret-pass", iterations=1000)
    assert "s3cret-pass" not in stored
    assert is_password_hash(stored)
    assert verify_password("s3cret-pass", stored)
    assert not verify_password("wrong", stored)


def test_hashes_are_salted() -> None:
    assert hash_password("same", iterations=1000) != hash_password("same", iterations=1000)


def test_empty_password_is_rejected() -> None:
    with pytest.raises(ValidationError):
        hash_password("")


def test_verify_rejects_foreign_formats() -> None:
    assert not verify_password("x", "plain-text")
    assert not is_password_hash("plain-text")
    assert not is_password_hash(None)
