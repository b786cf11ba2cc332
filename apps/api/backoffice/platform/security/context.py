from __future__ import annotations

from dataclasses import dataclass, field

from backoffice.platform.security.capabilities import Capability, capabilities_for_roles


@dataclass(slots=True)
class ActorUser:
    """The staff member performing an operation.

    Every mutating service call receives one explicitly; notes, activities,
    audit entries and events are attributed to ``user_id``.
    """

    user_id: str
    roles: list[str] = field(default_factory=list)
    capabilities: frozenset[Capability] = field(default_factory=frozenset)
    correlation_id: str | None = None

    @classmethod
    def from_roles(cls, user_id: str, roles: list[str], correlation_id: str | None = None) -> ActorUser:
        return cls(
            user_id=user_id,
            roles=list(roles),
            capabilities=capabilities_for_roles(roles),
            correlation_id=correlation_id,
        )

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities
