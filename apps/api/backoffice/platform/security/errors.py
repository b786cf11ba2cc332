from __future__ import annotations


class AuthorizationError(Exception):
    """Base authorization error for capability checks at the API boundary."""


class MissingCapabilityError(AuthorizationError):
    """Raised when the actor's roles do not grant a required capability."""

    def __init__(self, capability: str) -> None:
        self.capability = capability
        super().__init__(f"Missing capability: {capability}")
