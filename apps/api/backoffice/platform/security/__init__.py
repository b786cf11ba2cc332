from backoffice.platform.security.capabilities import Capability, Role, capabilities, capabilities_for_roles
from backoffice.platform.security.context import ActorUser
from backoffice.platform.security.errors import AuthorizationError, MissingCapabilityError

__all__ = [
    "ActorUser",
    "AuthorizationError",
    "Capability",
    "MissingCapabilityError",
    "Role",
    "capabilities",
    "capabilities_for_roles",
]
