from backoffice.platform.repository import EntityRepository
from backoffice.platform.security import ActorUser, Capability, Role, capabilities

__all__ = ["ActorUser", "Capability", "EntityRepository", "Role", "capabilities"]
