from engagement.db.repository import EngagementRepository
from engagement.db.memory import InMemoryEngagementRepository
from engagement.db.changeset import ChangeSet

__all__ = ["EngagementRepository", "InMemoryEngagementRepository", "ChangeSet"]
