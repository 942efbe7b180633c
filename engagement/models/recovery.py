"""Streak recovery models"""
from enum import Enum
from typing import Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from engagement.models.base import new_id
from engagement.models.gamification import StreakType, UserAction


class RecoveryStatus(str, Enum):
    """Lifecycle of a recovery attempt"""
    RECOVERING = "RECOVERING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class RecoveryAction(BaseModel):
    """Qualifying action completed during a recovery"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    action_type: UserAction
    completed_at: datetime
    points_awarded: int = Field(default=0, ge=0)
    description_key: str


class StreakRecovery(BaseModel):
    """Time-boxed attempt to restore a broken streak"""
    id: str = Field(default_factory=new_id)
    user_id: str
    original_streak_id: str
    streak_type: StreakType
    broken_at: datetime
    recovery_started: datetime
    recovery_completed: Optional[datetime] = None
    original_count: int = Field(ge=0)
    recovery_actions: list[RecoveryAction] = Field(default_factory=list)
    is_successful: bool = False
    status: RecoveryStatus = RecoveryStatus.RECOVERING
    required_actions: int = Field(default=3, ge=1)
    version: int = 1

    @property
    def is_open(self) -> bool:
        return self.status == RecoveryStatus.RECOVERING

    @property
    def actions_remaining(self) -> int:
        return max(self.required_actions - len(self.recovery_actions), 0)
