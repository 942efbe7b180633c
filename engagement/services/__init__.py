"""Service layer"""
from engagement.services.engagement_service import EngagementService

__all__ = ["EngagementService"]
