"""
Activity Service — per-project activity feed (created, updated, generated…).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from migration_assist.models.enums import ActivityType
from migration_assist.persistence.repository import ACTIVITIES, BaseRepository

logger = logging.getLogger(__name__)


class ActivityService:
    """Records user-visible project events in the repository."""

    def __init__(self, repository: BaseRepository):
        self.repository = repository

    def record(
        self,
        project_id: int,
        activity_type: ActivityType | str,
        description: str,
        related_entity_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Record an activity entry and return it."""
        type_value = activity_type.value if isinstance(activity_type, ActivityType) else activity_type
        entry = self.repository.create(ACTIVITIES, {
            "projectId": project_id,
            "type": type_value,
            "description": description,
            "relatedEntityId": related_entity_id,
        })
        logger.debug(f"[ACTIVITY] project {project_id} | {type_value}: {description}")
        return entry

    def get_feed(self, project_id: int, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Activities for a project, newest first."""
        entries = self.repository.list(ACTIVITIES, projectId=project_id)
        entries.reverse()
        return entries[:limit] if limit else entries

    def get_recent(self, limit: int = 10) -> list[dict[str, Any]]:
        """Activities across every project, newest first."""
        entries = self.repository.list(ACTIVITIES)
        entries.reverse()
        return entries[:limit]
