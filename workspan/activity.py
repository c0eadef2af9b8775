"""
Project activity log events.

Services collect ActivityEvents while they work and only hand them out after
their transaction has committed. The router passes them to an
ActivityPublisher as a FastAPI background task, which enqueues them on the
arq worker. A failure anywhere on this path is logged and dropped: the
primary operation has already succeeded.
"""

import logging
from typing import Any, Optional

from arq import create_pool
from pydantic import BaseModel, Field

from .config import ACTIVITY_LOG_ENABLED

logger = logging.getLogger(__name__)

RECORD_ACTIVITY_TASK = "record_project_activity_task"


class ActivityEvent(BaseModel):
    project_id: str
    milestone_id: Optional[str] = None
    activity_type: str
    description: str
    performed_by: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ActivityPublisher:
    """Ships activity events to the background worker"""

    def __init__(self, enabled: bool = ACTIVITY_LOG_ENABLED):
        self.enabled = enabled

    async def publish(self, events: list[ActivityEvent]) -> int:
        """Enqueue events; returns how many were queued. Never raises."""
        if not self.enabled or not events:
            return 0

        from .worker import get_redis_settings

        queued = 0
        try:
            pool = await create_pool(get_redis_settings())
            try:
                for event in events:
                    await pool.enqueue_job(RECORD_ACTIVITY_TASK, event.model_dump(mode="json"))
                    queued += 1
            finally:
                await pool.close()
            logger.info(f"📋 Queued {queued} activity event(s)")
        except Exception as e:
            logger.warning(f"⚠️ Failed to queue activity events ({queued}/{len(events)} sent): {e}")
        return queued


def get_activity_publisher() -> ActivityPublisher:
    """Dependency injection for ActivityPublisher"""
    return ActivityPublisher()
