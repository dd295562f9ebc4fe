"""
Activity message models
@file purpose: Shapes of the activity/status messages polled by the control API
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field  # pylint: disable=import-error


class ActivityType(str, Enum):
    """Activity type matching frontend expectations."""

    ACTION = "action"
    THINKING = "thinking"
    RESULT = "result"


class ActivityMessage(BaseModel):
    """One line of the activity log."""

    type: str = "activity"
    message: str = Field(..., description="Human readable text")
    activity_type: ActivityType = ActivityType.ACTION
    bot_id: Optional[str] = None
    platform: Optional[str] = None
    thread_title: Optional[str] = None
    thread_status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        data["activity_type"] = self.activity_type.value
        return data


class StatusUpdateMessage(BaseModel):
    """Bot status change."""

    type: str = "status_update"
    status: str
    message: str
    bot_id: Optional[str] = None
    progress: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
