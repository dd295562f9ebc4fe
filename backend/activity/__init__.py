"""
Activity messages sent from running automations to the control API
"""

from activity.base_activity import ActivityMessage, ActivityType, StatusUpdateMessage

__all__ = [
    "ActivityMessage",
    "ActivityType",
    "StatusUpdateMessage",
]
