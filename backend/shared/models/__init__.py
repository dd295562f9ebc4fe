"""
Shared Pydantic models for jobs, application state and user profiles
"""

from shared.models.application_state import ApplicationState, SearchData, SubmittedLink
from shared.models.automation_status import (
    ApplicationPhase,
    ApplicationStateMachine,
    ApplicationStatus,
    AutomationStatus,
    SubmissionStatus,
)
from shared.models.job_record import JobRecord
from shared.models.user_profile import UserProfile, merge_user_profiles

__all__ = [
    "ApplicationPhase",
    "ApplicationState",
    "ApplicationStateMachine",
    "ApplicationStatus",
    "AutomationStatus",
    "JobRecord",
    "SearchData",
    "SubmissionStatus",
    "SubmittedLink",
    "UserProfile",
    "merge_user_profiles",
]
