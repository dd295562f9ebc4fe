import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from util.time_util import parse_datetime

logger = logging.getLogger(__name__)

# Profile fields forwarded to form filling
USER_DETAIL_FIELDS = [
    "firstName",
    "lastName",
    "email",
    "phoneNumber",
    "phoneCountryCode",
    "country",
    "jobPreferences",
    "cv",
    "currentCompany",
    "yearsOfExperience",
    "fullPosition",
    "linkedIn",
    "website",
    "github",
    "coverLetter",
    "currentCity",
    "streetAddress",
    "desiredSalary",
    "noticePeriod",
    "education",
    "headline",
    "summary",
    "age",
    "race",
    "gender",
    "needsSponsorship",
    "disabilityStatus",
    "veteranStatus",
    "usCitizenship",
    "parsedResumeText",
]


class UserService:
    """Client for user profile, plan and application-count endpoints"""

    def __init__(self, user_id: str, api_host: Optional[str] = None):
        from config import API_REQUEST_TIMEOUT  # noqa: E402
        from constants import API_HOST, PLAN_LIMITS  # noqa: E402

        self.api_host = (api_host or API_HOST).rstrip("/")
        self.user_id = user_id
        self.timeout = API_REQUEST_TIMEOUT
        self.plan_limits = PLAN_LIMITS
        self.user_details_cache: Optional[Dict[str, Any]] = None
        self.user_state: Optional[Dict[str, Any]] = None

        self.session = requests.Session()
        self.session.headers.update(
            {"Content-Type": "application/json", "User-Agent": "AutoApply-Backend/1.0"}
        )

    def fetch_user_details(self) -> Optional[Dict[str, Any]]:
        try:
            response = self.session.get(
                f"{self.api_host}/api/user/{self.user_id}", timeout=self.timeout
            )
            if response.status_code != 200:
                logger.error(
                    f"Failed to fetch user details: {response.status_code} - {response.text}"
                )
                return None

            data = response.json()
            self.user_details_cache = data
            return data

        except requests.exceptions.RequestException as e:
            logger.error(f"Request error fetching user details: {e}")
            return None

    def get_user_details(self) -> Optional[Dict[str, Any]]:
        """Fetch the user and keep only the fields used for form filling"""
        user_data = self.fetch_user_details()
        if not user_data:
            return None
        return {field: user_data.get(field) for field in USER_DETAIL_FIELDS}

    def update_user_preferences(self, preferences: Dict[str, Any]) -> bool:
        try:
            response = self.session.put(
                f"{self.api_host}/api/user/{self.user_id}/preferences",
                json=preferences,
                timeout=self.timeout,
            )
            if response.status_code != 200:
                logger.error(f"Failed to update user preferences: {response.status_code}")
                return False

            if self.user_details_cache is not None:
                self.user_details_cache["jobPreferences"] = preferences
            return True

        except requests.exceptions.RequestException as e:
            logger.error(f"Error updating user preferences: {e}")
            return False

    def _application_limit(self, role: str, credits: int) -> float:
        if role == "credit":
            return int(credits or 0)
        return self.plan_limits.get(role, self.plan_limits["free"])

    def get_user_role(self) -> Optional[Dict[str, Any]]:
        """Raw plan data: userRole, credits, subscription, applicationsUsed"""
        try:
            response = self.session.get(
                f"{self.api_host}/api/user/{self.user_id}/role", timeout=self.timeout
            )
            if response.status_code != 200:
                logger.error(f"Failed to fetch user role: {response.status_code}")
                return None
            return response.json()

        except requests.exceptions.RequestException as e:
            logger.error(f"Error checking user role: {e}")
            return None

    def check_user_role(self) -> Optional[Dict[str, Any]]:
        """
        Fetch the user's plan and usage

        Returns:
            Dict with userRole, applicationLimit, credits, subscription and
            applicationsUsed, or None when the role could not be fetched
        """
        data = self.get_user_role()
        if data is None:
            return None

        role = data.get("userRole")
        credits = data.get("credits") or 0
        self.user_state = {
            "userRole": role,
            "applicationLimit": self._application_limit(role, credits),
            "credits": credits,
            "subscription": data.get("subscription"),
            "applicationsUsed": data.get("applicationsUsed") or 0,
        }
        return self.user_state

    @staticmethod
    def _subscription_expired(subscription: Optional[Dict[str, Any]]) -> bool:
        if not subscription or not subscription.get("currentPeriodEnd"):
            return False
        period_end = parse_datetime(subscription["currentPeriodEnd"])
        if period_end is None:
            return False
        return period_end < datetime.now(timezone.utc)

    def can_apply_more(self) -> bool:
        state = self.check_user_role()
        if not state or not state.get("userRole"):
            return False

        if self._subscription_expired(state.get("subscription")):
            logger.info(f"Subscription expired for user {self.user_id}")
            return False

        role = state["userRole"]
        if role == "unlimited":
            return True
        if role == "credit":
            return state.get("credits", 0) >= 1
        if role in self.plan_limits:
            return state.get("applicationsUsed", 0) < self.plan_limits[role]
        return False

    def get_remaining_applications(self) -> float:
        state = self.check_user_role()
        if not state or not state.get("userRole"):
            return 0

        role = state["userRole"]
        if role == "unlimited":
            return float("inf")
        if role == "credit":
            return int(state.get("credits", 0))
        if role in self.plan_limits:
            return self.plan_limits[role] - state.get("applicationsUsed", 0)
        return 0

    def update_application_count(self) -> bool:
        """Record one application server-side and mirror it locally"""
        try:
            response = self.session.post(
                f"{self.api_host}/api/applications",
                json={"userId": self.user_id},
                timeout=self.timeout,
            )
            if response.status_code not in (200, 201):
                logger.error(
                    f"Failed to update application count: {response.status_code}"
                )
                return False
        except requests.exceptions.RequestException as e:
            logger.error(f"Error updating application count: {e}")
            return False

        if self.user_state:
            self.user_state["applicationsUsed"] = (
                self.user_state.get("applicationsUsed", 0) + 1
            )
            if self.user_state.get("userRole") == "credit":
                self.user_state["credits"] = max(0, self.user_state.get("credits", 0) - 1)
        return True

    def clear_cache(self):
        self.user_details_cache = None
        self.user_state = None
