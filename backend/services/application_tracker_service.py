import logging
from typing import Any, Dict, Optional

import requests

from util.time_util import get_current_timestamp_ms

logger = logging.getLogger(__name__)


class ApplicationTrackerService:
    """Client for the applied-jobs API"""

    def __init__(self, user_id: str, api_host: Optional[str] = None):
        from config import API_REQUEST_TIMEOUT  # noqa: E402
        from constants import API_HOST  # noqa: E402

        self.api_host = (api_host or API_HOST).rstrip("/")
        self.user_id = user_id
        self.timeout = API_REQUEST_TIMEOUT

        self.session = requests.Session()
        self.session.headers.update(
            {"Content-Type": "application/json", "User-Agent": "AutoApply-Backend/1.0"}
        )

    def check_if_already_applied(self, job_id: str) -> bool:
        """Unknown is treated as not applied"""
        try:
            response = self.session.get(
                f"{self.api_host}/api/applied-jobs",
                params={"userId": self.user_id, "jobId": job_id},
                timeout=self.timeout,
            )
            if response.status_code != 200:
                logger.error(
                    f"Failed to check application status for {job_id}: "
                    f"{response.status_code}"
                )
                return False
            return bool(response.json().get("applied"))
        except requests.exceptions.RequestException as e:
            logger.error(f"Error checking if job {job_id} is already applied: {e}")
            return False

    def save_applied_job(self, application_data: Dict[str, Any]) -> bool:
        """
        Save a submitted application

        Args:
            application_data: jobId, title, company, location, jobUrl,
                salary, workplace, postedDate, applicants, platform

        Returns:
            True if the API accepted the record
        """
        payload = {
            "userId": self.user_id,
            "jobId": application_data.get("jobId"),
            "title": application_data.get("title"),
            "company": application_data.get("company"),
            "location": application_data.get("location"),
            "jobUrl": application_data.get("jobUrl"),
            "salary": application_data.get("salary") or "Not specified",
            "workplace": application_data.get("workplace"),
            "postedDate": application_data.get("postedDate"),
            "applicants": application_data.get("applicants"),
            "appliedAt": get_current_timestamp_ms(),
            "platform": application_data.get("platform"),
        }

        try:
            response = self.session.post(
                f"{self.api_host}/api/applied-jobs", json=payload, timeout=self.timeout
            )
            if response.status_code not in (200, 201):
                logger.error(
                    f"Failed to save applied job {payload['jobId']}: "
                    f"{response.status_code} - {response.text}"
                )
                return False
            logger.info(f"Saved applied job {payload['jobId']} ({payload['platform']})")
            return True
        except requests.exceptions.RequestException as e:
            logger.error(f"Error saving applied job: {e}")
            return False

    def update_application_count(self) -> bool:
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
            return True
        except requests.exceptions.RequestException as e:
            logger.error(f"Error updating application count: {e}")
            return False

    def get_application_stats(self) -> Optional[Dict[str, Any]]:
        try:
            response = self.session.get(
                f"{self.api_host}/api/applications/stats",
                params={"userId": self.user_id},
                timeout=self.timeout,
            )
            if response.status_code != 200:
                logger.error(f"Failed to get application stats: {response.status_code}")
                return None
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error getting application stats: {e}")
            return None
