import logging
import os
import re
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


def should_generate_custom_resume(user_data: Dict[str, Any], job_description: Optional[str]) -> bool:
    """Custom resumes are only built for unlimited users who opted in"""
    preferences = user_data.get("jobPreferences") or {}
    return (
        (user_data.get("plan") or user_data.get("userRole")) == "unlimited"
        and preferences.get("useCustomResume") is True
        and bool(job_description)
    )


def get_resume_urls(user_data: Dict[str, Any]) -> List[str]:
    urls = user_data.get("resumeUrl")
    if not urls and isinstance(user_data.get("cv"), dict):
        urls = user_data["cv"].get("url")
    if not urls:
        return []
    return list(urls) if isinstance(urls, (list, tuple)) else [urls]


class ResumeService:
    """
    Client for the resume optimizer service

    Builds a job-tailored PDF in three calls:
    /parse-resume -> /optimize-resume -> /generate-resume-pdf
    """

    def __init__(self, base_url: Optional[str] = None, output_dir: Optional[str] = None):
        from config import API_REQUEST_TIMEOUT  # noqa: E402
        from constants import RESUME_SERVICE_URL, UPLOAD_DIR  # noqa: E402

        self.base_url = (base_url or RESUME_SERVICE_URL).rstrip("/")
        self.output_dir = output_dir or UPLOAD_DIR
        self.timeout = API_REQUEST_TIMEOUT
        os.makedirs(self.output_dir, exist_ok=True)

        self.session = requests.Session()
        self.session.headers.update(
            {"Content-Type": "application/json", "User-Agent": "AutoApply-Backend/1.0"}
        )

    def parse_resume(self, file_url: str) -> Optional[str]:
        response = self.session.post(
            f"{self.base_url}/parse-resume", json={"file_url": file_url}, timeout=self.timeout
        )
        if response.status_code != 200:
            logger.error(f"Resume parsing failed: {response.status_code}")
            return None
        return response.json().get("text")

    def optimize_resume(
        self, resume_text: str, job_description: str, user_data: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        payload = {
            "resume_text": resume_text,
            "job_description": job_description,
            "user_data": {
                key: user_data.get(key)
                for key in (
                    "summary",
                    "projects",
                    "fullPositions",
                    "education",
                    "educationStartMonth",
                    "educationStartYear",
                    "educationEndMonth",
                    "educationEndYear",
                )
            },
        }
        response = self.session.post(
            f"{self.base_url}/optimize-resume", json=payload, timeout=self.timeout
        )
        if response.status_code != 200:
            logger.error(f"Resume optimization failed: {response.status_code}")
            return None
        return response.json().get("data")

    def generate_resume_pdf(
        self, resume_data: Dict[str, Any], user_data: Dict[str, Any]
    ) -> Optional[bytes]:
        author = user_data.get("name") or (
            f"{user_data.get('firstName', '')} {user_data.get('lastName', '')}".strip()
        )
        payload = {
            "user_data": {
                "author": author,
                "email": user_data.get("email"),
                "phone": f"{user_data.get('phoneCountryCode') or ''}"
                f"{user_data.get('phoneNumber') or ''}",
                "address": user_data.get("streetAddress") or user_data.get("country"),
            },
            "resume_data": resume_data,
        }
        response = self.session.post(
            f"{self.base_url}/generate-resume-pdf", json=payload, timeout=self.timeout
        )
        if response.status_code != 200:
            logger.error(f"Resume generation failed: {response.status_code}")
            return None
        if not response.content:
            logger.error("Generated PDF is empty")
            return None
        return response.content

    def generate_custom_resume(
        self, user_data: Dict[str, Any], job_description: str
    ) -> Optional[str]:
        """
        Build a tailored resume PDF

        Returns:
            Local path of the PDF, or None if any step failed
        """
        urls = get_resume_urls(user_data)
        if not urls:
            logger.warning("No resume found in user data")
            return None

        try:
            resume_text = self.parse_resume(urls[-1])
            if not resume_text:
                return None
            resume_data = self.optimize_resume(resume_text, job_description, user_data)
            if not resume_data:
                return None
            pdf = self.generate_resume_pdf(resume_data, user_data)
            if not pdf:
                return None
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error generating custom resume: {e}")
            return None

        name = re.sub(r"[^\w-]+", "_", user_data.get("name") or "resume")
        path = os.path.join(self.output_dir, f"{name}.pdf")
        with open(path, "wb") as f:
            f.write(pdf)
        logger.info(f"Custom resume generated at {path}")
        return path
