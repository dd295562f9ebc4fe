import logging
import os
import re
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlparse

import requests
from jinja2 import Environment, FileSystemLoader, TemplateError  # pylint: disable=import-error

logger = logging.getLogger(__name__)

RESUME = "resume"
COVER_LETTER = "coverLetter"

_template_env = Environment(
    loader=FileSystemLoader(os.path.join(os.path.dirname(__file__), "templates")),
    keep_trailing_newline=True,
)


class FileHandlerService:
    """
    Resume and cover letter uploads for file inputs

    Tailored documents are requested from the API first. On failure the
    user's stored resume is used, and cover letters are rendered locally
    from the user's template (or the bundled default).
    """

    def __init__(self, api_host: Optional[str] = None, upload_dir: Optional[str] = None):
        from config import API_REQUEST_TIMEOUT, FILE_DOWNLOAD_TIMEOUT  # noqa: E402
        from constants import API_HOST, UPLOAD_DIR  # noqa: E402

        self.api_host = (api_host or API_HOST).rstrip("/")
        self.upload_dir = upload_dir or UPLOAD_DIR
        self.timeout = API_REQUEST_TIMEOUT
        self.download_timeout = FILE_DOWNLOAD_TIMEOUT
        os.makedirs(self.upload_dir, exist_ok=True)

        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "AutoApply-Backend/1.0"})

    @staticmethod
    def determine_file_type(label_text: Optional[str]) -> str:
        text = (label_text or "").lower()
        if "cover letter" in text or "cover" in text:
            return COVER_LETTER
        return RESUME

    @staticmethod
    def get_file_url(user_details: Dict[str, Any], file_type: str) -> Optional[str]:
        if file_type == COVER_LETTER:
            return user_details.get("coverLetterUrl")
        return user_details.get("resumeUrl") or (
            user_details.get("cv", {}).get("url")
            if isinstance(user_details.get("cv"), dict)
            else None
        )

    def handle_file_upload(
        self,
        file_input,
        label_text: str,
        user_details: Dict[str, Any],
        job_description: Optional[str] = None,
        job_details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Fill one file input with the right document

        Args:
            file_input: Playwright locator of the <input type="file">
            label_text: Text around the input, used to pick resume vs cover letter
            user_details: Merged user profile
            job_description: Description used for tailoring (optional)
            job_details: Title/company used when rendering a cover letter

        Returns:
            True if a file was set on the input
        """
        file_type = self.determine_file_type(label_text)

        if file_type == RESUME:
            if job_description:
                return self.generate_tailored_resume(
                    file_input, user_details, job_description
                )
            return self.upload_file_from_url(
                file_input, self.get_file_url(user_details, RESUME)
            )

        if job_description:
            return self.generate_tailored_cover_letter(
                file_input, user_details, job_description, job_details
            )
        url = self.get_file_url(user_details, COVER_LETTER)
        if url:
            return self.upload_file_from_url(file_input, url)
        return self.upload_rendered_cover_letter(file_input, user_details, job_details)

    def _request_tailored(
        self, endpoint: str, result_key: str, user_details: Dict[str, Any], job_description: str
    ) -> Optional[str]:
        try:
            response = self.session.post(
                f"{self.api_host}{endpoint}",
                json={
                    "userId": user_details.get("id") or user_details.get("userId"),
                    "jobDescription": job_description,
                    "userProfile": user_details,
                },
                timeout=self.timeout,
            )
            if response.status_code != 200:
                logger.error(f"{endpoint} returned {response.status_code}")
                return None
            return response.json().get(result_key)
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error calling {endpoint}: {e}")
            return None

    def generate_tailored_resume(
        self, file_input, user_details: Dict[str, Any], job_description: str
    ) -> bool:
        url = self._request_tailored(
            "/api/generate-tailored-resume", "resumeUrl", user_details, job_description
        )
        if not url:
            logger.info("Falling back to the stored resume")
            url = self.get_file_url(user_details, RESUME)
        return self.upload_file_from_url(file_input, url)

    def generate_tailored_cover_letter(
        self,
        file_input,
        user_details: Dict[str, Any],
        job_description: str,
        job_details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        url = self._request_tailored(
            "/api/generate-tailored-cover-letter",
            "coverLetterUrl",
            user_details,
            job_description,
        )
        if url and self.upload_file_from_url(file_input, url):
            return True

        stored_url = self.get_file_url(user_details, COVER_LETTER)
        if stored_url and self.upload_file_from_url(file_input, stored_url):
            return True
        return self.upload_rendered_cover_letter(file_input, user_details, job_details)

    def render_cover_letter(
        self, user_details: Dict[str, Any], job_details: Optional[Dict[str, Any]] = None
    ) -> str:
        """Render the user's cover letter template, or the bundled default"""
        job_details = job_details or {}
        full_name = " ".join(
            part for part in (user_details.get("firstName"), user_details.get("lastName")) if part
        )
        variables = {
            "full_name": full_name,
            "first_name": user_details.get("firstName", ""),
            "last_name": user_details.get("lastName", ""),
            "email": user_details.get("email", ""),
            "headline": user_details.get("headline"),
            "summary": user_details.get("summary"),
            "years_of_experience": user_details.get("yearsOfExperience"),
            "job_title": job_details.get("title"),
            "company": job_details.get("company"),
            "location": job_details.get("location"),
        }

        user_template = user_details.get("coverLetterTemplate") or user_details.get(
            "coverLetter"
        )
        if isinstance(user_template, str) and user_template.strip():
            try:
                return _template_env.from_string(user_template).render(**variables).strip()
            except TemplateError as e:
                logger.warning(f"User cover letter template failed to render: {e}")

        return _template_env.get_template("cover_letter.jinja").render(**variables).strip()

    def upload_rendered_cover_letter(
        self,
        file_input,
        user_details: Dict[str, Any],
        job_details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        text = self.render_cover_letter(user_details, job_details)
        company = re.sub(r"[^\w-]+", "_", (job_details or {}).get("company") or "company")
        path = os.path.join(self.upload_dir, f"cover_letter_{company}.txt")
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return self.set_input_file(file_input, path)

    @staticmethod
    def extract_file_name_from_url(url: Optional[str]) -> str:
        try:
            name = os.path.basename(unquote(urlparse(url or "").path))
        except ValueError:
            return "document.pdf"
        return name or "document.pdf"

    def download_file(self, url: str) -> Optional[str]:
        """Download a file into the upload directory, returning its path"""
        try:
            response = self.session.get(url, timeout=self.download_timeout)
            if response.status_code != 200:
                logger.error(f"Failed to download {url}: {response.status_code}")
                return None
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error downloading {url}: {e}")
            return None

        path = os.path.join(self.upload_dir, self.extract_file_name_from_url(url))
        with open(path, "wb") as f:
            f.write(response.content)
        logger.debug(f"Downloaded {url} to {path}")
        return path

    @staticmethod
    def set_input_file(file_input, path: str) -> bool:
        try:
            file_input.set_input_files(path)
            logger.info(f"Successfully uploaded file: {os.path.basename(path)}")
            return True
        except Exception as e:
            logger.error(f"Error setting file input to {path}: {e}")
            return False

    def upload_file_from_url(self, file_input, file_url: Optional[str]) -> bool:
        if not file_url:
            logger.info("No file URL provided")
            return False
        path = self.download_file(file_url)
        if not path:
            return False
        return self.set_input_file(file_input, path)
