"""
Wellfound Platform Automation for AutoApply
@file purpose: Wellfound (formerly AngelList Talent) job search, applied in
the search tab itself
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from platforms.base_platform_automation import BasePlatformAutomation
from shared.models import ApplicationPhase, JobRecord
from util.url_utils import extract_job_id

logger = logging.getLogger(__name__)

JOB_CARD_SELECTOR = '[data-test="StartupResult"], .job-listing, .startup-link'
CARD_LINK_SELECTOR = 'a[href*="/jobs/"], .job-title a, .startup-link'
CARD_TITLE_SELECTORS = [".job-title", 'a[href*="/jobs/"]', "h2", "h3"]
TITLE_SELECTORS = ['[data-test="startup-name"]', ".startup-name", "h1", ".job-title"]
COMPANY_SELECTORS = ['[data-test="company-name"]', ".company-name", ".startup-link"]
LOCATION_SELECTORS = ['[data-test="startup-location"]', ".location", ".job-location"]
DESCRIPTION_SELECTORS = ['[data-test="job-description"]', ".job-description", ".description", ".job-details"]
DETAILS_LOADED_SELECTOR = '[data-test="startup-name"], .job-title, h1'

APPLY_BUTTON_SELECTORS = [
    '[data-test="apply-button"]',
    ".apply-button",
    'button[data-test="apply"]',
    'a[href*="/apply"]',
    'button:has-text("Apply")',
]
SUBMIT_SELECTORS = ['button:has-text("Submit Application")', 'button:has-text("Apply")']
FORM_SUBMIT_SELECTORS = ['button[type="submit"]', 'input[type="submit"]']
NEXT_SELECTORS = ['button:has-text("Next")', 'button:has-text("Continue")']
CLOSE_SELECTORS = ['button:has-text("Close")', 'button:has-text("Done")']
NEXT_PAGE_SELECTORS = ['a[rel="next"]', 'button:has-text("Load more")', 'button:has-text("Show more")']

EXPERIENCE_LEVELS = {
    "Internship": "intern",
    "Entry level": "junior",
    "Mid level": "mid",
    "Senior level": "senior",
    "Executive": "lead",
}
JOB_TYPES = {
    "Full-time": "full-time",
    "Part-time": "part-time",
    "Contract": "contract",
    "Internship": "internship",
}
COMPANY_STAGES = {
    "Pre-Seed": "pre-seed",
    "Seed": "seed",
    "Series A": "series-a",
    "Series B": "series-b",
    "Series C+": "series-c",
    "Public": "public",
}
MAX_ATTEMPTS = 15


def _mapped(values, mapping: Dict[str, str]) -> str:
    return ",".join(mapping[v] for v in values or [] if v in mapping)


class WellfoundPlatform(BasePlatformAutomation):
    """Wellfound startup jobs, applied to from the job page in the search tab"""

    platform = "wellfound"
    base_url = "https://wellfound.com"
    applies_in_page = True
    max_form_steps = MAX_ATTEMPTS
    fallback_answers = {
        "work authorization": "Yes",
        "authorized to work": "Yes",
        "require sponsorship": "No",
        "require visa": "No",
        "years of experience": "2 years",
        "experience": "2 years",
        "phone": "555-0123",
        "salary": "80000",
    }

    @classmethod
    def build_search_url(cls, preferences: Dict[str, Any]) -> str:
        params = {}
        positions = preferences.get("positions") or []
        if positions:
            params["role"] = ",".join(positions)

        locations = preferences.get("location") or []
        if isinstance(locations, str):
            locations = [locations]
        if locations:
            if locations[0] == "Remote":
                params["remote"] = "true"
            else:
                params["location"] = locations[0]
        if preferences.get("remoteOnly"):
            params["remote"] = "true"

        for key, values, mapping in (
            ("experience", preferences.get("experience"), EXPERIENCE_LEVELS),
            ("jobType", preferences.get("jobType"), JOB_TYPES),
            ("stage", preferences.get("companyStage"), COMPANY_STAGES),
        ):
            mapped = _mapped(values, mapping)
            if mapped:
                params[key] = mapped

        salary = preferences.get("salary") or []
        if len(salary) == 2:
            minimum, maximum = salary
            if minimum and int(minimum) > 0:
                params["minSalary"] = str(minimum)
            if maximum and int(maximum) > 0:
                params["maxSalary"] = str(maximum)
        return f"{cls.base_url}/jobs?{urlencode(params)}"

    # ------------------------------------------------------------------
    # Job cards
    # ------------------------------------------------------------------

    def find_all_links_elements(self) -> List[Any]:
        return self.page.locator(JOB_CARD_SELECTOR).all()

    @staticmethod
    def get_job_id_from_card(card) -> Optional[str]:
        link = card.locator('a[href*="/jobs/"]').first
        if link.count():
            match = re.search(r"/jobs/(\d+)", link.get_attribute("href") or "")
            if match:
                return match.group(1)
        return card.get_attribute("data-job-id") or card.get_attribute("data-id")

    def get_link_url(self, element) -> Optional[str]:
        link = element.locator('a[href*="/jobs/"]').first
        href = link.get_attribute("href") if link.count() else None
        if href:
            return href if href.startswith("http") else f"{self.base_url}{href}"
        job_id = self.get_job_id_from_card(element)
        return f"{self.base_url}/jobs/{job_id}" if job_id else None

    def get_link_title(self, element) -> str:
        return self.extract_text(CARD_TITLE_SELECTORS, root=element) or "Job Application"

    def find_load_more_element(self):
        return self.find_visible(NEXT_PAGE_SELECTORS)

    def open_job_card(self, link: Dict[str, Any]):
        clickable = link["element"].locator(CARD_LINK_SELECTOR).first
        if clickable.count() == 0:
            raise Exception("No clickable element found in job card")
        self.click(clickable)
        # Raises ElementNotFoundException, reported as "not found" for this job
        self.wait_for_element(DETAILS_LOADED_SELECTOR, timeout=10000)
        self.sleep(1)

    # ------------------------------------------------------------------
    # Job details
    # ------------------------------------------------------------------

    def extract_job_details(self) -> JobRecord:
        url = self.page.url
        job_url = url if "/jobs/" in url else (self.application_state.application_url or url)
        return JobRecord(
            job_id=extract_job_id(job_url, self.platform),
            title=self.extract_text(TITLE_SELECTORS) or "Job Application",
            company=self.extract_text(COMPANY_SELECTORS) or "Unknown Company",
            location=self.extract_text(LOCATION_SELECTORS) or "Not specified",
            job_url=job_url,
            platform=self.platform,
            description=self.extract_text(DESCRIPTION_SELECTORS) or None,
        )

    def matches_preferences(self, job: JobRecord) -> bool:
        positions = self.preferences.get("positions") or []
        if not positions:
            return True
        title = (job.title or "").lower()
        return any(position.lower() in title for position in positions)

    def get_skip_reason(self, job: JobRecord) -> Optional[str]:
        reason = super().get_skip_reason(job)
        if reason:
            return reason
        if self.find_visible(APPLY_BUTTON_SELECTORS) is None:
            return "No apply button found - job already applied or not available"
        if not self.matches_preferences(job):
            return f"Job title \"{job.title}\" doesn't match required positions"
        return None

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def click_first_visible(self, selectors: List[str]) -> bool:
        button = self.find_visible(selectors)
        if button is None or not button.is_enabled():
            return False
        self.click(button)
        return True

    def move_to_next_step(self) -> str:
        if self.click_first_visible(SUBMIT_SELECTORS) or self.click_first_visible(FORM_SUBMIT_SELECTORS):
            self.send_activity("Submitting application...")
            self.sleep(2)
            return "submitted"
        if self.click_first_visible(NEXT_SELECTORS):
            self.sleep(2)
            return "next"
        if self.click_first_visible(CLOSE_SELECTORS):
            self.sleep(2)
            return "closed"
        return "error"

    def fill_current_step(self, handler):
        form = self.page.locator("form").first
        handler.fill_form_step(form if form.count() else self.page.locator("body"))

    def close_application(self):
        self.click_first_visible(CLOSE_SELECTORS + ['button[aria-label="Close"]'])

    def apply_to_job(self, job: JobRecord) -> bool:
        apply_button = self.find_visible(APPLY_BUTTON_SELECTORS)
        if apply_button is None:
            raise Exception("Apply button not found")

        self.send_activity(f"Starting application for: {job.title}")
        self.click(apply_button)
        self.sleep(2)

        self.set_phase(ApplicationPhase.FORM_DETECTED)
        self.set_phase(ApplicationPhase.FILLING)
        handler = self.create_form_handler(job)

        try:
            for attempt in range(self.max_form_steps):
                self.check_application_timeout()
                self.fill_current_step(handler)
                step = self.move_to_next_step()
                logger.debug(f"[{self.platform}] Application step {attempt + 1}: {step}")
                if step == "submitted":
                    self.set_phase(ApplicationPhase.SUBMITTING)
                    self.sleep(1)
                    self.click_first_visible(CLOSE_SELECTORS)
                    return True
                if step in ("error", "closed"):
                    break
        except Exception:
            self.close_application()
            raise

        self.send_activity("Application took too many steps, closing")
        self.close_application()
        return False
