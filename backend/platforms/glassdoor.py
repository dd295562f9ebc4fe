"""
Glassdoor Platform Automation for AutoApply
@file purpose: Glassdoor job search with Easy Apply, one tab per application
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from config import DEFAULT_JOB_POSITION
from platforms.base_platform_automation import BasePlatformAutomation
from shared.models import ApplicationPhase, JobRecord
from util.url_utils import extract_job_id

logger = logging.getLogger(__name__)

JOB_CARD_SELECTORS = [
    '[data-test="job-link"]',
    ".react-job-listing",
    ".jobListing",
    ".job-search-card",
]
CARD_TITLE_SELECTORS = ['[data-test="job-title"]', ".jobTitle", "h2 a", 'a[data-test="job-link"]']
TITLE_SELECTORS = ['[data-test="job-title"]', ".jobTitle", "h1"]
COMPANY_SELECTORS = ['[data-test="employer-name"]', ".employerName", '[data-test="employer-short-name"]']
LOCATION_SELECTORS = ['[data-test="job-location"]', ".location", '[data-test="emp-location"]']
DESCRIPTION_SELECTORS = ['[data-test="jobDescriptionContent"]', ".jobDescriptionContent", "#JobDescriptionContainer"]

EASY_APPLY_SELECTORS = [
    '[data-test="easy-apply-button"]',
    ".css-1gqc91l button",
    ".apply-btn",
    'button[aria-label*="Apply"]',
]
ACTION_BUTTON_SELECTORS = [
    'button[data-test="continue-button"]',
    'button[data-test="submit-button"]',
    'button[data-test="next-button"]',
    'button[aria-label*="Continue"]',
    'button[aria-label*="Submit"]',
    'button[type="submit"]',
]
CLOSE_SELECTORS = ['[data-test="modal-close"]', ".modal-close", '[aria-label="Close"]']
SUCCESS_SELECTORS = [
    '[data-test="application-complete"]',
    '[data-test="application-success"]',
    ".application-confirmation",
    ".success-message",
]
SUCCESS_TEXTS = [
    "application submitted",
    "thank you for applying",
    "application has been submitted",
    "successfully applied",
]
NEXT_PAGE_SELECTORS = ['[data-test="pagination-next"]', ".next-page", 'a[aria-label="Next"]']

YES_NO_DEFAULTS = {
    "authorized to work": "Yes",
    "work authorization": "Yes",
    "require sponsorship": "No",
    "visa sponsorship": "No",
    "background check": "Yes",
}

DATE_POSTED_DAYS = {"24h": 1, "3d": 3, "week": 7, "month": 30}


class GlassdoorPlatform(BasePlatformAutomation):
    """Glassdoor search with Easy Apply applications in their own tab"""

    platform = "glassdoor"
    base_url = "https://www.glassdoor.com"
    max_form_steps = 8

    @classmethod
    def build_search_url(cls, preferences: Dict[str, Any]) -> str:
        positions = preferences.get("positions") or [DEFAULT_JOB_POSITION]
        params = {"sc.keyword": " ".join(positions[:1]), "applicationType": 1}
        locations = preferences.get("location") or []
        if isinstance(locations, str):
            locations = [locations]
        if preferences.get("remoteOnly"):
            params["remoteWorkType"] = 1
        elif locations:
            params["locKeyword"] = locations[0]
        days = DATE_POSTED_DAYS.get(preferences.get("datePosted"))
        if days:
            params["fromAge"] = days
        return f"{cls.base_url}/Job/jobs.htm?{urlencode(params)}"

    # ------------------------------------------------------------------
    # Search tab
    # ------------------------------------------------------------------

    def find_all_links_elements(self) -> List[Any]:
        for selector in JOB_CARD_SELECTORS:
            cards = self.page.locator(selector).all()
            if cards:
                return cards
        return []

    def get_link_url(self, element) -> Optional[str]:
        href = element.get_attribute("href")
        if not href:
            link = element.locator('a[data-test="job-link"], a[data-test="job-title"], h2 a').first
            href = link.get_attribute("href") if link.count() else None
        if href and href.startswith("/"):
            href = f"{self.base_url}{href}"
        return href

    def get_link_title(self, element) -> str:
        return self.extract_text(CARD_TITLE_SELECTORS, root=element) or "Job Application"

    def find_load_more_element(self):
        button = self.find_visible(NEXT_PAGE_SELECTORS)
        if button is not None and button.is_disabled():
            return None
        return button

    # ------------------------------------------------------------------
    # Apply tab
    # ------------------------------------------------------------------

    def extract_job_details(self) -> JobRecord:
        url = self.page.url
        return JobRecord(
            job_id=extract_job_id(url, self.platform),
            title=self.extract_text(TITLE_SELECTORS) or "Unknown Title",
            company=self.extract_text(COMPANY_SELECTORS) or "Unknown Company",
            location=self.extract_text(LOCATION_SELECTORS) or "Unknown Location",
            job_url=url,
            platform=self.platform,
            description=self.extract_text(DESCRIPTION_SELECTORS) or None,
        )

    def find_action_button(self):
        for selector in ACTION_BUTTON_SELECTORS:
            button = self.page.locator(selector).first
            if self.is_visible(button) and button.is_enabled():
                return button
        return self.find_button_with_text(["continue", "submit", "apply"], tag="button")

    @staticmethod
    def is_submit_button(button) -> bool:
        text = (button.inner_text() or "").lower()
        aria_label = (button.get_attribute("aria-label") or "").lower()
        test_id = button.get_attribute("data-test") or ""
        return (
            "submit" in text
            or "apply" in text
            or "submit" in aria_label
            or "apply" in aria_label
            or "submit" in test_id
            or button.get_attribute("type") == "submit"
        )

    def is_application_complete(self) -> bool:
        self.sleep(2)
        return self.wait_for_confirmation(SUCCESS_SELECTORS, SUCCESS_TEXTS, url_markers=(), timeout=1)

    def fill_glassdoor_step(self, handler):
        container = self.page.locator("form").first
        if container.count() == 0:
            container = self.page.locator("body")
        result = self.fill_form(container, self.user_profile or {})
        logger.debug(
            f"[{self.platform}] Filled {result['fieldsFilled']}/{result['fieldsFound']} profile fields"
        )
        self.answer_screening_radios(YES_NO_DEFAULTS, container)
        handler.fill_form_step(container)

    def close_modal(self):
        close_button = self.find_visible(CLOSE_SELECTORS)
        if close_button is not None:
            self.click(close_button)

    def apply_to_job(self, job: JobRecord) -> bool:
        apply_button = self.find_visible(EASY_APPLY_SELECTORS)
        if apply_button is None:
            raise Exception("Easy Apply button not found")

        self.click(apply_button)
        self.sleep(2)

        self.set_phase(ApplicationPhase.FORM_DETECTED)
        self.set_phase(ApplicationPhase.FILLING)
        handler = self.create_form_handler(job)
        try:
            for step in range(1, self.max_form_steps + 1):
                self.check_application_timeout()
                self.send_activity(f"Processing Glassdoor application step {step}")
                self.fill_glassdoor_step(handler)

                button = self.find_action_button()
                if button is None:
                    logger.info(f"[{self.platform}] No action button found, checking completion")
                    break

                is_submit = self.is_submit_button(button)
                self.click(button)
                self.sleep(2)
                if is_submit:
                    self.set_phase(ApplicationPhase.SUBMITTING)
                    if self.is_application_complete():
                        return True
                    self.set_phase(ApplicationPhase.FILLING)

            return self.is_application_complete()
        except Exception:
            self.close_modal()
            raise
