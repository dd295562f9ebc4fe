"""
LinkedIn Platform Automation for AutoApply
@file purpose: LinkedIn Easy Apply, applied in the search tab itself

Cards are clicked in the results list, the job details pane is scraped and
the Easy Apply modal is walked step by step through its aria-labelled
buttons until the application is submitted.
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from platforms.base_platform_automation import BasePlatformAutomation
from shared.models import ApplicationPhase, JobRecord

logger = logging.getLogger(__name__)

JOB_CARD_SELECTOR = ".scaffold-layout__list-item[data-occludable-job-id]"
JOB_LINK_SELECTOR = "a[href*='jobs/view']"
CARD_CLICK_SELECTOR = "a[href*='jobs/view'], .job-card-list__title, .job-card-container__link"
CARD_TITLE_SELECTORS = [".job-card-list__title", ".job-card-container__link", "strong"]
APPLY_BUTTON_SELECTOR = ".jobs-apply-button"
TITLE_SELECTORS = [".job-details-jobs-unified-top-card__job-title", "h1"]
COMPANY_SELECTORS = [".job-details-jobs-unified-top-card__company-name"]
DETAILS_SELECTOR = ".job-details-jobs-unified-top-card__primary-description-container .t-black--light.mt2"
DESCRIPTION_SELECTORS = [".jobs-description-content__text", ".jobs-description__content"]
MODAL_SELECTOR = "div[data-test-modal], .jobs-easy-apply-modal"
NEXT_PAGE_SELECTOR = "button.jobs-search-pagination__button--next"

BUTTONS = {
    "continue_tips": 'button[aria-label="I understand the tips and want to continue the apply process"]',
    "continue_applying": 'button[aria-label*="Easy Apply"][aria-label*="Continue applying"]',
    "submit": 'button[aria-label="Submit application"]',
    "review": 'button[aria-label="Review your application"]',
    "next": 'button[aria-label="Continue to next step"]',
    "dismiss": 'button[aria-label="Dismiss"]',
    "done": 'button[aria-label="Done"]',
    "close": 'button[aria-label="Close"]',
}
POST_SUBMIT_DISMISS = [
    'button[aria-label="Dismiss"]',
    'button[aria-label="Done"]',
    'button[aria-label="Close"]',
    ".artdeco-modal__dismiss",
    ".jobs-applied-modal__dismiss-btn",
]
MAX_ATTEMPTS = 20

GEO_IDS = {
    "Nigeria": "105365761",
    "Netherlands": "102890719",
    "United States": "103644278",
    "United Kingdom": "101165590",
    "Canada": "101174742",
    "Australia": "101452733",
    "Germany": "101282230",
    "France": "105015875",
    "India": "102713980",
    "Singapore": "102454443",
    "South Africa": "104035573",
    "Ireland": "104738515",
    "New Zealand": "105490917",
}
WORK_MODES = {"Remote": "2", "Hybrid": "3", "On-site": "1"}
DATE_POSTED = {
    "Past month": "r2592000",
    "Past week": "r604800",
    "Past 24 hours": "r86400",
    "Few Minutes Ago": "r3600",
}
EXPERIENCE_LEVELS = {
    "Internship": "1",
    "Entry level": "2",
    "Associate": "3",
    "Mid-Senior level": "4",
    "Director": "5",
    "Executive": "6",
}
JOB_TYPES = {
    "Full-time": "F",
    "Part-time": "P",
    "Contract": "C",
    "Temporary": "T",
    "Internship": "I",
    "Volunteer": "V",
}
# Minimum yearly salary -> f_SB bucket
SALARY_BUCKETS = [
    (200000, "9"),
    (180000, "8"),
    (160000, "7"),
    (140000, "6"),
    (120000, "5"),
    (100000, "4"),
    (80000, "3"),
    (60000, "2"),
    (40000, "1"),
]


def _codes(values, mapping: Dict[str, str]) -> str:
    return ",".join(mapping[v] for v in values or [] if v in mapping)


class LinkedInPlatform(BasePlatformAutomation):
    """LinkedIn Easy Apply in the search tab"""

    platform = "linkedin"
    base_url = "https://www.linkedin.com/jobs/search/"
    applies_in_page = True

    @classmethod
    def build_search_url(cls, preferences: Dict[str, Any]) -> str:
        params = {"f_AL": "true"}
        positions = preferences.get("positions") or []
        if positions:
            params["keywords"] = " OR ".join(positions)

        locations = preferences.get("location") or []
        if isinstance(locations, str):
            locations = [locations]
        if locations:
            location = locations[0]
            if location == "Remote" or preferences.get("remoteOnly"):
                params["f_WT"] = "2"
            elif location in GEO_IDS:
                params["geoId"] = GEO_IDS[location]
            else:
                params["location"] = location

        work_modes = _codes(preferences.get("workMode"), WORK_MODES)
        if work_modes:
            params["f_WT"] = work_modes
        elif preferences.get("remoteOnly"):
            params["f_WT"] = "2"

        date_code = DATE_POSTED.get(preferences.get("datePosted"))
        if date_code:
            params["f_TPR"] = date_code

        experience = _codes(preferences.get("experience"), EXPERIENCE_LEVELS)
        if experience:
            params["f_E"] = experience

        job_types = _codes(preferences.get("jobType"), JOB_TYPES)
        if job_types:
            params["f_JT"] = job_types

        salary = preferences.get("salary") or []
        if len(salary) == 2:
            minimum = int(salary[0] or 0)
            for threshold, bucket in SALARY_BUCKETS:
                if minimum >= threshold:
                    params["f_SB"] = bucket
                    break

        params["sortBy"] = "R"
        return f"{cls.base_url}?{urlencode(params)}"

    # ------------------------------------------------------------------
    # Job cards
    # ------------------------------------------------------------------

    def find_all_links_elements(self) -> List[Any]:
        return self.page.locator(JOB_CARD_SELECTOR).all()

    @staticmethod
    def get_job_id_from_card(card) -> Optional[str]:
        link = card.locator(JOB_LINK_SELECTOR).first
        if link.count():
            match = re.search(r"view/(\d+)", link.get_attribute("href") or "")
            if match:
                return match.group(1)
        return card.get_attribute("data-occludable-job-id") or card.get_attribute("data-job-id")

    def get_link_url(self, element) -> Optional[str]:
        job_id = self.get_job_id_from_card(element)
        if not job_id:
            return None
        return f"https://www.linkedin.com/jobs/view/{job_id}/"

    def get_link_title(self, element) -> str:
        return self.extract_text(CARD_TITLE_SELECTORS, root=element) or "Job Application"

    def find_load_more_element(self):
        button = self.page.locator(NEXT_PAGE_SELECTOR).first
        return button if self.is_visible(button) else None

    def open_job_card(self, link: Dict[str, Any]):
        card = link["element"]
        clickable = card.locator(CARD_CLICK_SELECTOR).first
        if clickable.count() == 0:
            raise Exception("No clickable element found in job card")
        self.click(clickable)
        try:
            self.wait_for_element(TITLE_SELECTORS[0], timeout=10000)
        except Exception:
            logger.debug(f"[{self.platform}] Job details pane slow to load")
        self.sleep(1)

    # ------------------------------------------------------------------
    # Job details
    # ------------------------------------------------------------------

    def extract_job_details(self) -> JobRecord:
        url = self.page.url
        match = re.search(r"currentJobId=(\d+)|/jobs/view/(\d+)", url)
        job_id = next((g for g in match.groups() if g), None) if match else None
        if not job_id and self.application_state.application_url:
            found = re.search(r"/view/(\d+)", self.application_state.application_url)
            job_id = found.group(1) if found else None

        details = self.extract_text([DETAILS_SELECTOR])
        location = re.match(r"^(.*?)\s·", details)
        return JobRecord(
            job_id=job_id or f"job-{self.application_state.processed_links_count}",
            title=self.extract_text(TITLE_SELECTORS) or "N/A",
            company=self.extract_text(COMPANY_SELECTORS) or "N/A",
            location=location.group(1) if location else "Not specified",
            job_url=self.application_state.application_url or url,
            platform=self.platform,
            description=self.extract_text(DESCRIPTION_SELECTORS) or None,
        )

    def find_apply_button(self):
        buttons = self.page.locator(APPLY_BUTTON_SELECTOR)
        for i in range(buttons.count()):
            button = buttons.nth(i)
            try:
                if button.is_visible() and not button.is_disabled():
                    return button
            except Exception:
                continue
        return None

    @staticmethod
    def determine_apply_type(button) -> Optional[str]:
        if button is None:
            return None
        text = (button.inner_text() or "").strip().lower()
        aria_label = (button.get_attribute("aria-label") or "").lower()
        if "easy apply" in text or "easy apply" in aria_label:
            return "easy_apply"
        if "apply" in text or "apply" in aria_label:
            return "external_apply"
        return "unknown"

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
        apply_type = self.determine_apply_type(self.find_apply_button())
        if apply_type is None:
            return "Easy Apply button not found"
        if apply_type != "easy_apply":
            return "Requires applying on the company website"
        if not self.matches_preferences(job):
            return f"Job title \"{job.title}\" doesn't match required positions"
        return None

    # ------------------------------------------------------------------
    # Easy Apply modal
    # ------------------------------------------------------------------

    def click_if_visible(self, selector: str) -> bool:
        button = self.page.locator(selector).first
        if self.is_visible(button) and button.is_enabled():
            self.click(button)
            return True
        return False

    def move_to_next_step(self) -> str:
        """Click the next modal button and report which step was taken"""
        if self.click_if_visible(BUTTONS["continue_tips"]):
            self.sleep(2)
            return "continue"
        if self.click_if_visible(BUTTONS["continue_applying"]):
            self.sleep(2)
            return "continue"
        if self.click_if_visible(BUTTONS["submit"]):
            self.send_activity("Submitting application...")
            self.sleep(2)
            return "submitted"
        if self.click_if_visible(BUTTONS["review"]):
            self.sleep(2)
            return "review"
        if self.click_if_visible(BUTTONS["next"]):
            self.sleep(2)
            return "next"
        for name in ("dismiss", "done", "close"):
            if self.click_if_visible(BUTTONS[name]):
                self.sleep(2)
                return "modal-closed"
        return "error"

    def fill_current_step(self, handler):
        modal = self.page.locator(MODAL_SELECTOR).first
        if modal.count() == 0:
            modal = self.page.locator("body")
        handler.fill_form_step(modal)

    def handle_post_submission_modal(self):
        self.sleep(2)
        for selector in POST_SUBMIT_DISMISS:
            if self.click_if_visible(selector):
                self.sleep(1)
                return

    def close_application(self):
        """Close the modal and discard the draft application"""
        if self.click_if_visible("button[data-test-modal-close-btn]"):
            self.sleep(1)
            self.click_if_visible('button[data-control-name="discard_application_confirm_btn"]')
            return
        for selector in (".artdeco-modal__dismiss", BUTTONS["dismiss"], BUTTONS["close"]):
            if self.click_if_visible(selector):
                return

    def apply_to_job(self, job: JobRecord) -> bool:
        apply_button = self.find_apply_button()
        if apply_button is None:
            raise Exception("Easy Apply button not found")

        self.send_activity(f"Starting Easy Apply for \"{job.title}\"")
        self.click(apply_button)
        self.sleep(2)

        self.set_phase(ApplicationPhase.FORM_DETECTED)
        self.set_phase(ApplicationPhase.FILLING)
        handler = self.create_form_handler(job)

        try:
            for attempt in range(MAX_ATTEMPTS):
                self.check_application_timeout()
                self.fill_current_step(handler)
                step = self.move_to_next_step()
                logger.debug(f"[{self.platform}] Easy Apply step {attempt + 1}: {step}")

                if step == "submitted":
                    self.set_phase(ApplicationPhase.SUBMITTING)
                    self.handle_post_submission_modal()
                    return True
                if step in ("error", "modal-closed"):
                    break
        except Exception:
            self.close_application()
            raise

        self.send_activity("This application had too many steps, skipping it")
        self.close_application()
        return False
