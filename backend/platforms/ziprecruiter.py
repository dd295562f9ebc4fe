"""
ZipRecruiter Platform Automation for AutoApply
@file purpose: ZipRecruiter 1-Click Apply, applied in the search tab itself
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from config import DEFAULT_JOB_POSITION, ZIPRECRUITER_APPLICATION_TIMEOUT
from platforms.base_platform_automation import BasePlatformAutomation
from shared.models import ApplicationPhase, JobRecord

logger = logging.getLogger(__name__)

SELECTORS = {
    "job_cards": ".job_result_two_pane",
    "job_title": "h2.font-bold.text-primary",
    "company_name": "[data-testid='job-card-company']",
    "location": "[data-testid='job-card-location']",
    "salary": "p.text-primary:has-text('$')",
    "apply_button": "button[aria-label*='1-Click Apply']",
    "applied_indicator": "button[aria-label*='Applied']",
    "modal_container": ".ApplyingToHeader",
    "modal_form": ".ApplyFlowApp, .question_form",
    "modal_questions": ".question_form fieldset",
    "modal_continue_button": "button[type='submit']",
    "modal_success": ".apply-success, .application-success",
    "no_jobs_found": ".jobs_not_found",
    "next_page_button": "a[title='Next Page']",
    "last_page_indicator": "button[title='Next Page'][disabled]",
    "description": ".job-description, .job-details-description",
}
CLOSE_SELECTORS = ['button[title="Close"]', 'button[aria-label="Close"]']
SUCCESS_TEXTS = [
    "application submitted",
    "successfully applied",
    "thank you for applying",
    "application complete",
]

DATE_POSTED_DAYS = {"24h": 1, "3d": 5, "week": 10, "month": 30}


class ZipRecruiterPlatform(BasePlatformAutomation):
    """ZipRecruiter search results with 1-Click Apply in the same tab"""

    platform = "ziprecruiter"
    base_url = "https://www.ziprecruiter.com"
    applies_in_page = True
    max_form_steps = 10
    stuck_timeout_seconds = ZIPRECRUITER_APPLICATION_TIMEOUT
    current_card = None

    @classmethod
    def build_search_url(cls, preferences: Dict[str, Any]) -> str:
        positions = preferences.get("positions") or [DEFAULT_JOB_POSITION]
        params = {"search": " OR ".join(positions)}
        locations = preferences.get("location") or []
        if isinstance(locations, str):
            locations = [locations]
        if locations and locations[0] != "Remote":
            params["location"] = locations[0]
        if preferences.get("remoteOnly") or "Remote" in locations:
            params["refine_by_location_type"] = "only_remote"
        days = DATE_POSTED_DAYS.get(preferences.get("datePosted"))
        if days:
            params["days"] = days
        return f"{cls.base_url}/jobs-search?{urlencode(params)}"

    # ------------------------------------------------------------------
    # Job cards
    # ------------------------------------------------------------------

    def no_jobs_found(self) -> bool:
        return self.page.locator(SELECTORS["no_jobs_found"]).count() > 0

    def find_all_links_elements(self) -> List[Any]:
        if self.no_jobs_found():
            return []
        return self.page.locator(SELECTORS["job_cards"]).all()

    @staticmethod
    def get_job_id_from_card(card) -> Optional[str]:
        for attribute in ("data-job-id", "data-id", "id"):
            value = card.get_attribute(attribute)
            if value:
                return value
        return None

    def get_link_url(self, element) -> Optional[str]:
        link = element.locator("a[href*='ziprecruiter.com/jobs/'], h2 a").first
        href = link.get_attribute("href") if link.count() else None
        if href:
            return href if href.startswith("http") else f"{self.base_url}{href}"
        job_id = self.get_job_id_from_card(element)
        if job_id:
            # Cards without a link keep a stable id; address them through the search page
            return f"{self.base_url}/jobs-search?jid={job_id}"
        return None

    def get_link_title(self, element) -> str:
        return self.extract_text([SELECTORS["job_title"], "h2"], root=element) or "Job Application"

    def find_load_more_element(self):
        if self.page.locator(SELECTORS["last_page_indicator"]).count():
            return None
        button = self.page.locator(SELECTORS["next_page_button"]).first
        if not self.is_visible(button):
            return None
        if button.get_attribute("disabled") is not None or "disabled" in (
            button.get_attribute("class") or ""
        ):
            return None
        return button

    def open_job_card(self, link: Dict[str, Any]):
        card = link["element"]
        clickable = card.locator("h2 a").first
        self.click(clickable if clickable.count() else card)
        self.sleep(2)
        self.current_card = card

    # ------------------------------------------------------------------
    # Job details
    # ------------------------------------------------------------------

    def extract_job_details(self) -> JobRecord:
        card = self.current_card
        root = card if card is not None else self.page
        job_id = (self.get_job_id_from_card(card) if card is not None else None) or (
            f"job-{self.application_state.processed_links_count}"
        )
        title = self.extract_text([SELECTORS["job_title"], "h2"], root=root) or "Unknown Title"
        company = self.extract_text([SELECTORS["company_name"]], root=root) or "Unknown Company"
        location = self.extract_text([SELECTORS["location"]], root=root) or "Not specified"
        description = self.extract_text([SELECTORS["description"]])
        return JobRecord(
            job_id=job_id,
            title=title,
            company=company,
            location=location,
            salary=self.extract_text([SELECTORS["salary"]], root=root) or "Not specified",
            job_url=self.application_state.application_url or self.page.url,
            platform=self.platform,
            description=description or f"{title} at {company} in {location}",
        )

    def is_already_applied(self) -> bool:
        card = self.current_card
        root = card if card is not None else self.page
        return root.locator(SELECTORS["applied_indicator"]).count() > 0

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def close_failed_application_modals(self) -> bool:
        button = self.find_visible(CLOSE_SELECTORS)
        if button is None:
            return False
        self.click(button)
        self.sleep(1)
        return True

    def handle_application_form(self, job: JobRecord) -> bool:
        self.set_phase(ApplicationPhase.FORM_DETECTED)
        self.set_phase(ApplicationPhase.FILLING)
        handler = self.create_form_handler(job)

        for step in range(1, self.max_form_steps + 1):
            self.check_application_timeout()
            if self.find_visible([SELECTORS["modal_success"]]) is not None:
                return True

            container = self.page.locator(SELECTORS["modal_form"]).first
            if container.count() == 0 or not container.is_visible():
                # Modal gone: ZipRecruiter closes it once the application is sent
                break
            self.send_activity(f"Answering application questions (step {step})")
            handler.fill_form_step(container)

            button = self.find_visible([SELECTORS["modal_continue_button"]], container)
            if button is None:
                break
            self.set_phase(ApplicationPhase.SUBMITTING)
            self.click(button)
            self.sleep(2)
            self.set_phase(ApplicationPhase.FILLING)

        return self.wait_for_confirmation(
            [SELECTORS["modal_success"], SELECTORS["applied_indicator"]],
            SUCCESS_TEXTS,
            url_markers=(),
            timeout=5,
        )

    def apply_to_job(self, job: JobRecord) -> bool:
        apply_button = self.find_visible([SELECTORS["apply_button"]])
        if apply_button is None:
            raise Exception("1-Click Apply button not found")

        self.send_activity(f"1-Click applying to \"{job.title}\"")
        self.click(apply_button)
        self.sleep(1.5)

        try:
            if self.find_visible([SELECTORS["modal_container"]]) is not None:
                return self.handle_application_form(job)
        except Exception:
            self.close_failed_application_modals()
            raise

        # No questions asked: the button flips to "Applied" right away
        return self.wait_for_confirmation(
            [SELECTORS["applied_indicator"], SELECTORS["modal_success"]],
            SUCCESS_TEXTS,
            url_markers=(),
            timeout=3,
        )
