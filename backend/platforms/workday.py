"""
Workday Platform Automation for AutoApply
@file purpose: Google "site:myworkdayjobs.com" search and the Workday
multi-page application wizard

Workday pages are addressed through their ``data-automation-id`` attributes,
which are stable across tenants.
"""

import logging
from typing import Any, List
from urllib.parse import urlparse

from platforms.base_platform_automation import BasePlatformAutomation
from shared.models import ApplicationPhase, JobRecord
from util.url_utils import extract_job_id

logger = logging.getLogger(__name__)


def automation_id(name: str) -> str:
    return f'[data-automation-id="{name}"]'


TITLE_SELECTORS = [automation_id("jobPostingHeader"), "h2", "h1"]
LOCATION_SELECTORS = [automation_id("locations"), automation_id("location")]
DESCRIPTION_SELECTORS = [automation_id("jobPostingDescription")]

APPLY_BUTTON_SELECTORS = [automation_id("adventureButton"), automation_id("applyButton")]
APPLY_MANUALLY_SELECTORS = [automation_id("applyManually"), automation_id("autofillWithResume")]
SIGN_IN_SELECTORS = [automation_id("signInContent"), automation_id("createAccountLink")]
WIZARD_PAGE_SELECTOR = f'{automation_id("applyFlowPage")}, form'
NEXT_BUTTON_SELECTORS = [
    automation_id("bottom-navigation-next-button"),
    automation_id("pageFooterNextButton"),
]
SUBMIT_TEXTS = ["submit"]
ERROR_SELECTORS = [automation_id("errorMessage"), automation_id("inputAlert")]
SUCCESS_SELECTORS = [automation_id("congratulationsPopup"), automation_id("applicationSubmitted")]
SUCCESS_TEXTS = ["application submitted", "thank you for applying", "successfully submitted"]


class WorkdayPlatform(BasePlatformAutomation):
    """Workday tenants found through Google, one tab per application"""

    platform = "workday"
    base_url = "https://www.myworkdayjobs.com"
    google_site = "myworkdayjobs.com"
    max_form_steps = 8

    def find_all_links_elements(self) -> List[Any]:
        return self.page.locator(
            '#rso a[href*="myworkdayjobs.com"], #botstuff a[href*="myworkdayjobs.com"]'
        ).all()

    @staticmethod
    def company_from_url(url: str) -> str:
        # acme.wd5.myworkdayjobs.com -> Acme
        host = urlparse(url).hostname or ""
        tenant = host.split(".")[0] if host else ""
        return tenant.replace("-", " ").title() or "Unknown Company"

    def extract_job_details(self) -> JobRecord:
        url = self.page.url
        return JobRecord(
            job_id=extract_job_id(url, self.platform),
            title=self.extract_text(TITLE_SELECTORS) or "Unknown Title",
            company=self.company_from_url(url),
            location=self.extract_text(LOCATION_SELECTORS) or "Not specified",
            job_url=url,
            platform=self.platform,
            description=self.extract_text(DESCRIPTION_SELECTORS) or None,
        )

    def start_wizard(self):
        apply_button = self.find_visible(APPLY_BUTTON_SELECTORS)
        if apply_button is None:
            raise Exception("Apply button not found")
        self.click(apply_button)
        self.sleep(2)

        manual = self.find_visible(APPLY_MANUALLY_SELECTORS)
        if manual is not None:
            self.click(manual)
            self.sleep(2)

        if self.find_visible(SIGN_IN_SELECTORS) is not None:
            raise Exception("Workday account sign-in required (verification)")

    def has_validation_errors(self) -> bool:
        return self.find_visible(ERROR_SELECTORS) is not None

    def apply_to_job(self, job: JobRecord) -> bool:
        self.start_wizard()

        self.set_phase(ApplicationPhase.FORM_DETECTED)
        self.set_phase(ApplicationPhase.FILLING)
        handler = self.create_form_handler(job)

        for step in range(1, self.max_form_steps + 1):
            self.check_application_timeout()
            self.send_activity(f"Processing Workday page {step}")
            page = self.page.locator(WIZARD_PAGE_SELECTOR).first
            if page.count() == 0:
                page = self.page.locator("body")
            handler.fill_form_step(page)

            submit_button = self.find_button_with_text(SUBMIT_TEXTS, tag="button")
            next_button = self.find_visible(NEXT_BUTTON_SELECTORS)
            button = next_button or submit_button
            if button is None:
                break

            is_submit = "submit" in (button.inner_text() or "").lower()
            self.click(button)
            self.sleep(3)

            if self.has_validation_errors():
                raise Exception(f"Workday rejected page {step}: required fields missing")
            if is_submit:
                self.set_phase(ApplicationPhase.SUBMITTING)
                return self.wait_for_confirmation(SUCCESS_SELECTORS, SUCCESS_TEXTS, url_markers=(), timeout=15)

        return self.wait_for_confirmation(SUCCESS_SELECTORS, SUCCESS_TEXTS, url_markers=(), timeout=5)
