"""
Recruitee Platform Automation for AutoApply
@file purpose: Google "site:recruitee.com" search and the Recruitee careers
page application form (English, Dutch and French button labels)
"""

import logging
from typing import Any, List

from browser.automation import PlaywrightTimeoutError
from exceptions import ElementNotFoundException
from platforms.base_platform_automation import BasePlatformAutomation
from shared.models import ApplicationPhase, JobRecord
from util.url_utils import extract_job_id

logger = logging.getLogger(__name__)

TITLE_SELECTORS = ["h1", ".job-title", '[data-test="job-title"]', ".position-title", ".vacancy-title"]
COMPANY_SELECTORS = [".company-name", '[data-test="company-name"]', ".employer-name", ".organization-name"]
LOCATION_SELECTORS = [".location", ".job-location", '[data-test="location"]', ".workplace-location"]
DESCRIPTION_SELECTORS = [".job-description", '[data-testid="job-description"]', ".description", "main"]

APPLY_BUTTON_SELECTORS = [
    'button[type="submit"]',
    ".apply-button",
    'a[href*="apply"]',
    'button[class*="apply"]',
    'a[class*="apply"]',
    '[data-testid="apply"]',
    ".btn-apply",
    ".application-button",
]
APPLY_TEXTS = ["apply", "solliciteren", "postuler"]
FORM_SELECTOR = 'form, .application-form, [class*="form"]'
COVER_LETTER_SELECTORS = [
    'textarea[name*="cover"]',
    'textarea[name*="motivation"]',
    'textarea[id*="cover"]',
    'textarea[id*="motivation"]',
    'textarea[placeholder*="motivation"]',
]
SUBMIT_SELECTORS = [
    'button[type="submit"]',
    'input[type="submit"]',
    'button[class*="submit"]',
    'button[class*="send"]',
    ".submit-button",
    ".send-button",
]
SUBMIT_TEXTS = ["submit", "send", "apply", "verstuur", "envoyer"]
SUCCESS_SELECTORS = [
    ".success",
    ".confirmation",
    ".thank-you",
    '[class*="success"]',
    '[class*="confirmation"]',
    '[class*="thank"]',
]
SUCCESS_TEXTS = ["thank you", "application submitted", "successfully applied", "received your application"]


class RecruiteePlatform(BasePlatformAutomation):
    """Recruitee career pages found through Google, one tab per application"""

    platform = "recruitee"
    base_url = "https://recruitee.com"
    google_site = "recruitee.com"

    def find_all_links_elements(self) -> List[Any]:
        return self.page.locator(
            '#rso a[href*="recruitee.com"], #botstuff a[href*="recruitee.com"]'
        ).all()

    def find_load_more_element(self):
        return self.find_visible(['a[id="pnnext"]', 'a[aria-label="Next"]']) or super().find_load_more_element()

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

    def find_apply_button(self):
        for selector in APPLY_BUTTON_SELECTORS:
            button = self.page.locator(selector).first
            if button.count() == 0:
                continue
            text = (button.inner_text() or "").lower()
            if any(label in text for label in APPLY_TEXTS):
                return button
        return None

    def fill_cover_letter(self, job: JobRecord):
        textarea = self.find_first(COVER_LETTER_SELECTORS)
        if textarea is None or (textarea.input_value() or "").strip():
            return
        profile = self.user_profile or {}
        cover_letter = profile.get("coverLetter") or self.ai_service.generate_cover_letter(
            job.to_message(), profile
        )
        if cover_letter:
            self.send_activity("Writing motivation letter")
            textarea.fill(cover_letter)

    def find_submit_button(self, form):
        for selector in SUBMIT_SELECTORS:
            button = form.locator(selector).first
            if button.count() == 0:
                continue
            text = (button.inner_text() or button.get_attribute("value") or "").lower()
            if any(label in text for label in SUBMIT_TEXTS):
                return button
        return None

    def apply_to_job(self, job: JobRecord) -> bool:
        apply_button = self.find_apply_button()
        if apply_button is None:
            raise Exception("Apply button not found")

        self.click(apply_button)
        self.sleep(3)
        try:
            form = self.wait_for_element(FORM_SELECTOR, timeout=10000)
        except ElementNotFoundException as e:
            raise Exception("Application form not found") from e

        result = self.fill_form(form, self.user_profile or {})
        logger.debug(f"[{self.platform}] Filled {result['fieldsFilled']}/{result['fieldsFound']} fields")
        self.fill_single_page_form(form, job)
        self.fill_cover_letter(job)

        submit_button = self.find_submit_button(form) or self.find_submit_button(self.page)
        if submit_button is None:
            raise Exception("Failed to submit application: submit button not found")

        self.send_activity("Submitting application...")
        self.set_phase(ApplicationPhase.SUBMITTING)
        self.click(submit_button)
        self.sleep(3)
        try:
            self.page.wait_for_load_state("domcontentloaded", timeout=10000)
        except PlaywrightTimeoutError:
            logger.debug(f"[{self.platform}] Page still loading after submit")
        return self.wait_for_confirmation(SUCCESS_SELECTORS, SUCCESS_TEXTS, timeout=10)
