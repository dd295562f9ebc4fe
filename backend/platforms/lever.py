"""
Lever Platform Automation for AutoApply
@file purpose: Google "site:jobs.lever.co" search and the single-page Lever
application form
"""

import logging
from typing import Any, List

from platforms.base_platform_automation import BasePlatformAutomation
from shared.models import JobRecord
from util.url_utils import extract_company_from_url, extract_job_id

logger = logging.getLogger(__name__)

TITLE_SELECTORS = ['h2[data-qa="posting-name"]', ".posting-headline h2", "h1", ".job-title"]
COMPANY_SELECTORS = [".main-header-text-logo", ".company-name", "h1 a"]
LOCATION_SELECTORS = [
    ".posting-headline .posting-categories .location",
    ".location",
    '[data-qa="posting-location"]',
]
DESCRIPTION_SELECTORS = [".posting-content", ".posting-description", ".job-description"]

APPLY_BUTTON_SELECTORS = [
    ".posting-btn-submit",
    'a[data-qa="btn-apply"]',
    'button[data-qa="btn-apply"]',
    ".apply-button",
    'a[href*="apply"]',
    'button[class*="apply"]',
]
FORM_SELECTORS = [
    'form[data-qa="posting-form"]',
    ".posting-form",
    "form.application-form",
    'form[action*="apply"]',
    'form[action*="lever"]',
    "form",
]
SUBMIT_SELECTORS = [
    'button[type="submit"]',
    'input[type="submit"]',
    'button[data-qa="btn-submit"]',
    'button[data-qa="submit"]',
    ".submit-button",
    ".posting-btn-submit",
]
SUBMIT_TEXTS = ["submit", "apply", "send"]
SUCCESS_SELECTORS = [
    ".posting-confirmation",
    ".thank-you",
    ".success-message",
    '[data-qa="confirmation"]',
]
NEXT_PAGE_SELECTORS = ["#pnnext", 'a[aria-label="Next page"]', ".pnprev ~ a"]


class LeverPlatform(BasePlatformAutomation):
    """Lever postings found through Google, each applied to in its own tab"""

    platform = "lever"
    base_url = "https://jobs.lever.co"
    google_site = "jobs.lever.co"

    @classmethod
    def get_application_url(cls, job_url: str) -> str:
        return job_url if job_url.rstrip("/").endswith("/apply") else job_url.rstrip("/") + "/apply"

    def find_all_links_elements(self) -> List[Any]:
        links = self.page.locator('#rso a[href*="lever.co"], #botstuff a[href*="lever.co"]')
        return links.all()

    def find_load_more_element(self):
        return self.find_visible(NEXT_PAGE_SELECTORS) or super().find_load_more_element()

    def extract_job_details(self) -> JobRecord:
        url = self.page.url
        description = self.extract_text(DESCRIPTION_SELECTORS)
        return JobRecord(
            job_id=extract_job_id(url, self.platform),
            title=self.extract_text(TITLE_SELECTORS) or self.page.title() or "Job Application",
            company=self.extract_text(COMPANY_SELECTORS)
            or extract_company_from_url(url, self.platform)
            or "Company",
            location=self.extract_text(LOCATION_SELECTORS) or "Not specified",
            job_url=url,
            platform=self.platform,
            description=description or None,
        )

    def find_application_form(self):
        for selector in FORM_SELECTORS:
            forms = self.page.locator(selector)
            for i in range(forms.count()):
                form = forms.nth(i)
                try:
                    if form.is_visible() and form.locator("input, select, textarea").count() > 0:
                        return form
                except Exception:
                    continue
        return None

    def apply_to_job(self, job: JobRecord) -> bool:
        self.send_activity("Looking for application form")
        apply_button = self.find_visible(APPLY_BUTTON_SELECTORS)
        if apply_button is not None and "/apply" not in self.page.url:
            logger.info(f"[{self.platform}] Clicking apply button")
            self.click(apply_button)
            self.sleep(3)

        form = self.find_application_form()
        if form is None:
            raise Exception("Cannot find application form")

        self.send_activity("Found application form, filling out")
        self.fill_single_page_form(form, job)
        if not self.submit_form(form, SUBMIT_SELECTORS, SUBMIT_TEXTS):
            return False

        # Lever redirects to /thanks; with no error shown it went through
        return self.wait_for_confirmation(SUCCESS_SELECTORS, timeout=15, assume_success=True)
