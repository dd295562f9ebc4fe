"""
Indeed Platform Automation for AutoApply
@file purpose: Indeed search results are walked in the search tab; each job
is applied to through Indeed Apply in a tab of its own
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from config import DEFAULT_JOB_POSITION
from platforms.base_platform_automation import BasePlatformAutomation
from shared.models import JobRecord
from util.url_utils import extract_job_id

logger = logging.getLogger(__name__)

JOB_CARD_SELECTORS = [
    "[data-jk]",
    ".job_seen_beacon",
    ".jobsearch-SerpJobCard",
    ".slider_container .slider_item",
]
CARD_TITLE_SELECTORS = ["h2 a span[title]", ".jobTitle a span[title]", "h2 a", '[data-testid="job-title"] a']
TITLE_SELECTORS = [
    "h2[class*=jobsearch-JobInfoHeader-title]",
    "h1.jobsearch-JobInfoHeader-title",
    '[data-testid="jobsearch-JobInfoHeader-title"]',
    "h1",
]
COMPANY_SELECTORS = [
    "div[data-company-name=true]",
    '[data-testid="inlineHeader-companyName"]',
    '[data-testid="company-name"]',
    ".companyName",
]
LOCATION_SELECTORS = [
    "div[data-testid*='inlineHeader-companyLocation']",
    '[data-testid="job-location"]',
    ".companyLocation",
]
DESCRIPTION_SELECTORS = ["#jobDescriptionText", ".jobsearch-jobDescriptionText"]

APPLY_BUTTON_SELECTORS = [
    "#indeedApplyButton",
    'button[aria-label*="Apply"]',
    'button[data-testid*="apply"]',
    ".ia-ApplyButton",
    ".jobsearch-IndeedApplyButton",
    'button[data-tn-element="applyButton"]',
]
APPLIED_SELECTORS = ['button[aria-label*="Applied"]', ".jobsearch-IndeedApplyButton-applied"]
SUCCESS_SELECTORS = [
    ".ia-BasePage-sidebar .ia-ApplyForm-success",
    '[data-testid="application-complete"]',
    ".application-confirmation",
    ".ia-ApplicationMessage-successMessage",
    ".ia-PostApply-header",
]
SUCCESS_TEXTS = [
    "application submitted",
    "your application has been submitted",
    "application received",
    "thank you for applying",
]
NEXT_PAGE_SELECTORS = [
    'a[aria-label="Next Page"]',
    "a[data-testid*='pagination-page-next']",
    'a[aria-label="Next"]',
    ".np:last-child",
]

# Yes/no answers for common screening questions
YES_NO_DEFAULTS = {
    "authorized": "Yes",
    "legally": "Yes",
    "sponsorship": "No",
    "visa": "No",
    "background check": "Yes",
    "drug test": "Yes",
    "relocate": "Yes",
    "commute": "Yes",
}

DATE_POSTED_DAYS = {"24h": 1, "3d": 3, "week": 7, "month": 14}


class IndeedPlatform(BasePlatformAutomation):
    """Indeed job search, applying to each posting in its own tab"""

    platform = "indeed"
    base_url = "https://www.indeed.com"
    max_form_steps = 5
    form_container_selectors = ".ia-BasePage-component, .ia-Questions, form"

    @classmethod
    def build_search_url(cls, preferences: Dict[str, Any]) -> str:
        positions = preferences.get("positions") or [DEFAULT_JOB_POSITION]
        params = {"q": " OR ".join(positions)}

        locations = preferences.get("location") or []
        if isinstance(locations, str):
            locations = [locations]
        if preferences.get("remoteOnly"):
            params["l"] = "Remote"
            params["sc"] = "0kf:attr(DSQF7);"
        elif locations:
            params["l"] = locations[0]

        days = DATE_POSTED_DAYS.get(preferences.get("datePosted"))
        if days:
            params["fromage"] = days
        return f"{cls.base_url}/jobs?{urlencode(params)}"

    # ------------------------------------------------------------------
    # Search tab
    # ------------------------------------------------------------------

    def find_all_links_elements(self) -> List[Any]:
        for selector in JOB_CARD_SELECTORS:
            cards = [card for card in self.page.locator(selector).all() if card.is_visible()]
            if cards:
                return cards
        return []

    def get_link_url(self, element) -> Optional[str]:
        job_key = element.get_attribute("data-jk")
        if not job_key:
            inner = element.locator("[data-jk]").first
            job_key = inner.get_attribute("data-jk") if inner.count() else None
        if job_key:
            return f"{self.base_url}/viewjob?jk={job_key}"

        link = element.locator("h2 a, a.jcs-JobTitle").first
        href = link.get_attribute("href") if link.count() else None
        if href and href.startswith("/"):
            href = f"{self.base_url}{href}"
        return href

    def get_link_title(self, element) -> str:
        title = self.extract_text(CARD_TITLE_SELECTORS, root=element)
        return title or "Job Application"

    def find_load_more_element(self):
        return self.find_visible(NEXT_PAGE_SELECTORS)

    # ------------------------------------------------------------------
    # Apply tab
    # ------------------------------------------------------------------

    def extract_job_details(self) -> JobRecord:
        url = self.page.url
        title = self.extract_text(TITLE_SELECTORS)
        for suffix in ("\n- job post", " - job post", "- job post"):
            if title.endswith(suffix):
                title = title[: -len(suffix)].strip()
                break
        return JobRecord(
            job_id=extract_job_id(url, self.platform),
            title=title or "Unknown Title",
            company=self.extract_text(COMPANY_SELECTORS) or "Unknown Company",
            location=self.extract_text(LOCATION_SELECTORS) or "Not specified",
            job_url=url,
            platform=self.platform,
            description=self.extract_text(DESCRIPTION_SELECTORS) or None,
        )

    def is_already_applied(self) -> bool:
        return self.find_visible(APPLIED_SELECTORS) is not None

    def open_indeed_apply(self) -> bool:
        """Click the Indeed Apply button, following the apply popup if one opens"""
        button = self.find_visible(APPLY_BUTTON_SELECTORS)
        if button is None:
            button = self.find_button_with_text(["apply now", "easily apply"])
        if button is None:
            return False

        context = self.page.context
        pages_before = len(context.pages)
        self.click(button)
        self.sleep(3)

        if len(context.pages) > pages_before:
            popup = context.pages[-1]
            popup.wait_for_load_state("domcontentloaded")
            logger.info(f"[{self.platform}] Indeed Apply opened in a popup: {popup.url}")
            self.page = popup
        return True

    def apply_to_job(self, job: JobRecord) -> bool:
        if not self.open_indeed_apply():
            raise Exception("Indeed Apply button not found")

        self.answer_screening_radios(YES_NO_DEFAULTS)
        if self.fill_application_form(job):
            return True
        return self.wait_for_confirmation(SUCCESS_SELECTORS, SUCCESS_TEXTS, timeout=5)
