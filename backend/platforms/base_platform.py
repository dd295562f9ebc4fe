#!/usr/bin/env python3
"""
Base Platform for AutoApply
@file purpose: Progress bookkeeping, reporting and generic DOM helpers shared
by every platform automation
"""

import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional

from browser.automation import PlaywrightTimeoutError
from exceptions import ElementNotFoundException
from shared.form_handler.form_utils import (
    describe_element,
    get_element_label,
    get_profile_value,
    get_select_options,
    identify_field,
    match_option,
    parse_boolean_value,
)
from shared.messaging import MessageType, make_message
from shared.models import JobRecord
from util.url_utils import extract_job_id, urls_match

logger = logging.getLogger(__name__)

TITLE_SELECTORS = ["h1", ".job-title", '[data-testid="job-title"]']
COMPANY_SELECTORS = [".company", ".company-name", '[data-testid="company-name"]']
LOCATION_SELECTORS = [".location", ".job-location", '[data-testid="job-location"]']
DESCRIPTION_SELECTORS = [".job-description", ".description"]


class BasePlatform:
    """
    Scaffolding shared by the platform automations

    Holds the session configuration, the progress counters and the
    pause/stop flags. Reports (progress, errors, submissions) go through
    ``send_report()``, which subclasses route to their port.
    """

    platform = "generic"
    base_url = ""

    def __init__(
        self,
        config: Dict[str, Any],
        page=None,
        browser_operator=None,
        activity_manager=None,
    ):
        self.config = config or {}
        self.page = page
        self.browser_operator = browser_operator
        self.activity_manager = activity_manager

        self.session_id: Optional[str] = self.config.get("sessionId")
        self.user_id: Optional[str] = self.config.get("userId")
        self.jobs_to_apply: int = int(self.config.get("jobsToApply") or 0)
        self.submitted_links: List[Dict[str, Any]] = list(
            self.config.get("submittedLinks") or []
        )
        self.dev_mode: bool = bool(self.config.get("devMode", False))
        self.user_profile: Optional[Dict[str, Any]] = self.config.get("userProfile")
        self.session_context: Optional[Dict[str, Any]] = self.config.get("sessionContext")
        self.preferences: Dict[str, Any] = self.config.get("preferences") or {}

        self.is_running = False
        self.is_paused = False
        self.progress: Dict[str, Any] = {
            "total": self.jobs_to_apply,
            "completed": 0,
            "failed": 0,
            "skipped": 0,
            "current": None,
        }

        # Optional listeners, set by whoever drives the automation
        self.on_progress: Optional[Callable[[Dict[str, Any]], None]] = None
        self.on_error: Optional[Callable[[Dict[str, Any]], None]] = None
        self.on_complete: Optional[Callable[[], None]] = None
        self.on_application_submitted: Optional[Callable[[Dict[str, Any]], None]] = None

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def pause(self):
        self.is_paused = True
        logger.info(f"[{self.platform}] Automation paused")

    def resume(self):
        self.is_paused = False
        logger.info(f"[{self.platform}] Automation resumed")

    def stop(self):
        self.is_running = False
        self.is_paused = False
        logger.info(f"[{self.platform}] Automation stopped")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def send_report(self, message: Dict[str, Any]) -> bool:
        """Deliver a report message; overridden by port-connected automations"""
        logger.debug(f"[{self.platform}] report {message.get('type')}")
        return False

    def send_activity(self, message: str, activity_type: str = "action"):
        if self.activity_manager:
            self.activity_manager.send_activity_message(message, activity_type)
        else:
            logger.info(f"[{self.platform}] {message}")

    def update_progress(self, **updates):
        self.progress.update(updates)
        if self.on_progress:
            self.on_progress(dict(self.progress))
        self.send_report(
            make_message(MessageType.PROGRESS_UPDATE, {"progress": dict(self.progress)})
        )

    def report_error(self, error, context: Optional[Dict[str, Any]] = None):
        message = getattr(error, "message", None) or str(error)
        error_info = {
            "message": message,
            "context": context or {},
            "timestamp": int(time.time() * 1000),
            "sessionId": self.session_id,
            "platform": self.platform,
        }
        logger.error(f"[{self.platform}] {message} {context or ''}")
        if self.on_error:
            self.on_error(error_info)
        self.send_activity(f"Error: {message}", "result")

    def report_complete(self):
        self.is_running = False
        logger.info(f"[{self.platform}] Automation completed: {self.progress}")
        if self.on_complete:
            self.on_complete()
        if self.activity_manager:
            self.activity_manager.send_status_update(
                "completed", "Automation completed", dict(self.progress)
            )

    def report_application_submitted(
        self, job_data: Dict[str, Any], application_data: Optional[Dict[str, Any]] = None
    ):
        self.progress["completed"] += 1
        self.update_progress(current=None)
        if self.on_application_submitted:
            self.on_application_submitted(
                {
                    "jobData": job_data,
                    "applicationData": application_data or {},
                    "sessionId": self.session_id,
                    "platform": self.platform,
                }
            )

    # ------------------------------------------------------------------
    # DOM helpers
    # ------------------------------------------------------------------

    def wait_for_element(self, selector: str, timeout: int = 10000):
        """Wait for ``selector`` to be attached, returning its first locator"""
        try:
            self.page.wait_for_selector(selector, timeout=timeout, state="attached")
        except PlaywrightTimeoutError as e:
            raise ElementNotFoundException(
                f"Element not found: {selector}", selector, timeout
            ) from e
        return self.page.locator(selector).first

    def find_first(self, selectors: List[str], root=None):
        """First selector in the list that matches something, as a locator"""
        root = root if root is not None else self.page
        for selector in selectors:
            try:
                locator = root.locator(selector).first
                if locator.count() > 0:
                    return locator
            except Exception as e:
                logger.debug(f"Selector {selector} failed: {e}")
        return None

    def extract_text(self, selectors: List[str], root=None) -> str:
        element = self.find_first(selectors, root)
        if element is None:
            return ""
        try:
            return (element.inner_text() or "").strip()
        except Exception:
            return ""

    def is_visible(self, locator) -> bool:
        try:
            return locator is not None and locator.count() > 0 and locator.is_visible()
        except Exception:
            return False

    def click(self, locator):
        if self.browser_operator:
            self.browser_operator.click_with_op(locator)
        else:
            locator.click()

    def sleep(self, seconds: float):
        if seconds > 0:
            time.sleep(seconds)

    # ------------------------------------------------------------------
    # Generic form filling
    # ------------------------------------------------------------------

    def identify_field(self, label_text: str) -> Optional[str]:
        return identify_field(label_text)

    def parse_boolean_value(self, value: Any) -> Optional[bool]:
        return parse_boolean_value(value)

    def fill_form(self, form, profile: Dict[str, Any]) -> Dict[str, int]:
        """
        Fill every labelled control of ``form`` whose label maps to a profile key

        Returns:
            {"fieldsFound": n, "fieldsFilled": m}
        """
        fields_found = 0
        fields_filled = 0
        controls = form.locator("input, select, textarea")
        for i in range(controls.count()):
            control = controls.nth(i)
            label = get_element_label(control)
            key = self.identify_field(label)
            if not key:
                continue
            fields_found += 1
            value = get_profile_value(profile, key)
            if value is None:
                continue
            try:
                if self.fill_field(control, value):
                    fields_filled += 1
            except Exception as e:
                logger.debug(f"Could not fill {label}: {e}")
        return {"fieldsFound": fields_found, "fieldsFilled": fields_filled}

    def fill_field(self, element, value: Any) -> bool:
        """Set ``value`` on a form control according to its type"""
        info = describe_element(element)
        tag = info.get("tag")
        input_type = info.get("type")

        if tag == "select":
            options = get_select_options(element)
            texts = [option["text"] for option in options]
            values = [option["value"] for option in options]
            index = match_option(str(value), values)
            if index is None:
                index = match_option(str(value), texts)
            if index is None:
                return False
            element.select_option(value=values[index])
            return True

        if input_type in ("checkbox", "radio"):
            checked = self.parse_boolean_value(value)
            if checked is None:
                return False
            element.set_checked(checked, force=True)
            return True

        element.fill(str(value))
        return True

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def should_skip_job(self, url: str) -> bool:
        """True when the URL is already among the submitted links"""
        return any(
            urls_match(link.get("url") if isinstance(link, dict) else link, url)
            for link in self.submitted_links
        )

    def extract_job_data(self) -> JobRecord:
        url = self.page.url if self.page else ""
        return JobRecord(
            job_id=extract_job_id(url, self.platform),
            title=self.extract_text(TITLE_SELECTORS) or "Unknown Title",
            company=self.extract_text(COMPANY_SELECTORS) or "Unknown Company",
            location=self.extract_text(LOCATION_SELECTORS) or "Not specified",
            job_url=url,
            platform=self.platform,
            description=self.extract_text(DESCRIPTION_SELECTORS) or None,
        )

    @staticmethod
    def get_random_delay(min_ms: int, max_ms: int) -> int:
        return random.randint(min_ms, max_ms)
