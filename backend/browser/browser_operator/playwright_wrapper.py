"""
Playwright Wrapper - paced, pausable DOM operations
Every click, fill, select and upload made by a platform automation or a
form handler goes through op(), whichever tab it targets
"""

import logging
import random
import time
import traceback
from typing import Any, Callable, Optional

from browser.automation import Page  # noqa: E402
from config import BROWSER_AVG_DELAY

logger = logging.getLogger(__name__)

# Markers of an interstitial verification page (Cloudflare, hCaptcha, job-board walls)
VERIFICATION_SELECTORS = [
    "iframe[src*='challenges.cloudflare.com']",
    "iframe[src*='hcaptcha.com']",
    "#challenge-running",
]
VERIFICATION_TEXTS = [
    "Help Us Protect Glassdoor",
    "Verify you are human",
    "Additional Verification Required",
]


class PlaywrightWrapper:
    """
    Speed control and pause/resume around Playwright calls

    Pausing blocks the bot thread inside op() until resume() is called from
    another thread, so nothing on the page moves while the user looks at it.
    """

    def __init__(
        self,
        avg_delay: float = BROWSER_AVG_DELAY,
        std_delay: float = 0.5,
        debug_mode: bool = False,
    ):
        self.pause_op = False
        self.avg_delay = 0 if debug_mode else avg_delay
        self.std_delay = std_delay
        self.debug_mode = debug_mode
        self.last_op_time = 0.0
        self.page: Optional[Page] = None
        self.verification_required = False

    def op(self, fn: Callable, ignore_exception: bool = False, page: Optional[Page] = None, **kwargs) -> Any:
        """
        Run ``fn(**kwargs)`` once the browser is available and not paused

        ``page`` is the tab the operation touches; it is checked for a
        verification wall afterwards. Defaults to the main tab.
        """
        target = page or self.page
        try:
            self._sleep_if_operating_fast()
            while self.pause_op:
                time.sleep(1)
            if not self.is_page_open(target):
                raise Exception("Browser tab is closed or unavailable")

            result = fn(**kwargs)
            self.last_op_time = time.time()

            if self.detect_verification_challenge(target):
                raise Exception("Blocked by additional verification challenge")
            return result

        except Exception as e:
            if ignore_exception:
                return None
            logger.error(f"Playwright Wrapper Error: {e}")
            logger.debug(traceback.format_exc())
            raise

    def click_with_op(self, locator, **click_kwargs) -> None:
        logger.debug(f"Clicking element: {locator}")
        return self.op(lambda: locator.click(**click_kwargs), page=locator.page)

    def fill_with_op(self, locator, value: str, **fill_kwargs) -> None:
        logger.debug(f"Filling '{value[:50]}' into {locator}")
        return self.op(lambda: locator.fill(value, **fill_kwargs), page=locator.page)

    def select_option_with_op(self, locator, **select_kwargs) -> None:
        logger.debug(f"Selecting option in {locator}")
        return self.op(lambda: locator.select_option(**select_kwargs), page=locator.page)

    def set_checked_with_op(self, locator, checked: bool, **kwargs) -> None:
        logger.debug(f"Setting checked={checked} on {locator}")
        return self.op(lambda: locator.set_checked(checked, **kwargs), page=locator.page)

    def _sleep_if_operating_fast(self):
        if self.debug_mode:
            return
        min_interval = max(0, random.normalvariate(self.avg_delay, self.std_delay))
        sleep_time = self.last_op_time + min_interval - time.time()
        if sleep_time > 0:
            time.sleep(sleep_time)

    def pause(self):
        logger.info("Pausing browser operations")
        self.pause_op = True

    def resume(self):
        logger.info("Resuming browser operations")
        self.pause_op = False

    def is_paused(self) -> bool:
        return self.pause_op

    def set_page(self, page: Page):
        """Set the main tab"""
        self.page = page

    @staticmethod
    def is_page_open(page: Optional[Page]) -> bool:
        if page is None:
            return False
        try:
            return not page.is_closed()
        except Exception as e:
            logger.debug(f"Error checking page status: {e}")
            return False

    def detect_verification_challenge(self, page: Optional[Page]) -> bool:
        """True when ``page`` shows a human-verification wall"""
        if not self.is_page_open(page):
            return False
        try:
            detected = any(page.locator(selector).count() > 0 for selector in VERIFICATION_SELECTORS)
            if not detected:
                body = page.locator("body").first
                if body.count() > 0:
                    text = body.inner_text(timeout=2000)[:3000]
                    detected = any(marker in text for marker in VERIFICATION_TEXTS)
        except Exception as e:
            logger.debug(f"Error detecting verification challenge: {e}")
            return False

        if detected and not self.verification_required:
            logger.warning("Verification challenge detected; complete it in the automation window")
            self.verification_required = True
        return detected
