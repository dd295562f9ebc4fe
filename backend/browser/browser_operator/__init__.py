"""
Browser Operator - sync browser automation for AutoApply
Owns the Playwright browser, the automation window (a browser context)
and the tabs (pages) opened inside it.
"""

import itertools
import logging
import os
import time
from typing import Dict, Optional, Tuple

from browser.automation import Browser, BrowserContext, Page, sync_playwright
from browser.browser_operator.playwright_wrapper import PlaywrightWrapper

logger = logging.getLogger(__name__)

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.chrome = window.chrome || { runtime: {} };
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
"""

_window_ids = itertools.count(1)


class BrowserOperator(PlaywrightWrapper):
    """
    Sync browser operator using Playwright's bundled Chromium, or an already
    running Chrome when AUTOAPPLY_CDP_URL is set.

    The context is the automation window; every page in it is a tab with a
    small integer id so ports and the background handler can refer to it.
    """

    def __init__(self, headless: bool = False, **wrapper_kwargs):
        super().__init__(**wrapper_kwargs)

        self.headless = headless
        self.playwright = None
        self.browser: Browser = None
        self.context: BrowserContext = None
        self.cdp_url = os.environ.get("AUTOAPPLY_CDP_URL", "").strip()
        self.window_id: Optional[int] = None
        self.tabs: Dict[int, Page] = {}
        self._tab_ids = itertools.count(1)

    def start(self) -> Page:
        """Start the browser and open the automation window with one tab"""
        self.playwright = sync_playwright().start()

        if self.cdp_url:
            logger.info(f"Starting Browser Operator via CDP at {self.cdp_url}")
            try:
                self.browser = self.playwright.chromium.connect_over_cdp(self.cdp_url)
            except Exception as e:
                logger.error(f"Failed to start browser via CDP: {e}")
                self.playwright.stop()
                self.playwright = None
                raise RuntimeError(
                    f"Failed to connect to Chrome at {self.cdp_url}: {e}. "
                    "Unset AUTOAPPLY_CDP_URL to use bundled Chromium instead."
                ) from e
            self.context = (
                self.browser.contexts[0]
                if self.browser.contexts
                else self.browser.new_context()
            )
        else:
            logger.info("Starting Browser Operator with bundled Chromium")
            self.browser = self.playwright.chromium.launch(headless=self.headless)
            self.context = self.browser.new_context(
                viewport={"width": 1200, "height": 800}
            )
            self.context.add_init_script(STEALTH_SCRIPT)

        self.window_id = next(_window_ids)
        self.context.on("page", self._on_new_page)

        page = self.context.pages[0] if self.context.pages else self.context.new_page()
        self._register_tab(page)

        self.set_page(page)
        logger.info(f"Browser Operator ready (window {self.window_id})")
        return page

    def _register_tab(self, page: Page) -> int:
        for tab_id, existing in self.tabs.items():
            if existing is page:
                return tab_id
        tab_id = next(self._tab_ids)
        self.tabs[tab_id] = page
        page.on("close", lambda _page, tab_id=tab_id: self.tabs.pop(tab_id, None))
        return tab_id

    def _on_new_page(self, page: Page):
        # popups opened by job boards ("apply on company site") become tabs too
        tab_id = self._register_tab(page)
        logger.debug(f"New tab {tab_id} opened in window {self.window_id}")

    def get_tab_id(self, page: Page) -> Optional[int]:
        for tab_id, existing in self.tabs.items():
            if existing is page:
                return tab_id
        return None

    def open_tab(self, url: str, timeout: int = 60000) -> Tuple[int, Page]:
        """Open a new tab in the automation window and navigate it"""
        if not self.context:
            raise Exception("Browser not started. Call start() first.")

        page = self.context.new_page()
        tab_id = self._register_tab(page)
        logger.info(f"Opening tab {tab_id}: {url}")

        def goto_fn():
            return page.goto(url, timeout=timeout, wait_until="domcontentloaded")

        try:
            self.op(goto_fn, page=page)
        except Exception:
            self.close_tab(tab_id)
            raise
        return tab_id, page

    def close_tab(self, tab_id: int) -> bool:
        page = self.tabs.pop(tab_id, None)
        if page is None:
            return False
        if page is self.page:
            logger.warning(f"Refusing to close main tab {tab_id}")
            self.tabs[tab_id] = page
            return False
        try:
            if not page.is_closed():
                page.close()
            logger.info(f"Closed tab {tab_id}")
            return True
        except Exception as e:
            logger.debug(f"Could not close tab {tab_id}: {e}")
            return False

    def navigate_to(
        self, url: str, page: Page = None, timeout: int = 60000, retries: int = 2
    ):
        """Navigate a tab (main tab by default) to a URL with retry logic"""
        page = page or self.page
        if not page:
            raise Exception("Browser not started. Call start() first.")

        retry_count = 0
        while retry_count <= retries:
            try:
                logger.info(
                    f"Navigating to {url} (attempt {retry_count + 1}/{retries + 1})"
                )

                def goto_fn():
                    return page.goto(url, timeout=timeout, wait_until="domcontentloaded")

                self.op(goto_fn, page=page)

                logger.info(f"Navigation complete: {page.url}")
                return page.url

            except Exception as e:
                if not self.page or self.is_operations_paused():
                    logger.info(
                        "Browser closed or operations paused, stopping navigation retries"
                    )
                    raise

                if retry_count < retries:
                    logger.warning(f"Navigation failed, retrying... ({str(e)})")
                    retry_count += 1
                    time.sleep(3)
                else:
                    raise

        return page.url

    def close(self):
        """Close the browser operator gracefully"""
        logger.info("Closing Browser Operator gracefully")

        try:
            if self.context and not self.cdp_url:
                try:
                    self.context.close()
                    logger.debug("Context closed gracefully")
                except Exception as e:
                    logger.debug(f"Could not close context gracefully: {e}")

            if self.browser:
                try:
                    self.browser.close()
                    logger.debug("Browser closed gracefully")
                except Exception as e:
                    logger.debug(f"Could not close browser gracefully: {e}")

            if self.playwright:
                try:
                    self.playwright.stop()
                    logger.debug("Playwright stopped gracefully")
                except Exception as e:
                    logger.debug(f"Could not stop playwright gracefully: {e}")

        finally:
            # Reset references regardless of errors
            self.page = None
            self.context = None
            self.browser = None
            self.playwright = None
            self.tabs = {}

        logger.info("Browser Operator closed gracefully")

    def is_ready(self):
        return self.page is not None

    def pause_operations(self):
        """Block the bot thread at its next browser operation"""
        self.pause()

    def resume_operations(self):
        self.resume()

    def is_operations_paused(self) -> bool:
        return self.is_paused()
