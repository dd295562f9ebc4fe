"""
Centralized automation library resolver for Playwright.

Usage:
  from browser.automation import Browser, BrowserContext, Page, sync_playwright

Platform automations and form handlers import the Playwright types from
here rather than from playwright directly.
"""

from __future__ import annotations

import importlib

_LIB_NAME = "playwright"

_sync_api = importlib.import_module(f"{_LIB_NAME}.sync_api")

# Re-export common types/APIs
Browser = getattr(_sync_api, "Browser")
BrowserContext = getattr(_sync_api, "BrowserContext")
Page = getattr(_sync_api, "Page")
Locator = getattr(_sync_api, "Locator")
sync_playwright = getattr(_sync_api, "sync_playwright")
PlaywrightTimeoutError = getattr(_sync_api, "TimeoutError")
