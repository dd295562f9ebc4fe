"""
Tests for tab bookkeeping in the browser operator
"""

import os
import sys
from unittest.mock import Mock, patch

import pytest

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from browser.browser_operator import BrowserOperator


@pytest.fixture
def page():
    """A fresh, open tab"""
    page = Mock()
    page.is_closed.return_value = False
    return page


@pytest.fixture
def operator(page):
    """Operator with a mocked window that hands out ``page``"""
    operator = BrowserOperator(debug_mode=True)
    operator.context = Mock()
    operator.context.new_page.return_value = page
    operator.set_page(Mock())
    return operator


class TestOpenTab:
    """Tests for BrowserOperator.open_tab"""

    def test_open_tab_registers_page(self, operator, page):
        """Should navigate the new tab and register it"""
        with patch.object(operator, "detect_verification_challenge", return_value=False):
            tab_id, opened = operator.open_tab("https://jobs.lever.co/acme/1/apply")

        assert opened is page
        assert operator.tabs[tab_id] is page
        assert operator.get_tab_id(page) == tab_id
        page.goto.assert_called_once()

    def test_failed_navigation_closes_tab(self, operator, page):
        """Should close and forget the tab when navigation fails"""
        page.goto.side_effect = Exception("Timeout 60000ms exceeded")

        with pytest.raises(Exception, match="Timeout"):
            operator.open_tab("https://www.indeed.com/viewjob?jk=a1")

        page.close.assert_called_once()
        assert operator.tabs == {}

    def test_verification_wall_closes_tab(self, operator, page):
        """Should close the tab when it lands on a verification wall"""
        with patch.object(operator, "detect_verification_challenge", return_value=True):
            with pytest.raises(Exception, match="verification"):
                operator.open_tab("https://www.glassdoor.com/job-listing/x")

        page.close.assert_called_once()
        assert operator.tabs == {}


class TestCloseTab:
    """Tests for BrowserOperator.close_tab"""

    def test_main_tab_is_never_closed(self, operator):
        """Should refuse to close the search tab"""
        tab_id = operator._register_tab(operator.page)

        assert operator.close_tab(tab_id) is False
        assert operator.tabs[tab_id] is operator.page

    def test_unknown_tab(self, operator):
        """Should return False for unknown tab ids"""
        assert operator.close_tab(99) is False
