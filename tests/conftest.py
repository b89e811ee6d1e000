"""Shared fixtures for Test Medic tests."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from test_medic.analyzer.html_parser import SnapshotPage

pytest_plugins = ["pytester"]

FIXTURES = Path(__file__).parent / "fixtures"


LOGIN_HTML = """
<html>
<body>
    <form id="login-form">
        <label for="email">Email</label>
        <input id="email" data-testid="email-input" type="email" name="email" placeholder="Email address">
        <input data-testid="password-input" type="password" name="password">
        <input type="hidden" name="csrf" value="token">
        <button data-testid="submit" type="submit">Sign In</button>
        <button id="cancel" disabled>Cancel</button>
    </form>
    <a data-testid="forgot-password-link" href="/forgot">Forgot Password?</a>
    <div class="spinner" style="display: none">Loading</div>
</body>
</html>
"""


class CountingPage:
    """Wrap a page and count every locator request per selector."""

    def __init__(self, page):
        self._page = page
        self.requests: list[str] = []

    def __getattr__(self, name):
        return getattr(self._page, name)

    def locator(self, selector):
        self.requests.append(selector)
        return self._page.locator(selector)

    def get_by_text(self, text, *, exact=False):
        self.requests.append(f"text={text}")
        return self._page.get_by_text(text, exact=exact)


@pytest.fixture
def counting_page():
    """Wrap a page so locator requests can be counted."""
    return CountingPage


@pytest.fixture
def login_page():
    """Snapshot of a login form."""
    return SnapshotPage(LOGIN_HTML, url="http://localhost:3000/login")


@pytest.fixture
def snapshot():
    """Build a snapshot page from an HTML string."""

    def build(html: str, url: str = "http://localhost:3000/"):
        return SnapshotPage(html, url=url)

    return build


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def fixture_source():
    """Read a sample test source from tests/fixtures."""

    def read(name: str) -> str:
        return (FIXTURES / name).read_text(encoding="utf-8")

    return read
