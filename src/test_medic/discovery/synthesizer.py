"""Test synthesizer - turn discovered elements into pytest source text."""

import re
from datetime import datetime
from pathlib import Path

import structlog

from ..models import DiscoveredElement, ElementType, GeneratedTest

logger = structlog.get_logger(__name__)

MAX_NAVIGATION_LINKS = 5

VIEWPORTS = [
    {"width": 375, "height": 667, "name": "Mobile"},
    {"width": 768, "height": 1024, "name": "Tablet"},
    {"width": 1920, "height": 1080, "name": "Desktop"},
]

MAIN_CONTENT = 'main, [role="main"], .main-content'

# Input types Playwright can fill with typed text
TEXT_INPUT_TYPES = {"text", "email", "password", "search", "tel", "url", "number"}

MODULE_HEADER = '''"""Generated tests for the {page_name} page.

Generated on: {generated_at}
"""

import pytest

from test_medic import with_self_healing

pytestmark = pytest.mark.asyncio
'''

TEST_PREAMBLE = """

async def test_{slug}_{suffix}(page):
    healing_page = with_self_healing(page)
"""

BUTTON_STEP = """
    # {description}
    await healing_page.click({selector}, fallback_selectors={fallbacks})
    await healing_page.wait_for_app_ready()
    assert not console_errors, f"Console errors after clicking {description}: {{console_errors}}"
"""

INPUT_STEP = """
    # {description}
    await healing_page.fill({selector}, {value}, fallback_selectors={fallbacks})
    assert await page.locator({selector}).first.input_value() == {value}
"""

SELECT_STEP = """
    # {description}
    select = page.locator({selector}).first
    if await select.locator("option").count() > 1:
        await select.select_option(index=1)
"""

LINK_STEP = """
    # Link: {description}
    href = await page.locator({selector}).first.get_attribute("href")
    if href and not href.startswith(("http://", "https://", "//")):
        await healing_page.click({selector})
        await healing_page.wait_for_app_ready()
        await page.go_back()
"""

ACCESSIBILITY_BODY = """    await healing_page.navigate({path})

    for button in await page.locator("button").all():
        text = (await button.text_content() or "").strip()
        aria_label = await button.get_attribute("aria-label")
        assert text or aria_label, "Button without an accessible name"

    for image in await page.locator("img").all():
        assert await image.get_attribute("alt"), "Image without alt text"

    for field in await page.locator('input:not([type="hidden"])').all():
        field_id = await field.get_attribute("id")
        aria_label = await field.get_attribute("aria-label")
        if field_id:
            has_label = await page.locator(f'label[for="{{field_id}}"]').count() > 0
            assert has_label or aria_label, f"Input #{{field_id}} has no label"
"""

RESPONSIVE_BODY = """    viewports = {viewports}

    for viewport in viewports:
        await page.set_viewport_size({{"width": viewport["width"], "height": viewport["height"]}})
        await healing_page.navigate({path})
        await healing_page.wait_for_app_ready()

        assert await page.locator({main}).first.is_visible(), f"Main content hidden on {{viewport['name']}}"

        await page.screenshot(path=f"{screenshot_dir}/{slug}-{{viewport['name']}}.png", full_page=True)
"""


def slugify(name: str) -> str:
    """Lowercase identifier-safe form of a page name."""
    return re.sub(r"\W+", "_", name.lower()).strip("_") or "page"


def fallback_selectors(element: DiscoveredElement) -> list[str]:
    """Alternative selectors for an element beyond its primary one."""
    fallbacks: list[str] = []
    if element.aria_label and "aria-label" not in element.selector:
        fallbacks.append(f'[aria-label="{element.aria_label}"]')
    if element.text and element.type is ElementType.BUTTON and "has-text" not in element.selector:
        fallbacks.append(f'button:has-text("{element.text}")')
    if element.type is ElementType.INPUT and element.label:
        fallbacks.append(f'input[placeholder*="{element.label}" i]')
    return fallbacks


def is_text_input(element: DiscoveredElement) -> bool:
    """True for inputs that accept typed text; submit, file and similar inputs are never filled."""
    return element.type is ElementType.INPUT and (element.input_type or "text") in TEXT_INPUT_TYPES


def sample_value(element: DiscoveredElement) -> str:
    """Placeholder value for a text input, guessed from its label or selector."""
    hint = f"{element.label or ''} {element.selector}".lower()
    if element.input_type == "email" or "email" in hint:
        return "test@example.com"
    if element.input_type == "number":
        return "1"
    if any(word in hint for word in ("qty", "quantity", "number", "amount", "price", "count")):
        return "1"
    return "test value"


class TestSynthesizer:
    """Generate interaction, form, navigation, accessibility and responsive tests."""

    __test__ = False

    def __init__(self, screenshot_dir: str = "test-results/screenshots"):
        self.screenshot_dir = screenshot_dir

    def synthesize(
        self,
        page_name: str,
        elements: list[DiscoveredElement],
        path: str | None = None,
    ) -> list[GeneratedTest]:
        """
        Generate tests for a page from its discovered elements.

        Args:
            page_name: Human name of the page, used for titles
            elements: Output of element discovery
            path: URL path to navigate to (defaults to ``/<page name>``)

        Returns:
            Generated tests as source text; the caller decides where they go
        """
        path = path or "/" + re.sub(r"\s+", "-", page_name.strip().lower())
        buttons = [e for e in elements if e.type is ElementType.BUTTON]
        form_fields = [e for e in elements if is_text_input(e) or e.type is ElementType.SELECT]
        links = [e for e in elements if e.type is ElementType.LINK]

        tests: list[GeneratedTest] = []
        if buttons:
            tests.append(self._button_test(page_name, path, buttons))
        if form_fields:
            tests.append(self._form_test(page_name, path, form_fields))
        if links:
            tests.append(self._navigation_test(page_name, path, links))
        tests.append(self._accessibility_test(page_name, path))
        tests.append(self._responsive_test(page_name, path))

        logger.info("tests_synthesized", page=page_name, tests=len(tests), elements=len(elements))
        return tests

    def _preamble(self, page_name: str, suffix: str) -> str:
        return TEST_PREAMBLE.format(slug=slugify(page_name), suffix=suffix)

    def _button_test(self, page_name: str, path: str, buttons: list[DiscoveredElement]) -> GeneratedTest:
        steps = "".join(
            BUTTON_STEP.format(
                description=_comment(b.text or b.aria_label or "button"),
                selector=repr(b.selector),
                fallbacks=repr(fallback_selectors(b)),
            )
            for b in buttons
        )
        code = (
            self._preamble(page_name, "button_interactions")
            + "    console_errors = []\n"
            + '    page.on("console", lambda msg: console_errors.append(msg.text) if msg.type == "error" else None)\n'
            + f"    await healing_page.navigate({path!r})\n"
            + steps
        )
        return GeneratedTest(name=f"{page_name} button interactions", code=code, elements=buttons)

    def _form_test(self, page_name: str, path: str, fields: list[DiscoveredElement]) -> GeneratedTest:
        steps = []
        for field in fields:
            if field.type is ElementType.INPUT:
                steps.append(
                    INPUT_STEP.format(
                        description=_comment(field.label or "input"),
                        selector=repr(field.selector),
                        value=repr(sample_value(field)),
                        fallbacks=repr(fallback_selectors(field)),
                    )
                )
            else:
                steps.append(
                    SELECT_STEP.format(description=_comment(field.label or "select"), selector=repr(field.selector))
                )
        code = self._preamble(page_name, "form_interactions") + f"    await healing_page.navigate({path!r})\n" + "".join(steps)
        return GeneratedTest(name=f"{page_name} form interactions", code=code, elements=fields)

    def _navigation_test(self, page_name: str, path: str, links: list[DiscoveredElement]) -> GeneratedTest:
        followed = links[:MAX_NAVIGATION_LINKS]
        steps = "".join(
            LINK_STEP.format(description=_comment(link.text or link.aria_label or "link"), selector=repr(link.selector))
            for link in followed
        )
        code = self._preamble(page_name, "navigation_links") + f"    await healing_page.navigate({path!r})\n" + steps
        return GeneratedTest(name=f"{page_name} navigation links", code=code, elements=followed)

    def _accessibility_test(self, page_name: str, path: str) -> GeneratedTest:
        code = self._preamble(page_name, "accessibility") + ACCESSIBILITY_BODY.format(path=repr(path))
        return GeneratedTest(name=f"{page_name} accessibility", code=code)

    def _responsive_test(self, page_name: str, path: str) -> GeneratedTest:
        code = self._preamble(page_name, "responsive_design") + RESPONSIVE_BODY.format(
            viewports=repr(VIEWPORTS),
            path=repr(path),
            main=repr(MAIN_CONTENT),
            screenshot_dir=self.screenshot_dir,
            slug=slugify(page_name),
        )
        return GeneratedTest(name=f"{page_name} responsive design", code=code)


def _comment(text: str) -> str:
    """Single-line text safe to embed in a comment or f-string literal."""
    return re.sub(r"[\s{}\"\\]+", " ", text).strip()


def render_module(page_name: str, tests: list[GeneratedTest]) -> str:
    """Join generated tests into one importable test module."""
    header = MODULE_HEADER.format(page_name=_comment(page_name), generated_at=datetime.now().isoformat(timespec="seconds"))
    return header + "".join(t.code for t in tests)


def write_tests(page_name: str, tests: list[GeneratedTest], output_dir: Path) -> Path:
    """Write generated tests to ``<output_dir>/test_<page>_generated.py``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"test_{slugify(page_name)}_generated.py"
    path.write_text(render_module(page_name, tests), encoding="utf-8")
    logger.info("generated_tests_written", path=str(path), tests=len(tests))
    return path
