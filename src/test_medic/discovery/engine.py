"""Element discovery - enumerate interactive elements and derive stable selectors."""

import re

import structlog

from ..actions.resolver import css_quote
from ..driver import Locator, Page
from ..models import DiscoveredElement, ElementType

logger = structlog.get_logger(__name__)

CSS_IDENTIFIER = re.compile(r"^-?[A-Za-z_][\w-]*$")


def derive_selector(
    element_type: ElementType,
    test_id: str | None,
    element_id: str | None,
    aria_label: str | None,
    text: str | None,
    class_name: str | None,
    test_id_attribute: str = "data-testid",
) -> str | None:
    """
    Pick the most stable selector for an element.

    Priority: test id, DOM id, aria-label, visible text (buttons only),
    first CSS class. Returns None when nothing usable exists.
    """
    if test_id:
        return f"[{test_id_attribute}={css_quote(test_id)}]"
    if element_id:
        if CSS_IDENTIFIER.match(element_id):
            return f"#{element_id}"
        return f"[id={css_quote(element_id)}]"
    if aria_label:
        return f"[aria-label={css_quote(aria_label)}]"
    if text and element_type is ElementType.BUTTON:
        return f"button:has-text({css_quote(text)})"
    if class_name and class_name.split():
        primary = class_name.split()[0]
        return "." + re.sub(r"([^\w-])", r"\\\1", primary)
    return None


class ElementDiscoveryEngine:
    """Scan a loaded page for buttons, inputs, selects and links."""

    BUTTONS = 'button, [role="button"]'
    INPUTS = 'input:not([type="hidden"])'
    SELECTS = "select"
    LINKS = "a[href]"

    def __init__(self, test_id_attribute: str = "data-testid"):
        self.test_id_attribute = test_id_attribute

    async def discover(self, page: Page) -> list[DiscoveredElement]:
        """
        Discover visible interactive elements on ``page``.

        Elements that are hidden, or for which no selector can be derived,
        are dropped. Partial discovery is expected; a single element that
        fails to probe never aborts the scan.
        """
        discovered: list[DiscoveredElement] = []

        for locator in await page.locator(self.BUTTONS).all():
            self._keep(discovered, await self._probe(page, locator, ElementType.BUTTON))

        for locator in await page.locator(self.INPUTS).all():
            self._keep(discovered, await self._probe(page, locator, None))

        for locator in await page.locator(self.SELECTS).all():
            self._keep(discovered, await self._probe(page, locator, ElementType.SELECT))

        for locator in await page.locator(self.LINKS).all():
            self._keep(discovered, await self._probe(page, locator, ElementType.LINK))

        logger.info(
            "elements_discovered",
            url=getattr(page, "url", None),
            total=len(discovered),
            by_type={t.value: sum(1 for e in discovered if e.type is t) for t in ElementType},
        )
        return discovered

    @staticmethod
    def _keep(discovered: list[DiscoveredElement], element: DiscoveredElement | None) -> None:
        if element is not None:
            discovered.append(element)

    async def _probe(
        self,
        page: Page,
        locator: Locator,
        element_type: ElementType | None,
    ) -> DiscoveredElement | None:
        try:
            return await self._analyze(page, locator, element_type)
        except Exception as e:
            logger.debug("element_probe_failed", locator=repr(locator), error=str(e))
            return None

    async def _analyze(
        self,
        page: Page,
        locator: Locator,
        element_type: ElementType | None,
    ) -> DiscoveredElement | None:
        """Extract selector and metadata for one element, or None to drop it."""
        if not await locator.is_visible():
            return None

        input_type = None
        if element_type is None:
            input_type = (await locator.get_attribute("type") or "text").lower()
            element_type = {"checkbox": ElementType.CHECKBOX, "radio": ElementType.RADIO}.get(
                input_type, ElementType.INPUT
            )

        test_id = await locator.get_attribute(self.test_id_attribute)
        aria_label = await locator.get_attribute("aria-label")
        element_id = await locator.get_attribute("id")
        class_name = await locator.get_attribute("class")
        text = (await locator.text_content() or "").strip() or None

        selector = derive_selector(
            element_type, test_id, element_id, aria_label, text, class_name, self.test_id_attribute
        )
        if not selector:
            return None

        label = aria_label
        if element_type is not ElementType.BUTTON and element_type is not ElementType.LINK and element_id:
            label_locator = page.locator(f"label[for={css_quote(element_id)}]").first
            if await label_locator.count() and await label_locator.is_visible():
                label = (await label_locator.text_content() or "").strip() or label

        return DiscoveredElement(
            selector=selector,
            type=element_type,
            text=text,
            label=label.strip() if label else None,
            test_id=test_id,
            aria_label=aria_label,
            input_type=input_type,
        )
