"""Selector resolver - turn an ordered list of strategies into a live element."""

from collections.abc import Sequence

import structlog

from ..driver import Locator, Page
from ..errors import ElementNotFoundError
from ..models import SelectorKind, SelectorStrategy

logger = structlog.get_logger(__name__)


def css_quote(value: str) -> str:
    """Quote a value for use inside a CSS attribute selector."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def strategies_for(
    primary: str | Sequence[SelectorStrategy],
    fallback_selectors: Sequence[str] | None = None,
    text: str | None = None,
    role: str | None = None,
) -> list[SelectorStrategy]:
    """Build the strategy list for a target: primary, CSS fallbacks, text, role."""
    if isinstance(primary, str):
        strategies = [SelectorStrategy.css(primary)]
    else:
        strategies = list(primary)

    strategies.extend(SelectorStrategy.css(s) for s in fallback_selectors or ())
    if text:
        strategies.append(SelectorStrategy(SelectorKind.TEXT, text))
    if role:
        strategies.append(SelectorStrategy(SelectorKind.ROLE, role))
    return strategies


class SelectorResolver:
    """Resolve a logical target to the first visible element, trying strategies in order."""

    def __init__(self, page: Page, test_id_attribute: str = "data-testid"):
        self.page = page
        self.test_id_attribute = test_id_attribute

    def locate(self, strategy: SelectorStrategy) -> Locator:
        """Build the (unresolved) locator for one strategy."""
        kind, value = strategy.kind, strategy.value
        if kind is SelectorKind.TESTID:
            return self.page.locator(f"[{self.test_id_attribute}={css_quote(value)}]")
        if kind is SelectorKind.ARIA_LABEL:
            return self.page.locator(f"[aria-label={css_quote(value)}]")
        if kind is SelectorKind.TEXT:
            return self.page.get_by_text(value, exact=True)
        if kind is SelectorKind.ROLE:
            return self.page.get_by_role(value)
        return self.page.locator(value)

    async def resolve(
        self,
        strategies: Sequence[SelectorStrategy],
        timeout_ms: float = 5000,
    ) -> Locator:
        """
        Return the first strategy's element that becomes visible.

        Each strategy gets an equal slice of ``timeout_ms`` so a failing early
        strategy cannot consume the whole budget.

        Raises:
            ElementNotFoundError: every strategy was exhausted.
        """
        strategies = list(strategies)
        if not strategies:
            raise ElementNotFoundError(strategies, timeout_ms)

        slice_ms = timeout_ms / len(strategies)
        attempted: list[SelectorStrategy] = []

        for strategy in strategies:
            attempted.append(strategy)
            locator = self.locate(strategy).first
            try:
                await locator.wait_for(state="visible", timeout=slice_ms)
            except Exception as e:
                logger.debug("strategy_failed", strategy=str(strategy), error=str(e))
                continue

            if len(attempted) > 1:
                logger.info("selector_healed", strategy=str(strategy), attempts=len(attempted))
            return locator

        raise ElementNotFoundError(attempted, timeout_ms)
