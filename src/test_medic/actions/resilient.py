"""Resilient page actions: retrying, self-healing wrappers around driver primitives."""

import asyncio
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    wait_incrementing,
)

from ..config import ActionsConfig
from ..driver import Page
from ..errors import ActionFailedError, TestMedicError, TextMismatchError, WaitTimeoutError
from ..models import SelectorStrategy
from .resolver import SelectorResolver, css_quote, strategies_for

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Target = str | Sequence[SelectorStrategy]

# Any element matching one of these means the page is still busy
LOADING_INDICATORS = [
    '[class*="loading"]',
    '[class*="skeleton"]',
    '[class*="spinner"]',
    '[aria-busy="true"]',
    ".loading",
    ".spinner",
]

APP_LOADING_SELECTORS = [
    ".loading",
    ".spinner",
    ".animate-spin",
    '[data-loading="true"]',
    ".skeleton",
]

NO_LOADING_INDICATORS_JS = "(indicators) => !indicators.some((selector) => document.querySelector(selector))"


class ElementDisabledError(TestMedicError):
    """Element resolved but is not enabled yet."""


class FillMismatchError(TestMedicError):
    """Field value read back differs from the value typed."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Field value mismatch: expected {expected!r}, read back {actual!r}")


@dataclass
class FormField:
    """One field for :meth:`ResilientActions.fill_form`."""

    selector: str
    value: str
    type: Literal["text", "select", "checkbox", "radio"] = "text"
    label: str | None = None
    placeholder: str | None = None


def _describe(target: Target) -> str:
    if isinstance(target, str):
        return target
    return " | ".join(str(s) for s in target)


def _normalize(text: str | None) -> str:
    return " ".join((text or "").split())


def text_matches(actual: str | None, expected: str | re.Pattern[str], exact: bool = True) -> bool:
    """Exact (whitespace-normalised) equality for literal expectations, containment otherwise."""
    if isinstance(expected, re.Pattern):
        return expected.search(actual or "") is not None
    if exact:
        return _normalize(actual) == _normalize(expected)
    return expected in (actual or "")


def _action_timeout(timeout_ms: float | None, timeout: float | None, default: float) -> float:
    if timeout_ms is not None:
        return timeout_ms
    return default if timeout is None else timeout


class ResilientActions:
    """
    Self-healing wrapper around a page.

    Every interaction resolves its target through :class:`SelectorResolver`
    and retries locally before giving up. Attributes that are not wrapped
    here are forwarded to the underlying page, so a test can swap ``page``
    for the wrapper without other changes.
    """

    def __init__(
        self,
        page: Page,
        config: ActionsConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.page = page
        self.config = config or ActionsConfig()
        self.resolver = SelectorResolver(page, self.config.test_id_attribute)
        self._sleep = sleep

    def __getattr__(self, name: str) -> Any:
        if name == "page":
            raise AttributeError(name)
        return getattr(self.page, name)

    def _stop(self, retries: int, deadline_ms: float | None):
        stop = stop_after_attempt(max(1, retries))
        if deadline_ms is not None:
            stop = stop | stop_after_delay(deadline_ms / 1000)
        return stop

    async def click(
        self,
        target: Target,
        *,
        fallback_selectors: Sequence[str] | None = None,
        text: str | None = None,
        role: str | None = None,
        retries: int | None = None,
        delay_ms: float | None = None,
        timeout_ms: float | None = None,
        deadline_ms: float | None = None,
        timeout: float | None = None,
        **options: Any,
    ) -> None:
        """
        Click the first visible match for ``target``.

        A disabled element is re-checked after ``delay_ms``; any other failure
        backs off linearly (``delay_ms * attempt``).

        Playwright's own ``timeout`` is accepted in place of ``timeout_ms`` and
        any other Playwright click options (``force``, ``position``, ...) are
        passed to the element, so a test can switch from ``page`` to the
        wrapper without changing its calls. ``force`` skips the enabled check.

        Raises:
            ActionFailedError: retries exhausted; chained to the last error.
        """
        retries = self.config.retries if retries is None else retries
        delay_ms = self.config.click_delay_ms if delay_ms is None else delay_ms
        timeout_ms = _action_timeout(timeout_ms, timeout, self.config.action_timeout_ms)
        strategies = strategies_for(target, fallback_selectors, text, role)
        state = {"element": "not found"}

        def backoff(retry_state: RetryCallState) -> float:
            if isinstance(retry_state.outcome.exception(), ElementDisabledError):
                return delay_ms / 1000
            return delay_ms * retry_state.attempt_number / 1000

        try:
            async for attempt in AsyncRetrying(
                stop=self._stop(retries, deadline_ms),
                wait=backoff,
                sleep=self._sleep,
            ):
                with attempt:
                    state["element"] = "not found"
                    element = await self.resolver.resolve(strategies, timeout_ms)
                    state["element"] = "visible"
                    await element.scroll_into_view_if_needed(timeout=timeout_ms)
                    if not options.get("force") and not await element.is_enabled():
                        state["element"] = "disabled"
                        raise ElementDisabledError(f"{_describe(target)} is disabled")
                    state["element"] = "enabled"
                    await element.click(timeout=timeout_ms, **options)
        except RetryError as e:
            last = e.last_attempt
            cause = last.exception()
            logger.warning("click_failed", target=_describe(target), attempts=last.attempt_number, state=state["element"])
            raise ActionFailedError(
                "click", _describe(target), last.attempt_number, strategies, state["element"], cause
            ) from cause

    async def fill(
        self,
        target: Target,
        value: str,
        *,
        fallback_selectors: Sequence[str] | None = None,
        label: str | None = None,
        placeholder: str | None = None,
        retries: int | None = None,
        delay_ms: float | None = None,
        timeout_ms: float | None = None,
        deadline_ms: float | None = None,
        timeout: float | None = None,
        **options: Any,
    ) -> None:
        """
        Fill a field and verify it by reading the value back.

        Success requires exact equality between ``value`` and the read-back
        value; a mismatch counts as a failed attempt. Playwright's ``timeout``
        and fill options are accepted as for :meth:`click`.

        Raises:
            ActionFailedError: retries exhausted; chained to the last error.
        """
        retries = self.config.retries if retries is None else retries
        delay_ms = self.config.fill_delay_ms if delay_ms is None else delay_ms
        timeout_ms = _action_timeout(timeout_ms, timeout, self.config.action_timeout_ms)

        fallbacks = list(fallback_selectors or [])
        if placeholder:
            fallbacks.append(f"input[placeholder*={css_quote(placeholder)}]")
        if label:
            fallbacks.append(f"input[aria-label*={css_quote(label)}]")
        strategies = strategies_for(target, fallbacks)
        state = {"element": "not found"}

        try:
            async for attempt in AsyncRetrying(
                stop=self._stop(retries, deadline_ms),
                wait=wait_incrementing(start=delay_ms / 1000, increment=delay_ms / 1000),
                sleep=self._sleep,
            ):
                with attempt:
                    state["element"] = "not found"
                    element = await self.resolver.resolve(strategies, timeout_ms)
                    state["element"] = "visible"
                    await element.click(timeout=timeout_ms)
                    await element.clear(timeout=timeout_ms)
                    await element.fill(value, timeout=timeout_ms, **options)
                    actual = await element.input_value(timeout=timeout_ms)
                    if actual != value:
                        state["element"] = f"value {actual!r}"
                        raise FillMismatchError(value, actual)
        except RetryError as e:
            last = e.last_attempt
            cause = last.exception()
            logger.warning("fill_failed", target=_describe(target), attempts=last.attempt_number, state=state["element"])
            raise ActionFailedError(
                "fill", _describe(target), last.attempt_number, strategies, state["element"], cause
            ) from cause

    async def wait_for_element(
        self,
        selector: str,
        *,
        state: Literal["attached", "detached", "visible", "hidden"] = "visible",
        timeout_ms: float | None = None,
        fallback_selectors: Sequence[str] | None = None,
    ) -> Any:
        """
        Wait for ``selector`` (or a fallback) to reach ``state``.

        Budget split: half on the primary selector, a short network-idle
        probe, a quarter per fallback, then the primary again with whatever
        remains.

        Raises:
            WaitTimeoutError: nothing reached the state in time.
        """
        timeout_ms = self.config.wait_timeout_ms if timeout_ms is None else timeout_ms
        started = time.monotonic()
        last_error: Exception | None = None

        try:
            return await self.page.wait_for_selector(selector, state=state, timeout=timeout_ms / 2)
        except Exception as e:
            last_error = e
            logger.debug("primary_wait_failed", selector=selector, error=str(e))

        try:
            await self.page.wait_for_load_state("networkidle", timeout=min(2000, timeout_ms / 4))
        except Exception as e:
            logger.debug("network_idle_not_reached", error=str(e))

        for fallback in fallback_selectors or ():
            try:
                result = await self.page.wait_for_selector(fallback, state=state, timeout=timeout_ms / 4)
                logger.info("wait_healed", selector=selector, fallback=fallback)
                return result
            except Exception as e:
                last_error = e

        remaining = timeout_ms - (time.monotonic() - started) * 1000
        if remaining > 0:
            try:
                return await self.page.wait_for_selector(selector, state=state, timeout=remaining)
            except Exception as e:
                last_error = e

        raise WaitTimeoutError(f"{selector!r} to be {state}", timeout_ms) from last_error

    async def wait_for_loading_complete(self, *, timeout_ms: float | None = None) -> None:
        """Return as soon as loading indicators are gone or the network is idle."""
        timeout_ms = self.config.wait_timeout_ms if timeout_ms is None else timeout_ms
        pending = {
            asyncio.ensure_future(
                self.page.wait_for_function(NO_LOADING_INDICATORS_JS, arg=LOADING_INDICATORS, timeout=timeout_ms)
            ),
            asyncio.ensure_future(self.page.wait_for_load_state("networkidle", timeout=timeout_ms / 2)),
        }
        errors: list[BaseException] = []
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    error = task.exception()
                    if error is None:
                        return
                    errors.append(error)
        finally:
            for task in pending:
                task.cancel()

        raise WaitTimeoutError("loading indicators to clear or network idle", timeout_ms) from errors[-1]

    async def expect_text(
        self,
        target: str,
        expected: str | re.Pattern[str],
        *,
        exact: bool = True,
        timeout_ms: float | None = None,
        fallback_selectors: Sequence[str] | None = None,
        poll_ms: float = 100,
    ) -> None:
        """
        Assert that ``target`` (or a fallback) shows ``expected``.

        Raises:
            TextMismatchError: no candidate matched within its share of the budget.
        """
        timeout_ms = self.config.action_timeout_ms if timeout_ms is None else timeout_ms
        selectors = [target, *(fallback_selectors or ())]
        slice_ms = timeout_ms / len(selectors)
        polls = max(1, int(slice_ms // poll_ms))
        received: str | None = None

        for selector in selectors:
            locator = self.page.locator(selector).first
            for _ in range(polls):
                try:
                    received = await locator.text_content(timeout=slice_ms)
                except Exception as e:
                    logger.debug("text_probe_failed", selector=selector, error=str(e))
                    break
                if text_matches(received, expected, exact):
                    return
                await self._sleep(poll_ms / 1000)

        pattern = expected.pattern if isinstance(expected, re.Pattern) else expected
        raise TextMismatchError(pattern, selectors, received)

    async def retry_action(
        self,
        action: Callable[[], Awaitable[T]],
        *,
        retries: int = 3,
        delay_ms: float = 1000,
        multiplier: float = 2,
    ) -> T:
        """Run ``action`` with exponential backoff, re-raising the final error."""
        result: T
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, retries)),
            wait=wait_exponential(multiplier=delay_ms / 1000, exp_base=multiplier),
            sleep=self._sleep,
            reraise=True,
        ):
            with attempt:
                result = await action()
        return result

    async def wait_for_app_ready(self) -> None:
        """Wait for common loading indicators to disappear and the network to settle."""
        for selector in APP_LOADING_SELECTORS:
            try:
                await self.page.wait_for_selector(selector, state="hidden", timeout=2000)
            except Exception as e:
                logger.debug("loading_indicator_still_visible", selector=selector, error=str(e))

        try:
            await self.page.wait_for_load_state("networkidle", timeout=5000)
        except Exception as e:
            logger.debug("network_idle_not_reached", error=str(e))

        # Small settle time for client-side renders
        await self.page.wait_for_timeout(300)

    async def navigate(
        self,
        url: str,
        *,
        wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "networkidle",
        retries: int = 3,
        timeout_ms: float = 30000,
    ) -> None:
        """Navigate and wait for the app to be ready, retrying with backoff."""

        async def go() -> None:
            await self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)
            await self.wait_for_app_ready()

        await self.retry_action(go, retries=retries)

    async def fill_form(self, fields: Sequence[FormField]) -> None:
        """Fill a form field by field, honouring each field's type."""
        for field in fields:
            if field.type == "text":
                await self.fill(field.selector, field.value, label=field.label, placeholder=field.placeholder)
            elif field.type == "select":
                try:
                    await self.page.locator(field.selector).first.select_option(field.value)
                except Exception as e:
                    logger.debug("select_option_failed", selector=field.selector, error=str(e))
                    await self.click(field.selector)
                    await self.click(f"option:has-text({css_quote(field.value)})")
            else:
                element = self.page.locator(field.selector).first
                checked = await element.is_checked()
                if (field.value == "true" and not checked) or (field.value == "false" and checked):
                    await self.click(field.selector)

    async def wait_for_api_response(
        self,
        url_pattern: str | re.Pattern[str],
        *,
        status: int = 200,
        timeout_ms: float = 10000,
    ) -> Any:
        """Wait for a matching response, falling back to network idle."""

        def predicate(response: Any) -> bool:
            if isinstance(url_pattern, re.Pattern):
                matches = url_pattern.search(response.url) is not None
            else:
                matches = url_pattern in response.url
            return matches and response.status == status

        try:
            return await self.page.wait_for_response(predicate, timeout=timeout_ms)
        except Exception as e:
            logger.debug("response_not_seen", pattern=str(url_pattern), error=str(e))
            await self.page.wait_for_load_state("networkidle", timeout=5000)
            return None

    async def wait_for_stable_count(self, selector: str, *, timeout_ms: float = 5000, poll_ms: float = 500) -> int:
        """Poll until the number of matches stays the same for two checks."""
        previous = -1
        stable = 0
        for _ in range(max(1, int(timeout_ms // poll_ms))):
            current = await self.page.locator(selector).count()
            if current == previous:
                stable += 1
                if stable >= 2:
                    return current
            else:
                stable = 0
            previous = current
            await self._sleep(poll_ms / 1000)
        return previous

    async def screenshot_on_failure(self, test_name: str) -> Path:
        """Capture a full-page screenshot for a failed test."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        clean_name = re.sub(r"[^\w.-]+", "_", test_name)
        path = Path(self.config.screenshot_dir) / f"failure-{clean_name}-{timestamp}.png"
        path.parent.mkdir(parents=True, exist_ok=True)
        await self.page.screenshot(path=str(path), full_page=True)
        return path


def with_self_healing(page: Page, config: ActionsConfig | None = None) -> ResilientActions:
    """Create a self-healing wrapper around ``page``."""
    return ResilientActions(page, config)
