"""Tests for multi-strategy selector resolution."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from test_medic.actions.resolver import SelectorResolver, css_quote, strategies_for
from test_medic.errors import ElementNotFoundError
from test_medic.models import SelectorKind, SelectorStrategy


@pytest.mark.asyncio
async def test_fallback_strategy_resolves_when_primary_missing(login_page):
    """A missing #submit heals to the data-testid selector."""
    resolver = SelectorResolver(login_page)
    strategies = [SelectorStrategy.css("#submit"), SelectorStrategy.css('[data-testid="submit"]')]

    element = await resolver.resolve(strategies, timeout_ms=1000)

    assert (await element.text_content()).strip() == "Sign In"


@pytest.mark.asyncio
async def test_no_strategy_tried_after_first_success(login_page, counting_page):
    """Strategies after the first success are never evaluated."""
    page = counting_page(login_page)
    resolver = SelectorResolver(page)
    strategies = [
        SelectorStrategy.css("#missing"),
        SelectorStrategy.css('[data-testid="submit"]'),
        SelectorStrategy.css("#never-tried"),
    ]

    await resolver.resolve(strategies)

    assert page.requests == ["#missing", '[data-testid="submit"]']


@pytest.mark.asyncio
async def test_all_strategies_fail_lists_attempts_in_order(login_page):
    resolver = SelectorResolver(login_page)
    strategies = [
        SelectorStrategy.css("#nope"),
        SelectorStrategy(SelectorKind.TESTID, "also-nope"),
        SelectorStrategy(SelectorKind.TEXT, "Nothing here"),
    ]

    with pytest.raises(ElementNotFoundError) as excinfo:
        await resolver.resolve(strategies, timeout_ms=300)

    assert excinfo.value.strategies == strategies
    assert "css:#nope, testid:also-nope, text:Nothing here" in str(excinfo.value)


@pytest.mark.asyncio
async def test_hidden_match_is_not_resolved(login_page):
    resolver = SelectorResolver(login_page)

    with pytest.raises(ElementNotFoundError):
        await resolver.resolve([SelectorStrategy.css(".spinner")])


@pytest.mark.asyncio
async def test_empty_strategy_list_raises(login_page):
    with pytest.raises(ElementNotFoundError):
        await SelectorResolver(login_page).resolve([])


@pytest.mark.asyncio
async def test_budget_is_split_evenly_between_strategies():
    """Each strategy waits for its own share of the timeout."""
    failing = MagicMock()
    failing.first.wait_for = AsyncMock(side_effect=TimeoutError("nope"))
    page = MagicMock()
    page.locator.return_value = failing

    with pytest.raises(ElementNotFoundError):
        await SelectorResolver(page).resolve(
            [SelectorStrategy.css("#a"), SelectorStrategy.css("#b"), SelectorStrategy.css("#c"), SelectorStrategy.css("#d")],
            timeout_ms=4000,
        )

    timeouts = [call.kwargs["timeout"] for call in failing.first.wait_for.await_args_list]
    assert timeouts == [1000, 1000, 1000, 1000]


@pytest.mark.asyncio
async def test_text_and_role_strategies(login_page):
    resolver = SelectorResolver(login_page)

    by_text = await resolver.resolve([SelectorStrategy(SelectorKind.TEXT, "Forgot Password?")])
    by_role = await resolver.resolve([SelectorStrategy(SelectorKind.ROLE, "link")])

    assert await by_text.get_attribute("href") == "/forgot"
    assert await by_role.get_attribute("href") == "/forgot"


@pytest.mark.asyncio
async def test_testid_strategy_honours_custom_attribute(snapshot):
    page = snapshot('<button data-qa="save">Save</button>')
    resolver = SelectorResolver(page, test_id_attribute="data-qa")

    element = await resolver.resolve([SelectorStrategy(SelectorKind.TESTID, "save")])

    assert await element.text_content() == "Save"


def test_strategies_for_orders_primary_fallbacks_text_role():
    strategies = strategies_for("#go", ['[data-testid="go"]'], text="Go", role="button")

    assert [str(s) for s in strategies] == ['css:#go', 'css:[data-testid="go"]', "text:Go", "role:button"]


def test_css_quote_escapes_quotes():
    assert css_quote('say "hi"') == '"say \\"hi\\""'
