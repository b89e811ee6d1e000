"""Tests for element discovery and test synthesis."""

import ast

import pytest

from test_medic.discovery import ElementDiscoveryEngine, TestSynthesizer, derive_selector, render_module, write_tests
from test_medic.discovery.synthesizer import fallback_selectors, is_text_input, sample_value, slugify
from test_medic.models import DiscoveredElement, ElementType

SHOP_HTML = """
<html>
<body>
    <nav>
        <a href="/products">Products</a>
        <a href="https://example.com/help">Help</a>
        <a href="/cart" aria-label="Shopping cart"></a>
        <a>No href</a>
    </nav>
    <main>
        <button aria-label="Add to cart">+</button>
        <button class="btn btn-primary">Buy now</button>
        <div role="button" data-testid="wishlist">Wishlist</div>
        <button style="display:none" id="hidden-button">Hidden</button>
        <label for="qty">Quantity</label>
        <input id="qty" type="number">
        <input id="gift" type="checkbox">
        <input name="coupon" type="radio" id="coupon-yes">
        <select id="size"><option>S</option><option>M</option></select>
        <input type="hidden" name="token">
        <input>
    </main>
</body>
</html>
"""


@pytest.mark.asyncio
async def test_button_with_id_uses_id_selector(snapshot):
    page = snapshot('<button id="go">Go</button>')

    elements = await ElementDiscoveryEngine().discover(page)

    assert len(elements) == 1
    assert elements[0].selector == "#go"
    assert elements[0].type is ElementType.BUTTON
    assert elements[0].text == "Go"


@pytest.mark.asyncio
async def test_discovers_in_type_order_with_stable_selectors(snapshot):
    page = snapshot(SHOP_HTML)

    elements = await ElementDiscoveryEngine().discover(page)

    found = [(e.type, e.selector) for e in elements]
    assert found == [
        (ElementType.BUTTON, '[aria-label="Add to cart"]'),
        (ElementType.BUTTON, 'button:has-text("Buy now")'),
        (ElementType.BUTTON, '[data-testid="wishlist"]'),
        (ElementType.INPUT, "#qty"),
        (ElementType.CHECKBOX, "#gift"),
        (ElementType.RADIO, "#coupon-yes"),
        (ElementType.SELECT, "#size"),
        (ElementType.LINK, '[aria-label="Shopping cart"]'),
    ]


@pytest.mark.asyncio
async def test_input_label_comes_from_label_element(snapshot):
    page = snapshot(SHOP_HTML)

    elements = await ElementDiscoveryEngine().discover(page)

    quantity = next(e for e in elements if e.selector == "#qty")
    assert quantity.label == "Quantity"


@pytest.mark.asyncio
async def test_login_form_discovery(login_page):
    elements = await ElementDiscoveryEngine().discover(login_page)

    by_selector = {e.selector: e for e in elements}
    assert set(by_selector) == {
        '[data-testid="submit"]',
        "#cancel",
        '[data-testid="email-input"]',
        '[data-testid="password-input"]',
        '[data-testid="forgot-password-link"]',
    }
    assert by_selector['[data-testid="email-input"]'].label == "Email"
    assert by_selector['[data-testid="submit"]'].test_id == "submit"


@pytest.mark.asyncio
async def test_form_test_fills_only_text_inputs(snapshot):
    page = snapshot(
        '<input id="q" type="text">'
        '<input id="send" type="submit" value="Send">'
        '<input id="doc" type="file">'
        '<input id="age" type="number">'
    )

    elements = await ElementDiscoveryEngine().discover(page)
    tests = TestSynthesizer().synthesize("Upload", elements)

    assert {e.selector: e.input_type for e in elements} == {
        "#q": "text",
        "#send": "submit",
        "#doc": "file",
        "#age": "number",
    }
    fill_lines = [line for line in render_module("Upload", tests).splitlines() if ".fill(" in line]
    assert fill_lines == [
        "    await healing_page.fill('#q', 'test value', fallback_selectors=[])",
        "    await healing_page.fill('#age', '1', fallback_selectors=[])",
    ]


def test_is_text_input():
    assert is_text_input(DiscoveredElement("#q", ElementType.INPUT))
    assert is_text_input(DiscoveredElement("#q", ElementType.INPUT, input_type="email"))
    assert not is_text_input(DiscoveredElement("#q", ElementType.INPUT, input_type="reset"))
    assert not is_text_input(DiscoveredElement("#q", ElementType.INPUT, input_type="image"))
    assert not is_text_input(DiscoveredElement("#q", ElementType.SELECT))


def test_derive_selector_priority():
    button = ElementType.BUTTON
    assert derive_selector(button, "save", "save-btn", "Save", "Save", "btn") == '[data-testid="save"]'
    assert derive_selector(button, None, "save-btn", "Save", "Save", "btn") == "#save-btn"
    assert derive_selector(button, None, None, "Save", "Save", "btn") == '[aria-label="Save"]'
    assert derive_selector(button, None, None, None, "Save", "btn") == 'button:has-text("Save")'
    assert derive_selector(ElementType.LINK, None, None, None, "Save", "btn primary") == ".btn"
    assert derive_selector(ElementType.LINK, None, None, None, "Save", None) is None


def test_derive_selector_quotes_unusual_ids():
    assert derive_selector(ElementType.INPUT, None, "user:email", None, None, None) == '[id="user:email"]'
    assert derive_selector(ElementType.INPUT, None, "2fa", None, None, None) == '[id="2fa"]'


def test_sample_values_follow_field_hints():
    assert sample_value(DiscoveredElement("#email", ElementType.INPUT)) == "test@example.com"
    assert sample_value(DiscoveredElement("#x", ElementType.INPUT, label="Quantity")) == "1"
    assert sample_value(DiscoveredElement("#x", ElementType.INPUT)) == "test value"


def test_fallback_selectors_for_button():
    element = DiscoveredElement("#save", ElementType.BUTTON, text="Save", aria_label="Save changes")

    assert fallback_selectors(element) == ['[aria-label="Save changes"]', 'button:has-text("Save")']


def _elements():
    return [
        DiscoveredElement("#go", ElementType.BUTTON, text="Go"),
        DiscoveredElement('[data-testid="email-input"]', ElementType.INPUT, label="Email", test_id="email-input"),
        DiscoveredElement("#size", ElementType.SELECT),
        *[DiscoveredElement(f"#link-{i}", ElementType.LINK, text=f"Link {i}") for i in range(7)],
    ]


def test_synthesize_produces_named_tests():
    tests = TestSynthesizer().synthesize("Checkout", _elements())

    assert [t.name for t in tests] == [
        "Checkout button interactions",
        "Checkout form interactions",
        "Checkout navigation links",
        "Checkout accessibility",
        "Checkout responsive design",
    ]
    # Navigation follows at most five links
    assert len(tests[2].elements) == 5
    assert "#link-5" not in tests[2].code


def test_synthesize_without_elements_still_checks_accessibility():
    tests = TestSynthesizer().synthesize("Empty Page", [])

    assert [t.name for t in tests] == ["Empty Page accessibility", "Empty Page responsive design"]
    assert "'/empty-page'" in tests[0].code


def test_rendered_module_is_valid_python():
    tests = TestSynthesizer().synthesize('Order "History"', _elements(), path="/orders")

    source = render_module('Order "History"', tests)

    tree = ast.parse(source)
    names = [n.name for n in tree.body if isinstance(n, ast.AsyncFunctionDef)]
    assert names == [
        "test_order_history_button_interactions",
        "test_order_history_form_interactions",
        "test_order_history_navigation_links",
        "test_order_history_accessibility",
        "test_order_history_responsive_design",
    ]
    assert "from test_medic import with_self_healing" in source
    assert "healing_page.navigate('/orders')" in source


def test_write_tests(tmp_path):
    tests = TestSynthesizer().synthesize("Login", _elements()[:2])

    path = write_tests("Login", tests, tmp_path / "generated")

    assert path == tmp_path / "generated" / "test_login_generated.py"
    ast.parse(path.read_text())


def test_slugify():
    assert slugify("Purchase Orders / Detail") == "purchase_orders_detail"
    assert slugify("!!!") == "page"
