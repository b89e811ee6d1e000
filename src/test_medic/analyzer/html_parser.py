"""Snapshot driver: the read side of the driver port over a saved HTML page."""

import re
from typing import Any, Callable, Iterable

from bs4 import BeautifulSoup, Tag

from ..errors import WaitTimeoutError

NON_RENDERED_TAGS = {"head", "script", "style", "template", "noscript", "title", "meta", "link"}

DEFAULT_TIMEOUT_MS = 30000

# Implicit ARIA roles, enough for the roles tests usually ask for
IMPLICIT_ROLES: dict[str, Callable[[Tag], bool]] = {
    "button": lambda t: t.name == "button"
    or (t.name == "input" and (t.get("type") or "").lower() in ("button", "submit", "reset", "image")),
    "link": lambda t: t.name in ("a", "area") and t.has_attr("href"),
    "textbox": lambda t: t.name == "textarea"
    or (t.name == "input" and (t.get("type") or "text").lower() in ("text", "email", "tel", "url", "password", "search")),
    "checkbox": lambda t: t.name == "input" and (t.get("type") or "").lower() == "checkbox",
    "radio": lambda t: t.name == "input" and (t.get("type") or "").lower() == "radio",
    "combobox": lambda t: t.name == "select",
    "heading": lambda t: t.name in ("h1", "h2", "h3", "h4", "h5", "h6"),
    "img": lambda t: t.name == "img",
    "main": lambda t: t.name == "main",
    "navigation": lambda t: t.name == "nav",
    "form": lambda t: t.name == "form",
    "table": lambda t: t.name == "table",
    "list": lambda t: t.name in ("ul", "ol"),
    "listitem": lambda t: t.name == "li",
}


def normalize_text(text: str | None) -> str:
    """Collapse whitespace the way Playwright text matching does."""
    return re.sub(r"\s+", " ", text or "").strip()


def is_rendered(tag: Tag) -> bool:
    """Best-effort visibility check for a static document."""
    if tag.name == "input" and (tag.get("type") or "").lower() == "hidden":
        return False

    current: Any = tag
    while isinstance(current, Tag) and current.name != "[document]":
        if current.name in NON_RENDERED_TAGS or current.has_attr("hidden"):
            return False
        style = re.sub(r"\s+", "", str(current.get("style", ""))).lower()
        if "display:none" in style or "visibility:hidden" in style:
            return False
        current = current.parent
    return True


def _attribute(tag: Tag, name: str) -> str | None:
    value = tag.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


class SnapshotLocator:
    """Lazily evaluated element query against a :class:`SnapshotPage`."""

    def __init__(self, page: "SnapshotPage", query: Callable[[], list[Tag]], description: str):
        self._page = page
        self._query = query
        self.description = description

    def __repr__(self) -> str:
        return f"SnapshotLocator({self.description})"

    def _elements(self) -> list[Tag]:
        return self._query()

    def _require(self, timeout: float | None, *, visible: bool = True) -> Tag:
        elements = self._elements()
        if not elements or (visible and not is_rendered(elements[0])):
            raise WaitTimeoutError(f"{self.description} to be visible", timeout or DEFAULT_TIMEOUT_MS)
        return elements[0]

    @property
    def first(self) -> "SnapshotLocator":
        return SnapshotLocator(self._page, lambda: self._elements()[:1], f"{self.description} >> nth=0")

    async def all(self) -> list["SnapshotLocator"]:
        return [
            SnapshotLocator(self._page, lambda tag=tag: [tag], f"{self.description} >> nth={i}")
            for i, tag in enumerate(self._elements())
        ]

    async def count(self) -> int:
        return len(self._elements())

    async def is_visible(self) -> bool:
        elements = self._elements()
        return bool(elements) and is_rendered(elements[0])

    async def is_enabled(self) -> bool:
        elements = self._elements()
        if not elements:
            return False
        tag = elements[0]
        return not tag.has_attr("disabled") and tag.get("aria-disabled") != "true"

    async def is_checked(self) -> bool:
        tag = self._require(None, visible=False)
        return tag.has_attr("checked")

    async def get_attribute(self, name: str, *, timeout: float | None = None) -> str | None:
        return _attribute(self._require(timeout, visible=False), name)

    async def text_content(self, *, timeout: float | None = None) -> str | None:
        return self._require(timeout, visible=False).get_text()

    async def input_value(self, *, timeout: float | None = None) -> str:
        tag = self._require(timeout, visible=False)
        if tag.name == "select":
            option = tag.find("option", selected=True) or tag.find("option")
            return _attribute(option, "value") or option.get_text() if option else ""
        if tag.name == "textarea":
            return tag.get_text()
        return _attribute(tag, "value") or ""

    async def wait_for(self, *, state: str = "visible", timeout: float | None = None) -> None:
        elements = self._elements()
        visible = bool(elements) and is_rendered(elements[0])
        satisfied = {
            "attached": bool(elements),
            "detached": not elements,
            "visible": visible,
            "hidden": not visible,
        }[state]
        if not satisfied:
            raise WaitTimeoutError(f"{self.description} to be {state}", timeout or DEFAULT_TIMEOUT_MS)

    async def scroll_into_view_if_needed(self, *, timeout: float | None = None) -> None:
        self._require(timeout)

    async def click(self, *, timeout: float | None = None, **options: Any) -> None:
        self._require(timeout)
        # Pointer options such as position have no meaning in a static document
        if not options.get("force") and not await self.is_enabled():
            raise WaitTimeoutError(f"{self.description} to be enabled", timeout or DEFAULT_TIMEOUT_MS)
        self._page.clicks.append(self.description)

    async def clear(self, *, timeout: float | None = None) -> None:
        await self.fill("", timeout=timeout)

    async def fill(self, value: str, *, timeout: float | None = None, **options: Any) -> None:
        tag = self._require(timeout)
        if tag.name == "textarea":
            tag.string = value
        else:
            tag["value"] = value

    async def select_option(self, value: Any = None, *, index: int | None = None) -> list[str]:
        tag = self._require(None)
        options = tag.find_all("option")
        chosen = None
        for i, option in enumerate(options):
            if (index is not None and i == index) or (
                value is not None and value in (_attribute(option, "value"), option.get_text())
            ):
                chosen = option
        if chosen is None:
            raise WaitTimeoutError(f"option {value if index is None else index} in {self.description}", DEFAULT_TIMEOUT_MS)
        for option in options:
            if option.has_attr("selected"):
                del option["selected"]
        chosen["selected"] = ""
        return [_attribute(chosen, "value") or chosen.get_text()]


class SnapshotPage:
    """Static page backed by BeautifulSoup.

    Supports selection, visibility, attribute and text queries so discovery and
    selector resolution can run against captured HTML without a browser.
    Navigation and waiting for network activity are no-ops on a snapshot.
    """

    def __init__(self, html: str, url: str = "about:blank"):
        self.soup = BeautifulSoup(html, "lxml")
        self._url = url
        self.clicks: list[str] = []
        self.handlers: dict[str, list[Callable[..., Any]]] = {}
        self.viewport: dict[str, int] | None = None

    @property
    def url(self) -> str:
        return self._url

    def _select(self, selector: str) -> list[Tag]:
        return [t for t in self.soup.select(selector) if isinstance(t, Tag)]

    def _rendered_tags(self) -> Iterable[Tag]:
        for tag in self.soup.find_all(True):
            if isinstance(tag, Tag) and tag.name not in NON_RENDERED_TAGS:
                yield tag

    def locator(self, selector: str) -> SnapshotLocator:
        return SnapshotLocator(self, lambda: self._select(selector), f"locator({selector!r})")

    def get_by_text(self, text: str, *, exact: bool = False) -> SnapshotLocator:
        wanted = normalize_text(text)

        def matches(tag: Tag) -> bool:
            content = normalize_text(tag.get_text(" "))
            return content == wanted if exact else wanted.lower() in content.lower()

        def query() -> list[Tag]:
            hits = [t for t in self._rendered_tags() if t.name not in ("html", "body") and matches(t)]
            hit_ids = {id(t) for t in hits}
            # Keep the innermost element carrying the text
            return [t for t in hits if not any(id(d) in hit_ids for d in t.find_all(True))]

        return SnapshotLocator(self, query, f"get_by_text({text!r}, exact={exact})")

    def get_by_role(self, role: str, *, name: str | None = None, **kwargs: Any) -> SnapshotLocator:
        implicit = IMPLICIT_ROLES.get(role, lambda t: False)

        def query() -> list[Tag]:
            found = []
            for tag in self._rendered_tags():
                explicit = tag.get("role")
                if not (explicit == role or (explicit is None and implicit(tag))):
                    continue
                if name is not None:
                    accessible = _attribute(tag, "aria-label") or normalize_text(tag.get_text(" "))
                    if normalize_text(name).lower() not in accessible.lower():
                        continue
                found.append(tag)
            return found

        return SnapshotLocator(self, query, f"get_by_role({role!r})")

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.handlers.setdefault(event, []).append(handler)

    async def goto(self, url: str, *, wait_until: str | None = None, timeout: float | None = None) -> None:
        self._url = url

    async def go_back(self, *, timeout: float | None = None) -> None:
        return None

    async def wait_for_selector(self, selector: str, *, state: str = "visible", timeout: float | None = None):
        locator = self.locator(selector).first
        await locator.wait_for(state=state, timeout=timeout)
        return locator

    async def wait_for_load_state(self, state: str = "load", *, timeout: float | None = None) -> None:
        return None

    async def wait_for_timeout(self, timeout: float) -> None:
        return None

    async def wait_for_function(self, expression: str, *, arg: Any = None, timeout: float | None = None) -> Any:
        raise NotImplementedError("Snapshot pages cannot evaluate JavaScript")

    async def wait_for_response(self, predicate: Any, *, timeout: float | None = None) -> Any:
        raise WaitTimeoutError("a network response on a static snapshot", timeout or DEFAULT_TIMEOUT_MS)

    async def screenshot(self, *, path: str | None = None, full_page: bool = False) -> bytes:
        raise NotImplementedError("Snapshot pages cannot be rendered")

    async def set_viewport_size(self, viewport_size: dict[str, int]) -> None:
        self.viewport = dict(viewport_size)
