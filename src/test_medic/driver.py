"""Browser driver port.

Test Medic never talks to a browser engine directly. Everything it needs is
described here as the subset of Playwright's async API that the resolver,
resilient actions and discovery engine call. A real
``playwright.async_api.Page`` satisfies these protocols, and so does
:class:`test_medic.analyzer.html_parser.SnapshotPage` for offline work.
"""

from typing import Any, Callable, Protocol


class Locator(Protocol):
    """Handle (or handle collection) for elements matching a selector."""

    @property
    def first(self) -> "Locator": ...

    async def all(self) -> list["Locator"]: ...

    async def count(self) -> int: ...

    async def click(self, *, timeout: float | None = None, **options: Any) -> None: ...

    async def fill(self, value: str, *, timeout: float | None = None, **options: Any) -> None: ...

    async def clear(self, *, timeout: float | None = None) -> None: ...

    async def input_value(self, *, timeout: float | None = None) -> str: ...

    async def get_attribute(self, name: str, *, timeout: float | None = None) -> str | None: ...

    async def text_content(self, *, timeout: float | None = None) -> str | None: ...

    async def is_visible(self) -> bool: ...

    async def is_enabled(self) -> bool: ...

    async def is_checked(self) -> bool: ...

    async def select_option(self, value: Any = None, *, index: int | None = None) -> list[str]: ...

    async def scroll_into_view_if_needed(self, *, timeout: float | None = None) -> None: ...

    async def wait_for(self, *, state: str = "visible", timeout: float | None = None) -> None: ...


class Page(Protocol):
    """A single browser tab, owned by one test at a time."""

    @property
    def url(self) -> str: ...

    def locator(self, selector: str) -> Locator: ...

    def get_by_text(self, text: str, *, exact: bool = False) -> Locator: ...

    def get_by_role(self, role: str, **kwargs: Any) -> Locator: ...

    def on(self, event: str, handler: Callable[..., Any]) -> None: ...

    async def goto(self, url: str, *, wait_until: str | None = None, timeout: float | None = None) -> Any: ...

    async def go_back(self, *, timeout: float | None = None) -> Any: ...

    async def wait_for_selector(
        self, selector: str, *, state: str = "visible", timeout: float | None = None
    ) -> Any: ...

    async def wait_for_load_state(self, state: str = "load", *, timeout: float | None = None) -> None: ...

    async def wait_for_function(self, expression: str, *, arg: Any = None, timeout: float | None = None) -> Any: ...

    async def wait_for_response(self, predicate: Any, *, timeout: float | None = None) -> Any: ...

    async def wait_for_timeout(self, timeout: float) -> None: ...

    async def screenshot(self, *, path: str | None = None, full_page: bool = False) -> bytes: ...

    async def set_viewport_size(self, viewport_size: dict[str, int]) -> None: ...
