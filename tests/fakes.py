from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class FakeNode:
    payload: dict[str, Any] = field(default_factory=dict)
    visible: bool = True
    enabled: bool = True
    handles: list[FakeHandle] = field(default_factory=list)


class FakeHandle:
    def __init__(self, node: FakeNode, fail: bool = False) -> None:
        self.node = node
        self.fail = fail
        self.disposed = False

    def evaluate(self, _script: str) -> Any:
        if self.fail:
            raise RuntimeError("Element is detached from the DOM")
        return dict(self.node.payload)

    def dispose(self) -> None:
        self.disposed = True


class FakeLocator:
    def __init__(self, nodes: list[FakeNode] | None = None, error: Exception | None = None) -> None:
        self.nodes = list(nodes or [])
        self.error = error

    def count(self) -> int:
        if self.error is not None:
            raise self.error
        return len(self.nodes)

    @property
    def first(self) -> FakeLocator:
        return self.nth(0)

    def nth(self, index: int) -> FakeLocator:
        if index < len(self.nodes):
            return FakeLocator([self.nodes[index]])
        return FakeLocator([])

    def is_visible(self) -> bool:
        return bool(self.nodes) and self.nodes[0].visible

    def is_enabled(self, timeout: float | None = None) -> bool:
        if not self.nodes:
            raise TimeoutError(f"Timeout {timeout}ms exceeded")
        return self.nodes[0].enabled

    def element_handle(self, timeout: float | None = None) -> FakeHandle | None:
        if not self.nodes:
            return None
        handle = FakeHandle(self.nodes[0])
        self.nodes[0].handles.append(handle)
        return handle


class FakePage:
    """Page double keyed by the same tuples the Playwright calls resolve to."""

    def __init__(self, url: str = "https://shop.example.com/login") -> None:
        self.url = url
        self.registry: dict[tuple[Any, ...], FakeLocator] = {}
        self.calls: list[tuple[Any, ...]] = []

    def register(self, key: tuple[Any, ...], *nodes: FakeNode) -> FakeLocator:
        locator = FakeLocator(list(nodes))
        self.registry[key] = locator
        return locator

    def _lookup(self, key: tuple[Any, ...]) -> FakeLocator:
        self.calls.append(key)
        return self.registry.get(key, FakeLocator([]))

    def get_by_test_id(self, value: str) -> FakeLocator:
        return self._lookup(("test_id", value))

    def get_by_role(self, role: str, name: str | None = None) -> FakeLocator:
        return self._lookup(("role", role, name))

    def get_by_label(self, value: str) -> FakeLocator:
        return self._lookup(("label", value))

    def get_by_placeholder(self, value: str) -> FakeLocator:
        return self._lookup(("placeholder", value))

    def get_by_text(self, value: str, exact: bool = False) -> FakeLocator:
        return self._lookup(("text", value, exact))

    def locator(self, selector: str) -> FakeLocator:
        return self._lookup(("css", selector))
