"""Accessibility-tree text extraction.

The focused element and focused window of the frontmost application are
walked breadth-limited and depth-limited under a wall-clock budget. The walk
uses an explicit work stack so termination never depends on the depth of
the UI tree.
"""

import logging
import platform
import time
from collections.abc import Iterable
from typing import Any, Callable, List, Optional, Protocol, Set, Tuple

from screentext.shared.errors import ProbeFailure

logger = logging.getLogger(__name__)


class AccessibilityTree(Protocol):
    def focused_roots(self) -> List[Any]: ...

    def text_values(self, element: Any) -> List[Any]: ...

    def children(self, element: Any) -> List[Any]: ...


def flatten_text(value: Any) -> Optional[str]:
    """Reduce an attribute value to text, or None when it carries none."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    # NSAttributedString
    if hasattr(value, "string") and callable(value.string):
        return str(value.string())
    if isinstance(value, Iterable):
        parts = [text for text in (flatten_text(item) for item in value) if text]
        return " ".join(parts) if parts else None
    return None


def collect_text(
    tree: AccessibilityTree,
    roots: Iterable[Any],
    max_depth: int,
    max_children: int,
    deadline: float,
    clock: Callable[[], float] = time.monotonic,
) -> Set[str]:
    """Gather distinct non-empty strings from ``roots`` and their descendants.

    Nodes deeper than ``max_depth`` are not visited, at most
    ``max_children`` children are expanded per node, and the walk stops as
    soon as ``clock()`` passes ``deadline``.
    """
    gathered: Set[str] = set()
    stack: List[Tuple[Any, int]] = [(root, max_depth) for root in reversed(list(roots))]

    while stack:
        if clock() >= deadline:
            logger.debug("Accessibility walk hit its time budget")
            break
        element, remaining_depth = stack.pop()

        for value in tree.text_values(element):
            text = flatten_text(value)
            if text and text.strip():
                gathered.add(text.strip())

        if remaining_depth <= 0:
            continue
        children = tree.children(element)[:max_children]
        for child in reversed(children):
            stack.append((child, remaining_depth - 1))

    return gathered


class MacAccessibilityTree:
    """AXUIElement access through pyobjc (macOS only)."""

    TEXT_ATTRIBUTES = ("AXValue", "AXTitle", "AXDescription", "AXSelectedText")
    CHILD_ATTRIBUTES = ("AXVisibleChildren", "AXChildren")

    def __init__(self):
        if platform.system() != "Darwin":
            raise ProbeFailure("accessibility API is only available on macOS")
        try:
            import ApplicationServices
            import CoreFoundation
        except ImportError as e:
            raise ProbeFailure(f"pyobjc accessibility bindings unavailable: {e}") from e
        self._ax = ApplicationServices
        self._cf = CoreFoundation

    def _copy(self, element: Any, attribute: str) -> Any:
        error, value = self._ax.AXUIElementCopyAttributeValue(element, attribute, None)
        if error != 0:
            return None
        return value

    def _is_element(self, value: Any) -> bool:
        return value is not None and self._cf.CFGetTypeID(value) == self._ax.AXUIElementGetTypeID()

    def focused_application(self) -> Any:
        system_wide = self._ax.AXUIElementCreateSystemWide()
        app = self._copy(system_wide, "AXFocusedApplication")
        return app if self._is_element(app) else None

    def focused_window(self) -> Any:
        app = self.focused_application()
        if app is None:
            return None
        window = self._copy(app, "AXFocusedWindow")
        return window if self._is_element(window) else None

    def focused_roots(self) -> List[Any]:
        app = self.focused_application()
        if app is None:
            return []
        roots = []
        for attribute in ("AXFocusedUIElement", "AXFocusedWindow"):
            element = self._copy(app, attribute)
            if self._is_element(element):
                roots.append(element)
        return roots

    def text_values(self, element: Any) -> List[Any]:
        return [self._copy(element, attribute) for attribute in self.TEXT_ATTRIBUTES]

    def children(self, element: Any) -> List[Any]:
        result: List[Any] = []
        for attribute in self.CHILD_ATTRIBUTES:
            values = self._copy(element, attribute) or []
            result.extend(value for value in values if self._is_element(value))
        return result

    def string_attribute(self, element: Any, attribute: str) -> Optional[str]:
        return flatten_text(self._copy(element, attribute))


def default_tree() -> Optional[AccessibilityTree]:
    try:
        return MacAccessibilityTree()
    except ProbeFailure as e:
        logger.debug(f"Accessibility tree unavailable: {e}")
        return None


class AccessibilityTextExtractor:
    def __init__(
        self,
        tree: Optional[AccessibilityTree] = None,
        timeout_seconds: float = 0.2,
        max_depth: int = 4,
        max_children_per_node: int = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tree = tree if tree is not None else default_tree()
        self.timeout_seconds = timeout_seconds
        self.max_depth = max_depth
        self.max_children_per_node = max_children_per_node
        self.clock = clock

    def extract_text(self) -> Optional[str]:
        if self.tree is None:
            return None

        deadline = self.clock() + self.timeout_seconds
        gathered = collect_text(
            self.tree,
            self.tree.focused_roots(),
            max_depth=self.max_depth,
            max_children=self.max_children_per_node,
            deadline=deadline,
            clock=self.clock,
        )
        joined = "\n".join(sorted(gathered)).strip()
        return joined or None
