"""
Action Executor - translates planner actions into Playwright input.

The planner emits one abstract UI action per turn. Each action kind maps to exactly
one primitive interaction on the page (mouse, keyboard or wheel). Failures are
logged per action and never propagate into the crawl loop.

Two payload dialects are accepted:
    {"action": "left_click", "coordinate": [x, y]}
    {"type": "click", "x": 10, "y": 20, "button": "left"}
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from playwright.async_api import Page

from docgen.core.config import CrawlSettings, get_settings

logger = logging.getLogger(__name__)

PIXELS_PER_SCROLL_UNIT = 100
DRAG_STEPS = 10
WAIT_ACTION_MS = 2000


class ActionKind(str, Enum):
    """Browser action kinds the planner may request."""
    MOUSE_MOVE = "mouse_move"
    LEFT_CLICK = "left_click"
    RIGHT_CLICK = "right_click"
    MIDDLE_CLICK = "middle_click"
    DOUBLE_CLICK = "double_click"
    TRIPLE_CLICK = "triple_click"
    LEFT_CLICK_DRAG = "left_click_drag"
    LEFT_MOUSE_DOWN = "left_mouse_down"
    LEFT_MOUSE_UP = "left_mouse_up"
    TYPE = "type"
    HOLD_KEY = "hold_key"
    SCROLL = "scroll"
    KEYPRESS = "keypress"
    WAIT = "wait"
    DRAG = "drag"
    SCREENSHOT = "screenshot"
    # Generic planner kinds
    CLICK = "click"
    KEY = "key"


# Planner aliases that name an existing kind differently
_KIND_ALIASES = {
    "move": ActionKind.MOUSE_MOVE,
}

_CLICK_KINDS = {
    ActionKind.LEFT_CLICK,
    ActionKind.RIGHT_CLICK,
    ActionKind.MIDDLE_CLICK,
    ActionKind.DOUBLE_CLICK,
    ActionKind.TRIPLE_CLICK,
    ActionKind.LEFT_CLICK_DRAG,
    ActionKind.CLICK,
}

_INPUT_KINDS = {
    ActionKind.TYPE,
    ActionKind.KEY,
    ActionKind.KEYPRESS,
    ActionKind.HOLD_KEY,
}

_FAST_KINDS = {
    ActionKind.MOUSE_MOVE,
    ActionKind.SCREENSHOT,
}


def _point(value: Any) -> Optional[Tuple[float, float]]:
    """Normalize [x, y] or {"x", "y"} into a tuple; None for anything else."""
    if isinstance(value, dict):
        value = (value.get("x"), value.get("y"))
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    x, y = value
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (x, y)):
        return None
    return (x, y)


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


@dataclass
class BrowserAction:
    """
    Single UI action requested by the planner.

    `kind` is None when the planner sent something we do not recognize; the raw
    dict is kept for logging.
    """
    kind: Optional[ActionKind]
    coordinate: Optional[Tuple[float, float]] = None
    start_coordinate: Optional[Tuple[float, float]] = None
    text: Optional[str] = None
    key: Optional[str] = None
    keys: List[str] = field(default_factory=list)
    scroll_direction: Optional[str] = None
    scroll_amount: Optional[int] = None
    scroll_x: Optional[float] = None
    scroll_y: Optional[float] = None
    path: List[Tuple[float, float]] = field(default_factory=list)
    button: str = "left"
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BrowserAction":
        """Parse the planner's raw action dict. Malformed fields parse as missing."""
        if not isinstance(data, dict):
            data = {}
        name = data.get("action") or data.get("type")
        kind = _KIND_ALIASES.get(name) if isinstance(name, str) else None
        if kind is None and isinstance(name, str):
            try:
                kind = ActionKind(name)
            except ValueError:
                kind = None

        coordinate = _point(data.get("coordinate"))
        if coordinate is None:
            coordinate = _point(data)

        return cls(
            kind=kind,
            coordinate=coordinate,
            start_coordinate=_point(data.get("start_coordinate")),
            text=data.get("text"),
            key=data.get("key"),
            keys=[k for k in _as_list(data.get("keys")) if isinstance(k, str)],
            scroll_direction=data.get("scroll_direction"),
            scroll_amount=data.get("scroll_amount"),
            scroll_x=data.get("scroll_x"),
            scroll_y=data.get("scroll_y"),
            path=[p for p in map(_point, _as_list(data.get("path"))) if p is not None],
            button=data.get("button") or "left",
            raw=dict(data),
        )

    @property
    def name(self) -> str:
        if self.kind is not None:
            return self.kind.value
        return str(self.raw.get("action") or self.raw.get("type"))

    def scroll_delta(self) -> Tuple[float, float]:
        """Signed pixel delta; explicit scroll_x/scroll_y win over direction+amount."""
        if self.scroll_x is not None or self.scroll_y is not None:
            return (self.scroll_x or 0, self.scroll_y or 0)

        amount = (self.scroll_amount or 0) * PIXELS_PER_SCROLL_UNIT
        if self.scroll_direction == "down":
            return (0, amount)
        if self.scroll_direction == "up":
            return (0, -amount)
        if self.scroll_direction == "left":
            return (-amount, 0)
        if self.scroll_direction == "right":
            return (amount, 0)
        return (0, 0)


Handler = Callable[[Page, BrowserAction], Awaitable[None]]


class ActionExecutor:
    """Executes BrowserActions against a Playwright page."""

    def __init__(self, settings: Optional[CrawlSettings] = None):
        self.settings = settings or get_settings().crawl
        self._handlers: Dict[ActionKind, Handler] = {
            ActionKind.SCREENSHOT: self._screenshot,
            ActionKind.MOUSE_MOVE: self._mouse_move,
            ActionKind.LEFT_CLICK: self._click_with("left"),
            ActionKind.RIGHT_CLICK: self._click_with("right"),
            ActionKind.MIDDLE_CLICK: self._click_with("middle"),
            ActionKind.DOUBLE_CLICK: self._click_with("left", 2),
            ActionKind.TRIPLE_CLICK: self._click_with("left", 3),
            ActionKind.CLICK: self._click,
            ActionKind.LEFT_CLICK_DRAG: self._left_click_drag,
            ActionKind.LEFT_MOUSE_DOWN: self._left_mouse_down,
            ActionKind.LEFT_MOUSE_UP: self._left_mouse_up,
            ActionKind.TYPE: self._type,
            ActionKind.HOLD_KEY: self._hold_key,
            ActionKind.KEY: self._key,
            ActionKind.KEYPRESS: self._keypress,
            ActionKind.SCROLL: self._scroll,
            ActionKind.WAIT: self._wait,
            ActionKind.DRAG: self._drag,
        }

    def delay_for(self, action: BrowserAction) -> int:
        """Milliseconds to let the page settle after an action."""
        if action.kind in _FAST_KINDS:
            return self.settings.fast_delay_ms
        if action.kind in _INPUT_KINDS:
            return self.settings.input_delay_ms
        if action.kind == ActionKind.SCROLL:
            return self.settings.scroll_delay_ms
        if action.kind in _CLICK_KINDS:
            return self.settings.click_delay_ms
        return self.settings.default_delay_ms

    async def execute(self, page: Page, action: BrowserAction) -> None:
        """Run one action. Errors are logged and swallowed."""
        handler = self._handlers.get(action.kind) if action.kind else None
        if handler is None:
            logger.warning(f"[ActionExecutor] Unrecognized action: {action.raw}")
            return

        try:
            await handler(page, action)
        except Exception as e:
            logger.error(f"[ActionExecutor] Error handling {action.name} {action.raw}: {e}")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _screenshot(self, page: Page, action: BrowserAction) -> None:
        # Taken by the loop after every turn
        logger.debug("[ActionExecutor] screenshot")

    async def _mouse_move(self, page: Page, action: BrowserAction) -> None:
        x, y = action.coordinate
        logger.info(f"[ActionExecutor] mouse_move to ({x}, {y})")
        await page.mouse.move(x, y)

    def _click_with(self, button: str, click_count: int = 1) -> Handler:
        async def handler(page: Page, action: BrowserAction) -> None:
            x, y = action.coordinate
            logger.info(f"[ActionExecutor] {action.name} at ({x}, {y})")
            await page.mouse.click(x, y, button=button, click_count=click_count)
        return handler

    async def _click(self, page: Page, action: BrowserAction) -> None:
        x, y = action.coordinate
        button = action.button if action.button in ("left", "right", "middle") else "left"
        logger.info(f"[ActionExecutor] click at ({x}, {y}) with button '{button}'")
        await page.mouse.click(x, y, button=button)

    async def _left_click_drag(self, page: Page, action: BrowserAction) -> None:
        start_x, start_y = action.start_coordinate
        end_x, end_y = action.coordinate
        logger.info(
            f"[ActionExecutor] left_click_drag from ({start_x}, {start_y}) to ({end_x}, {end_y})"
        )
        await page.mouse.move(start_x, start_y)
        await page.mouse.down()
        await page.mouse.move(end_x, end_y, steps=DRAG_STEPS)
        await page.mouse.up()

    async def _left_mouse_down(self, page: Page, action: BrowserAction) -> None:
        x, y = action.coordinate
        await page.mouse.move(x, y)
        await page.mouse.down()

    async def _left_mouse_up(self, page: Page, action: BrowserAction) -> None:
        x, y = action.coordinate
        await page.mouse.move(x, y)
        await page.mouse.up()

    async def _type(self, page: Page, action: BrowserAction) -> None:
        logger.info(f"[ActionExecutor] type text '{action.text}'")
        await page.keyboard.type(action.text or "")

    async def _hold_key(self, page: Page, action: BrowserAction) -> None:
        logger.info(f"[ActionExecutor] hold_key '{action.key}'")
        await page.keyboard.down(action.key)

    async def _key(self, page: Page, action: BrowserAction) -> None:
        key = action.key or action.text
        await page.keyboard.press(key)

    async def _keypress(self, page: Page, action: BrowserAction) -> None:
        combo = "+".join(action.keys)
        logger.info(f"[ActionExecutor] keypress '{combo}'")
        await page.keyboard.press(combo)

    async def _scroll(self, page: Page, action: BrowserAction) -> None:
        delta_x, delta_y = action.scroll_delta()
        if action.coordinate is not None:
            x, y = action.coordinate
            await page.mouse.move(x, y)
        logger.info(f"[ActionExecutor] scroll (scrollX={delta_x}, scrollY={delta_y})")
        await page.mouse.wheel(delta_x, delta_y)

    async def _wait(self, page: Page, action: BrowserAction) -> None:
        await page.wait_for_timeout(WAIT_ACTION_MS)

    async def _drag(self, page: Page, action: BrowserAction) -> None:
        if not action.path:
            return
        first_x, first_y = action.path[0]
        logger.info(f"[ActionExecutor] drag from ({first_x}, {first_y}) over {len(action.path)} points")
        await page.mouse.move(first_x, first_y)
        await page.mouse.down()
        for x, y in action.path[1:]:
            await page.mouse.move(x, y, steps=DRAG_STEPS)
        await page.mouse.up()


async def settle(executor: ActionExecutor, action: BrowserAction) -> None:
    """Sleep for the action's settle delay."""
    await asyncio.sleep(executor.delay_for(action) / 1000)
