"""Browser automation: Playwright session lifecycle and planner action execution."""

from docgen.browser.actions import ActionExecutor, ActionKind, BrowserAction
from docgen.browser.session import BrowserSession, start_browser, take_screenshot, to_data_url

__all__ = [
    "ActionExecutor",
    "ActionKind",
    "BrowserAction",
    "BrowserSession",
    "start_browser",
    "take_screenshot",
    "to_data_url",
]
