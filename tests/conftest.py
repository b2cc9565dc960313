"""
Pytest configuration and shared fixtures for the test suite.
"""

import logging
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest
from selenium.common.exceptions import NoSuchElementException, WebDriverException

# Add the src directory to the Python path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from broadlink_webhooks.core.models import AutomationConfiguration  # noqa: E402
from broadlink_webhooks.services.action_executor import ActionExecutor  # noqa: E402
from broadlink_webhooks.services.element_waiter import ElementWaiter  # noqa: E402


class FakeElement:
    """Stand-in for a Selenium WebElement."""

    def __init__(self, text="", attributes=None, on_click=None, children=None, click_errors=None):
        self.text = text
        self.attributes = dict(attributes or {})
        self.on_click = on_click
        self.children = dict(children or {})
        self.click_errors = list(click_errors or [])
        self.clicks = 0
        self.typed = []
        self.cleared = 0

    def click(self):
        if self.click_errors:
            raise self.click_errors.pop(0)
        self.clicks += 1
        if self.on_click:
            self.on_click()

    def send_keys(self, *keys):
        self.typed.extend(keys)

    def clear(self):
        self.cleared += 1
        self.typed = []

    def get_attribute(self, name):
        if name == "value" and "value" not in self.attributes:
            return "".join(key for key in self.typed if len(key) > 1 or key.isprintable())
        return self.attributes.get(name)

    def find_element(self, by, value):
        child = self.children.get((by, value))
        if child is None:
            raise NoSuchElementException(f"{by}={value}")
        return child


class FakeDriver:
    """
    Stand-in for a Selenium WebDriver.

    Elements are registered per locator; tests add and remove them to mimic
    pages being re-rendered.
    """

    def __init__(self, url="about:blank", redirects=None):
        self.url = url
        self.redirects = dict(redirects or {})
        self.elements = {}
        self.visited = []
        self.scripts = []
        self.refreshes = 0
        self.quit_called = False
        self.dead = False
        self.switch_to = Mock()

    @property
    def current_url(self):
        if self.dead:
            raise WebDriverException("invalid session id")
        return self.url

    def show(self, locator, element):
        self.elements[locator] = element
        return element

    def hide(self, locator):
        self.elements.pop(locator, None)

    def get(self, url):
        if self.dead:
            raise WebDriverException("invalid session id")
        self.visited.append(url)
        self.url = self.redirects.get(url, url)

    def refresh(self):
        self.refreshes += 1

    def find_element(self, by, value):
        found = self.elements.get((by, value))
        if not found:
            raise NoSuchElementException(f"{by}={value}")
        return found[0] if isinstance(found, list) else found

    def find_elements(self, by, value):
        found = self.elements.get((by, value), [])
        return list(found) if isinstance(found, list) else [found]

    def execute_script(self, script, *args):
        self.scripts.append((script, args))
        if script == "arguments[0].click()":
            args[0].click()
        elif script == "arguments[0].remove()":
            for locator, element in list(self.elements.items()):
                if element is args[0]:
                    del self.elements[locator]

    def quit(self):
        self.quit_called = True


@pytest.fixture
def fast_config():
    """Configuration with tiny budgets so loops end quickly."""
    return AutomationConfiguration(
        long_wait_seconds=0.05,
        short_wait_seconds=0.01,
        poll_interval_seconds=0.01,
        max_task_attempts=2,
        max_activation_clicks=5,
        max_missing_ticks=5,
        max_url_poll_ticks=20
    )


@pytest.fixture
def sleeps():
    """Records requested pauses instead of sleeping."""
    return []


@pytest.fixture
def fake_driver():
    return FakeDriver()


@pytest.fixture
def waiter(fake_driver, fast_config, sleeps):
    return ElementWaiter(fake_driver, fast_config.wait_budget, sleep=sleeps.append)


@pytest.fixture
def executor(fake_driver, waiter, fast_config):
    return ActionExecutor(fake_driver, waiter, fast_config)


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Setup logging for tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
