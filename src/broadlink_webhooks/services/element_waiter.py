"""Bounded element waits on top of Selenium's WebDriverWait."""

import logging
import time
from typing import Callable, List, Optional, Tuple

from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support.ui import WebDriverWait
from selenium.webdriver.support import expected_conditions as EC
from selenium.common.exceptions import (
    TimeoutException,
    StaleElementReferenceException,
    WebDriverException
)

from ..core.errors import ElementNotFoundError
from ..core.models import WaitBudget, WaitClass


logger = logging.getLogger(__name__)

Locator = Tuple[str, str]


class ElementWaiter:
    """
    Polls the driver for elements or conditions with a bounded timeout.

    Two timeout classes exist: LONG for transitions that get one chance to
    happen (a new page's heading) and SHORT for checks made inside loops,
    where a fast "not there yet" is more useful than waiting.
    """

    def __init__(self, driver, budget: WaitBudget, sleep: Callable[[float], None] = time.sleep):
        self.driver = driver
        self.budget = budget
        self.sleep = sleep

    def _wait(self, wait: WaitClass) -> WebDriverWait:
        return WebDriverWait(
            self.driver,
            self.budget.timeout_for(wait),
            poll_frequency=self.budget.poll_interval,
            ignored_exceptions=(StaleElementReferenceException,)
        )

    def find(self, locator: Locator, wait: WaitClass = WaitClass.SHORT) -> Optional[WebElement]:
        """Return the first element matching the locator, or None on timeout."""
        try:
            return self._wait(wait).until(EC.presence_of_element_located(locator))
        except TimeoutException:
            return None

    def find_all(self, locator: Locator, wait: WaitClass = WaitClass.SHORT) -> List[WebElement]:
        """Return all elements matching the locator, or an empty list on timeout."""
        try:
            return self._wait(wait).until(EC.presence_of_all_elements_located(locator))
        except TimeoutException:
            return []

    def require(self, locator: Locator, description: str, wait: WaitClass = WaitClass.LONG) -> WebElement:
        """
        Return the element matching the locator or fail the operation.

        Raises:
            ElementNotFoundError: If the element does not show up in time
        """
        element = self.find(locator, wait)
        if element is None:
            logger.debug(f"{description} not found with {locator}")
            raise ElementNotFoundError(description, self.current_url())
        return element

    def wait_until(self, predicate: Callable[[object], bool], wait: WaitClass = WaitClass.SHORT) -> bool:
        """Wait for a driver predicate to become truthy."""
        try:
            return bool(self._wait(wait).until(predicate))
        except TimeoutException:
            return False

    def poll_until(self, check: Callable[[], bool], max_ticks: int) -> bool:
        """
        Evaluate check() up to max_ticks times, pausing between evaluations.

        Returns:
            True as soon as check() holds, False once the ticks are used up
        """
        for tick in range(max_ticks):
            if check():
                return True
            if tick < max_ticks - 1:
                self.pause()
        return False

    def pause(self):
        self.sleep(self.budget.poll_interval)

    def current_url(self) -> Optional[str]:
        try:
            return self.driver.current_url
        except WebDriverException:
            return None
