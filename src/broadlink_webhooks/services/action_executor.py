"""
Action executor for IFTTT's AJAX-driven Applet wizard.

A single click is unreliable against a page that is re-rendered
asynchronously: a click issued a moment too early lands on an element that is
about to be replaced and is silently lost. The executor keeps activating the
element while it exists and watches the URL until the expected page shows up.
"""

import logging
import re
from typing import Callable, Optional, Sequence

from selenium.webdriver.common.keys import Keys
from selenium.common.exceptions import (
    ElementClickInterceptedException,
    ElementNotInteractableException,
    StaleElementReferenceException,
    WebDriverException
)

from ..core.errors import ConditionNotMetError, ServiceNotConnectedError
from ..core.models import (
    ActionOutcome,
    ActionStatus,
    ActivationMethod,
    AutomationConfiguration,
    WaitClass
)
from .element_waiter import ElementWaiter, Locator


logger = logging.getLogger(__name__)

CONNECT_SERVICE_URL_PREFIX = "https://ifttt.com/create/connect-"

_SID_PATTERN = re.compile(r"[?&]sid=(\d+)")

TRANSIENT_ACTIVATION_ERRORS = (
    StaleElementReferenceException,
    ElementClickInterceptedException,
    ElementNotInteractableException
)

UrlCondition = Callable[[str], bool]


def sid_from_url(url: str) -> int:
    """Return the wizard step counter ("sid" query parameter), or -1 when absent."""
    match = _SID_PATTERN.search(url or "")
    return int(match.group(1)) if match else -1


def next_expected_sid(url: str) -> int:
    sid = sid_from_url(url)
    return sid + 1 if sid >= 0 else 0


def url_sid_at_least(expected_sid: int) -> UrlCondition:
    """Condition met once the URL's sid reaches (or skips past) expected_sid."""
    def condition(url: str) -> bool:
        return sid_from_url(url) >= expected_sid
    condition.__name__ = f"sid>={expected_sid}"
    return condition


def element_gone(url: str) -> bool:
    """Condition met as soon as the element has been observed missing."""
    return True


class ActionExecutor:
    """Drives one logical user action until its post-condition holds."""

    def __init__(self, driver, waiter: ElementWaiter, config: AutomationConfiguration):
        self.driver = driver
        self.waiter = waiter
        self.config = config

    def remove_elements(self, locators: Sequence[Locator]):
        """Best-effort removal of elements that could intercept a stray click."""
        for locator in locators:
            element = self.waiter.find(locator, WaitClass.SHORT)
            if element is None:
                continue
            try:
                self.driver.execute_script("arguments[0].remove()", element)
                logger.debug(f"Removed interfering element {locator}")
            except WebDriverException as e:
                logger.debug(f"Could not remove interfering element {locator}: {e}")

    def activate(self, element, method: ActivationMethod = ActivationMethod.CLICK):
        """Activate an element with the given method."""
        if method is ActivationMethod.SCRIPT:
            self.driver.execute_script("arguments[0].click()", element)
        elif method is ActivationMethod.ENTER:
            element.send_keys(Keys.ENTER)
        else:
            element.click()

    def activate_until_condition(
        self,
        name: str,
        locator: Locator,
        method: ActivationMethod = ActivationMethod.CLICK,
        condition: Optional[UrlCondition] = None,
        interfering: Sequence[Locator] = (),
        service_gate: Optional[str] = None
    ) -> ActionOutcome:
        """
        Activate the element at locator until condition holds for the current URL.

        The loop is bounded by two counters: clicks issued and ticks during
        which the element was missing. Success requires the condition to hold
        after the element has been seen missing at least once. Running out of
        either budget ends the loop with a DEGRADED outcome (or
        ConditionNotMetError when strict conditions are configured); the
        caller verifies the resulting page on its own.

        Args:
            name: Human readable name of the element, used in logs
            locator: Selenium (By, value) locator
            method: How to activate the element
            condition: URL predicate; defaults to "element is gone"
            interfering: Locators of elements to strip from the page first
            service_gate: IFTTT service name; a redirect to the service
                connection gate then raises ServiceNotConnectedError

        Returns:
            ActionOutcome describing how the loop ended
        """
        condition = condition or element_gone
        if interfering:
            self.remove_elements(interfering)

        max_clicks = self.config.max_activation_clicks
        max_missing = self.config.max_missing_ticks
        clicks = 0
        missing_ticks = 0
        current_url = self.driver.current_url

        for _ in range(max_clicks + max_missing):
            element = self.waiter.find(locator, WaitClass.SHORT)

            if element is not None:
                if clicks == 0 or missing_ticks == 0:
                    try:
                        self.activate(element, method)
                        clicks += 1
                        logger.debug(f"Activated {name} ({clicks}) - URL={current_url}")
                    except TRANSIENT_ACTIVATION_ERRORS as e:
                        logger.debug(f"Transient error activating {name}: {type(e).__name__}")
                else:
                    # Reappearance after disappearing is a render artifact
                    clicks += 1
                    logger.debug(f"{name} reappeared after {missing_ticks} missing ticks - not activating")
            else:
                missing_ticks += 1

            current_url = self.driver.current_url

            if service_gate and current_url.startswith(CONNECT_SERVICE_URL_PREFIX):
                raise ServiceNotConnectedError(service_gate)

            if missing_ticks >= 1 and condition(current_url):
                return ActionOutcome(name, ActionStatus.OK, clicks, missing_ticks, current_url)

            if clicks >= max_clicks or missing_ticks >= max_missing:
                break

            self.waiter.pause()

        return self._exhausted(name, clicks, missing_ticks, current_url)

    def activate_until_sid_incremented(
        self,
        name: str,
        locator: Locator,
        method: ActivationMethod = ActivationMethod.CLICK,
        interfering: Sequence[Locator] = (),
        service_gate: Optional[str] = None
    ) -> ActionOutcome:
        """Activate a wizard button until the URL's sid moves past its current value."""
        expected_sid = next_expected_sid(self.driver.current_url)
        return self.activate_until_condition(
            name,
            locator,
            method=method,
            condition=url_sid_at_least(expected_sid),
            interfering=interfering,
            service_gate=service_gate
        )

    def _exhausted(self, name: str, clicks: int, missing_ticks: int, url: str) -> ActionOutcome:
        message = (
            f"{name}: gave up waiting for the expected page after "
            f"{clicks} clicks and {missing_ticks} missing ticks - URL={url}"
        )
        if self.config.strict_conditions:
            raise ConditionNotMetError(message)

        logger.warning(f"{message} - continuing")
        return ActionOutcome(name, ActionStatus.DEGRADED, clicks, missing_ticks, url)
