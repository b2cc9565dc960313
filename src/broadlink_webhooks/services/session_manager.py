"""Browser session ownership and IFTTT authentication."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from selenium import webdriver
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.firefox.options import Options as FirefoxOptions
from selenium.webdriver.firefox.service import Service as FirefoxService
from selenium.common.exceptions import WebDriverException
from webdriver_manager.chrome import ChromeDriverManager
from webdriver_manager.firefox import GeckoDriverManager

from ..core.errors import (
    ElementNotFoundError,
    EnvironmentSetupError,
    SafariAutomationDisabledError,
    UnexpectedPageStateError,
    WebDriverMissingError,
    WrongCredentialsError
)
from ..core.models import (
    AutomationConfiguration,
    BrowserChoice,
    Credentials,
    SessionState,
    WaitClass
)
from .action_executor import ActionExecutor, TRANSIENT_ACTIVATION_ERRORS
from .element_waiter import ElementWaiter
from .ifttt_pages import (
    LOGIN_URL,
    PASSWORD_FIELD,
    POST_LOGIN_URLS,
    SESSION_URL,
    SIGN_IN_BUTTON,
    SIGN_IN_HEADING,
    TWO_FACTOR_FIELD,
    USERNAME_FIELD,
    WRONG_CREDENTIALS_URL_PREFIX,
    check_for_server_error_page
)
from .task_retry import with_retries


logger = logging.getLogger(__name__)

DriverFactory = Callable[[BrowserChoice, AutomationConfiguration], Any]


@dataclass
class BrowserSession:
    """The single browser session owned by the interactive loop."""
    driver: Any
    choice: BrowserChoice
    waiter: ElementWaiter
    executor: ActionExecutor
    state: SessionState = SessionState.LIVE_UNAUTHENTICATED
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.LIVE_AUTHENTICATED

    def close(self):
        """Quit the browser."""
        try:
            if self.driver:
                self.driver.quit()
        except Exception as e:
            logger.warning(f"Error closing {self.choice.value} session: {e}")
        finally:
            self.state = SessionState.ABSENT


def create_webdriver(choice: BrowserChoice, config: AutomationConfiguration):
    """Build a WebDriver for the chosen browser, fetching driver executables with webdriver-manager."""
    if choice.is_safari:
        # Safari windows are not resizable and cannot run headless
        return webdriver.Safari()

    if choice.browser == "firefox":
        options = FirefoxOptions()
        if choice.headless:
            options.add_argument("-headless")
        options.add_argument(f"--width={config.window_width}")
        options.add_argument(f"--height={config.window_height}")
        service = FirefoxService(GeckoDriverManager().install())
        return webdriver.Firefox(service=service, options=options)

    options = ChromeOptions()
    if choice.headless:
        options.add_argument("--headless=new")
    options.add_argument(f"--window-size={config.window_width},{config.window_height}")
    service = ChromeService(ChromeDriverManager().install())
    return webdriver.Chrome(service=service, options=options)


def classify_driver_error(choice: BrowserChoice, error: Exception) -> Optional[EnvironmentSetupError]:
    """Map a driver start-up failure onto an environment error, if it is one."""
    message = str(error)
    if "Develop menu" in message or "Allow Remote Automation" in message:
        return SafariAutomationDisabledError()

    lowered = message.lower()
    if ("executable" in lowered and ("driver" in lowered or "path" in lowered)) \
            or "could not be found" in lowered \
            or "unable to obtain driver" in lowered:
        return WebDriverMissingError(choice.browser, message)

    return None


class SessionManager:
    """
    Owns the browser session and keeps it authenticated with IFTTT.

    The session moves between ABSENT, LIVE_UNAUTHENTICATED and
    LIVE_AUTHENTICATED. A new WebDriver is only built when none exists, the
    current one stopped responding, or the operator picked another browser.
    """

    def __init__(
        self,
        config: AutomationConfiguration,
        prompts,
        driver_factory: Optional[DriverFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
        default_username: Optional[str] = None
    ):
        self.config = config
        self.prompts = prompts
        self.driver_factory = driver_factory or create_webdriver
        self.sleep = sleep
        self.session: Optional[BrowserSession] = None
        self.last_username = default_username
        self.last_password: Optional[str] = None

    @property
    def state(self) -> SessionState:
        if self.session is None:
            return SessionState.ABSENT
        return self.session.state

    def ensure_authenticated_session(self, choice: BrowserChoice) -> BrowserSession:
        """
        Return a live session for the chosen browser that is logged into IFTTT.

        Raises:
            OperatorCanceledError: If the operator dismisses a login prompt
            WrongCredentialsError: If the login keeps being rejected
            EnvironmentSetupError: If the browser cannot be automated
        """
        if self.session is not None and self.session.choice is not choice:
            logger.info(f"Switching browser from {self.session.choice.value} to {choice.value}")
            self.close()

        if self.session is not None and self._probe_authenticated():
            logger.debug("Reusing authenticated browser session")
            return self.session

        credentials = self.prompts.ask_credentials(self.last_username, self.last_password)

        if self.session is None:
            self.session = self._create_session(choice)

        def log_in():
            self._log_in(credentials)

        def on_failure(error: Exception, attempt: int):
            nonlocal credentials
            if isinstance(error, WrongCredentialsError):
                credentials = self.prompts.ask_credentials(credentials.username, None)

        with_retries(log_in, "LOGGING INTO IFTTT", self.config.max_task_attempts, on_failure=on_failure, log=logger)

        self.session.state = SessionState.LIVE_AUTHENTICATED
        self.last_username = credentials.username
        self.last_password = credentials.password
        logger.info(f"Logged into IFTTT as {credentials.username}")
        return self.session

    def close(self):
        """Quit the current browser, if any."""
        if self.session is not None:
            self.session.close()
            self.session = None

    def _probe_authenticated(self) -> bool:
        driver = self.session.driver
        try:
            driver.current_url
        except WebDriverException as e:
            # Quit, or the window was closed
            logger.info(f"Browser session is no longer usable, starting a new one: {type(e).__name__}")
            self.close()
            return False

        try:
            driver.get(LOGIN_URL)
            still_on_login = driver.current_url == LOGIN_URL
        except WebDriverException as e:
            logger.debug(f"Login probe failed: {e}")
            still_on_login = True

        self.session.state = (
            SessionState.LIVE_UNAUTHENTICATED if still_on_login else SessionState.LIVE_AUTHENTICATED)
        return not still_on_login

    def _create_session(self, choice: BrowserChoice) -> BrowserSession:
        logger.info(f"Starting {choice.value} WebDriver session")
        try:
            driver = self.driver_factory(choice, self.config)
        except EnvironmentSetupError:
            raise
        except Exception as e:
            environment_error = classify_driver_error(choice, e)
            if environment_error is not None:
                raise environment_error from e
            logger.error(f"Failed to start {choice.value} WebDriver: {e}")
            raise

        waiter = ElementWaiter(driver, self.config.wait_budget, sleep=self.sleep)
        return BrowserSession(
            driver=driver,
            choice=choice,
            waiter=waiter,
            executor=ActionExecutor(driver, waiter, self.config)
        )

    def _log_in(self, credentials: Credentials):
        driver = self.session.driver
        waiter = self.session.waiter

        driver.get(LOGIN_URL)
        check_for_server_error_page(waiter)

        try:
            waiter.require(SIGN_IN_HEADING, "Sign In Page", WaitClass.LONG)
            self._fill(waiter.require(USERNAME_FIELD, "Username Field", WaitClass.SHORT), credentials.username)
            self._fill(waiter.require(PASSWORD_FIELD, "Password Field", WaitClass.SHORT), credentials.password)
        except (ElementNotFoundError, WebDriverException) as e:
            # The operator may already have signed in from the visible window
            logger.debug(f"Could not fill sign in page: {e}")

        if not waiter.poll_until(lambda: self._advance_login(), self.config.max_url_poll_ticks):
            raise UnexpectedPageStateError(
                f"TIMED OUT WAITING FOR IFTTT LOGIN TO FINISH - URL={waiter.current_url()}")

    def _advance_login(self) -> bool:
        """One tick of the post-submit loop; True once a post-login page is reached."""
        waiter = self.session.waiter
        current_url = self.session.driver.current_url

        if current_url in POST_LOGIN_URLS:
            return True

        if current_url == LOGIN_URL:
            self._click_quietly(waiter.find(SIGN_IN_BUTTON, WaitClass.SHORT))
        elif current_url.startswith(WRONG_CREDENTIALS_URL_PREFIX):
            raise WrongCredentialsError()
        elif current_url == SESSION_URL:
            self._enter_two_factor_code()

        return False

    def _enter_two_factor_code(self):
        waiter = self.session.waiter
        code_field = waiter.find(TWO_FACTOR_FIELD, WaitClass.SHORT)
        if code_field is None:
            return

        try:
            # A filled field means the page has not reloaded since the last prompt
            if not code_field.get_attribute("value"):
                code = self.prompts.ask_two_factor_code()
                if code:
                    self._fill(code_field, code)
        except TRANSIENT_ACTIVATION_ERRORS as e:
            logger.debug(f"Two-step verification field went stale: {type(e).__name__}")
            return

        self._click_quietly(waiter.find(SIGN_IN_BUTTON, WaitClass.SHORT))

    @staticmethod
    def _fill(element, value: str):
        element.clear()
        element.send_keys(value)

    @staticmethod
    def _click_quietly(element):
        if element is None:
            return
        try:
            element.click()
        except TRANSIENT_ACTIVATION_ERRORS as e:
            logger.debug(f"Ignoring transient click failure: {type(e).__name__}")
