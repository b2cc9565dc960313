"""Error taxonomy for the BroadLink Webhooks automation.

Transient driver errors (stale elements, elements briefly absent) never leave
the element waiter and action executor. Everything that crosses a component
boundary is one of the classes below.
"""

from typing import Optional


class BroadLinkWebhooksError(Exception):
    """Base class for all errors raised by this package."""
    pass


class RecoverableOperationError(BroadLinkWebhooksError):
    """An operation failed in a way that is worth retrying from its start."""
    pass


class ElementNotFoundError(RecoverableOperationError):
    """A required element did not show up within its wait budget."""

    def __init__(self, description: str, url: Optional[str] = None):
        self.description = description
        self.url = url
        message = f"{description} NOT FOUND"
        if url:
            message += f" - URL={url}"
        super().__init__(message)


class ServerErrorPageError(RecoverableOperationError):
    """IFTTT answered with an nginx error page."""

    def __init__(self, title: str = "Unknown Server Error"):
        self.title = title
        super().__init__(f'HIT "{title}" - NEED TO RELOAD PAGE')


class WrongCredentialsError(RecoverableOperationError):
    """IFTTT rejected the username or password."""

    def __init__(self):
        super().__init__("INCORRECT IFTTT USERNAME OR PASSWORD")


class UnexpectedPageStateError(RecoverableOperationError):
    """A page did not show what the flow expected (e.g. a wrong Applet title)."""
    pass


class ConditionNotMetError(RecoverableOperationError):
    """An action exhausted its budgets while strict conditions are enabled."""
    pass


class FatalError(BroadLinkWebhooksError):
    """Aborts the current task without consuming retry budget."""
    pass


class ServiceNotConnectedError(FatalError):
    """A required IFTTT service is not connected to the account."""

    def __init__(self, service: str):
        self.service = service
        super().__init__(f'"{service}" NOT CONNECTED IN IFTTT')


class AppletQuotaExceededError(FatalError):
    """The IFTTT account cannot hold any more Applets."""

    def __init__(self, url: Optional[str] = None):
        self.url = url
        super().__init__(f"IFTTT APPLET LIMIT REACHED - URL={url}")


class OperatorCanceledError(BroadLinkWebhooksError):
    """A prompt was dismissed without input."""
    pass


class QuitRequested(OperatorCanceledError):
    """The operator chose to quit."""
    pass


class EnvironmentSetupError(BroadLinkWebhooksError):
    """The local browser automation environment is not usable."""
    pass


class WebDriverMissingError(EnvironmentSetupError):
    """The WebDriver executable for the chosen browser is unavailable."""

    def __init__(self, browser: str, detail: str = ""):
        self.browser = browser
        self.detail = detail
        super().__init__(f"{browser.upper()} WEBDRIVER AUTOMATION IS NOT ENABLED")


class SafariAutomationDisabledError(EnvironmentSetupError):
    """Safari's "Allow Remote Automation" option is turned off."""

    def __init__(self):
        super().__init__("SAFARI WEBDRIVER AUTOMATION IS NOT ENABLED")
