"""IFTTT URLs, locators and page checks shared by the session and Applet flows."""

import logging

from selenium.webdriver.common.by import By
from selenium.common.exceptions import WebDriverException

from ..core.errors import ServerErrorPageError
from ..core.models import WaitClass
from .element_waiter import ElementWaiter


logger = logging.getLogger(__name__)

# Locations
HOME_URL = "https://ifttt.com/"
MY_APPLETS_URL = "https://ifttt.com/my_applets"
POST_LOGIN_URLS = (HOME_URL, MY_APPLETS_URL)
LOGIN_URL = "https://ifttt.com/login?wp_=1"
SESSION_URL = "https://ifttt.com/session"
WRONG_CREDENTIALS_URL_PREFIX = "https://ifttt.com/session/new?email="
WEBHOOKS_SETTINGS_URL = "https://ifttt.com/maker_webhooks/settings"
WEBHOOKS_SERVICE_URL = "https://ifttt.com/maker_webhooks"
WEBHOOKS_KEY_URL_PREFIX = "https://maker.ifttt.com/use/"
BROADLINK_SERVICE_URL = "https://ifttt.com/broadlink"
CREATE_URL = "https://ifttt.com/create"
APPLET_URL_PREFIX = "https://ifttt.com/applets/"
PLANS_URL_PREFIX = "https://ifttt.com/plans"
PROJECT_URL = "https://github.com/RandomApplications/broadlink-webhooks"

# Server error page
NGINX_SIGNATURE = (By.XPATH, '//center[starts-with(text(),"nginx/")]')
PAGE_HEADING = (By.TAG_NAME, "h1")

# Login
SIGN_IN_HEADING = (By.XPATH, '//h1[text()="Sign in"]')
USERNAME_FIELD = (By.ID, "user_username")
PASSWORD_FIELD = (By.ID, "user_password")
SIGN_IN_BUTTON = (By.XPATH, '//input[@value="Sign in"]')
TWO_FACTOR_FIELD = (By.ID, "user_tfa_code")

# Services
WEBHOOKS_CONNECT_LINK = (By.XPATH, '//a[contains(@href,"/maker_webhooks/redirect_to_connect")]')
BROADLINK_CONNECT_LINK = (By.XPATH, '//a[contains(@href,"/broadlink/redirect_to_connect")]')
WEBHOOKS_KEY_SPAN = (By.XPATH, f'//span[starts-with(text(),"{WEBHOOKS_KEY_URL_PREFIX}")]')

# Applet cards on the BroadLink service page
SERVICE_SECTIONS = (By.XPATH, '//section[@class="discover_services" or @class="my_services"]')
APPLET_CARD_LINKS = (
    By.XPATH,
    '//section[@class="my_services"]/div/ul[contains(@class,"my-applets")]'
    '/li[contains(@class,"my-web-applet-card")]/a[contains(@class,"applet-card-body")]'
)
CARD_PERMISSIONS = (By.XPATH, './/div[@class="meta"]/div[@class="works-with"]/ul[@class="permissions"]')
CARD_TRIGGER_SERVICE = (By.XPATH, ".//li[1]/img")
CARD_ACTION_SERVICE = (By.XPATH, ".//li[2]/img")
CARD_TITLE = (By.XPATH, './/div[@class="content"]/span[contains(@class,"title")]/span/div/div')

# Applet wizard
CREATE_HEADING = (By.XPATH, '//h1[text()="Create your own"]')
THIS_THAT_BUTTON = (By.CLASS_NAME, "this-that")
CHOOSE_SERVICE_HEADING = (By.XPATH, '//h2[text()="Choose a service"]')
SERVICE_SEARCH_FIELD = (By.ID, "search")
WEBHOOKS_SERVICE_LINK = (By.LINK_TEXT, "Webhooks")
CHOOSE_TRIGGER_HEADING = (By.XPATH, '//h2[text()="Choose trigger"]')
WEB_REQUEST_TRIGGER = (By.XPATH, '//span[text()="Receive a web request"]/parent::li')
TRIGGER_FIELDS_HEADING = (By.XPATH, '//h2[text()="Complete trigger fields"]')
TEXT_AREA = (By.TAG_NAME, "textarea")
CREATE_TRIGGER_BUTTON = (By.XPATH, '//input[@value="Create trigger"]')
THAT_LOGO = (By.XPATH, '//div[@class="if-this-then-that"]/div[@class="subelement"]/span[@class="logo"]')
CHOOSE_ACTION_SERVICE_HEADING = (By.XPATH, '//h2[text()="Choose action service"]')
BROADLINK_SERVICE_LINK = (By.LINK_TEXT, "BroadLink")
CHOOSE_ACTION_HEADING = (By.XPATH, '//h2[text()="Choose action"]')
SCENE_CONTROL_ACTION = (By.XPATH, '//span[text()="Scene control"]/parent::li')
DEVICE_POWER_ACTION = (By.XPATH, '//span[text()="Turn device on or off"]/parent::li')
ACTION_FIELDS_HEADING = (By.XPATH, '//h2[text()="Complete action fields"]')
BACK_BUTTON = (By.XPATH, '//div[contains(@class,"ifttt-back-button")]/a')
TARGET_OPTIONS_LOADED = (By.XPATH, '//select[@name="fields[deviceinfo]"]/option[text()!="Loading…"]')
TARGET_OPTIONS = (By.XPATH, '//select[@name="fields[deviceinfo]"]/option')
OFF_STATE_OPTION = (By.XPATH, '//select[@name="fields[PowerControl_ChangePowerState_string]"]/option[2]')
CREATE_ACTION_BUTTON = (By.XPATH, '//input[@value="Create action"]')
REVIEW_HEADING = (By.XPATH, '//h2[text()="Review and finish"]')
NOTIFICATION_TOGGLE = (
    By.XPATH,
    '//div[@class="switch-ui "]/parent::div[@class="switch"]/parent::div[@class="notification"]'
)
NOTIFICATION_DISABLED = (
    By.XPATH,
    '//div[@class="notification"]/div[@class="switch"]/div[@class="switch-ui disabled"]'
)
FINISH_BUTTON = (By.XPATH, '//input[@value="Finish"]')
APPLET_TITLE = (By.XPATH, '//h1[@class="connection-title"]')

# Applet deletion
SAVE_OR_MISSING = (
    By.XPATH,
    '//input[@value="Save"]|//h1[contains(text(),"The requested page or file does not exist.")]'
)
DELETE_LINK = (By.LINK_TEXT, "Delete")

# Elements that can intercept a click landing while the wizard re-renders
CREATE_PAGE_INTERFERING = ((By.CLASS_NAME, "diy-footer"), (By.TAG_NAME, "footer"))
SUGGESTION_INTERFERING = ((By.XPATH, '//div[contains(@class,"platform-suggestion__platform-suggestion")]'),)
SUGGESTION_PAGE_PREFIXES = (
    "https://ifttt.com/create/if-maker_webhooks?",
    "https://ifttt.com/create/if-receive-a-web-request-then-broadlink?",
)

UNAVAILABLE_OPTION = "Options Unavailable"


def interfering_elements_for(url: str):
    """Locators of elements worth stripping before clicking on the page at url."""
    if url == CREATE_URL:
        return CREATE_PAGE_INTERFERING
    if url and url.startswith(SUGGESTION_PAGE_PREFIXES):
        return SUGGESTION_INTERFERING
    return ()


def check_for_server_error_page(waiter: ElementWaiter):
    """
    Fail fast when IFTTT served an nginx error page instead of the requested one.

    Raises:
        ServerErrorPageError: If the nginx signature is present
    """
    if waiter.find(NGINX_SIGNATURE, WaitClass.SHORT) is None:
        return

    logger.debug('"nginx/" found on likely server error page')

    title = "Unknown Server Error"
    heading = waiter.find(PAGE_HEADING, WaitClass.SHORT)
    if heading is not None:
        try:
            title = heading.text or title
        except WebDriverException:
            pass

    raise ServerErrorPageError(title)
