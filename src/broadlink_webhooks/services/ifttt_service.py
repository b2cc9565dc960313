"""
IFTTT page flows for Webhooks Applets that control BroadLink.

Every public method is one retryable operation: it starts from a fresh page
load, so a failed attempt can simply be run again. Fatal conditions (a
service not connected, the Applet quota reached) are raised straight through.
"""

import logging
from typing import Dict, List, Optional

from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.support import expected_conditions as EC
from selenium.common.exceptions import WebDriverException

from ..core.errors import (
    AppletQuotaExceededError,
    ElementNotFoundError,
    ServerErrorPageError,
    ServiceNotConnectedError,
    UnexpectedPageStateError
)
from ..core.models import (
    APPLET_URL_MARKER,
    ActionOutcome,
    ActivationMethod,
    AppletGroup,
    AppletState,
    AutomationConfiguration,
    AutomationEntity,
    DeletionStatus,
    LocalTarget,
    TargetKind,
    WaitClass,
    applet_id_from_url,
    parse_display_name
)
from . import ifttt_pages as pages
from .action_executor import CONNECT_SERVICE_URL_PREFIX, next_expected_sid, sid_from_url
from .element_waiter import Locator
from .reconciliation import name_sort_key, sort_entities
from .session_manager import BrowserSession
from .task_retry import with_retries


logger = logging.getLogger(__name__)

DISCOVERY_EVENT_NAME = "FakeEventName-ToRetrieveRealDeviceAndSceneNames"

WEBHOOKS_SERVICE = "Webhooks Service"
BROADLINK_SERVICE = "BroadLink Service"


def xpath_literal(value: str) -> str:
    """Quote a string for use inside an XPath expression."""
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{part}"' for part in parts) + ")"


def target_option_locator(name: str) -> Locator:
    return (By.XPATH, f'//select[@name="fields[deviceinfo]"]/option[text()={xpath_literal(name)}]')


def generated_applet_title(target: LocalTarget, state: AppletState) -> str:
    """The title IFTTT proposes for a new Applet before it is renamed."""
    event_name = target.event_name(state)
    if target.is_scene:
        action = f"the {target.name} will turn on"
    else:
        action = f"turn {state.value.lower()} {target.name}"
    return f'If Maker Event "{event_name}", then {action}'


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


class IftttAppletService:
    """Reads and changes Webhooks Applets for BroadLink through the IFTTT website."""

    def __init__(self, session: BrowserSession, config: AutomationConfiguration):
        self.session = session
        self.config = config
        self.driver = session.driver
        self.waiter = session.waiter
        self.executor = session.executor

    def _retry(self, operation, description: str):
        return with_retries(operation, description, self.config.max_task_attempts, log=logger)

    def _method(self, safari_method: ActivationMethod) -> ActivationMethod:
        """Safari ignores plain clicks on some wizard elements."""
        return safari_method if self.session.choice.is_safari else ActivationMethod.CLICK

    def _load(self, url: str):
        self.driver.get(url)
        pages.check_for_server_error_page(self.waiter)

    def _check_quota(self):
        current_url = self.driver.current_url
        if current_url.startswith(pages.PLANS_URL_PREFIX):
            raise AppletQuotaExceededError(current_url)

    def _click_wizard(
        self,
        name: str,
        locator: Locator,
        safari_method: ActivationMethod = ActivationMethod.CLICK,
        service_gate: Optional[str] = None
    ) -> ActionOutcome:
        interfering = pages.interfering_elements_for(self.driver.current_url)
        outcome = self.executor.activate_until_sid_incremented(
            name,
            locator,
            method=self._method(safari_method),
            interfering=interfering,
            service_gate=service_gate
        )
        self._check_quota()
        return outcome

    def _search(self, text: str):
        search_field = self.waiter.require(pages.SERVICE_SEARCH_FIELD, "Service Search Field")
        search_field.clear()
        search_field.send_keys(text)

    def retrieve_webhooks_key(self) -> str:
        """Read the Webhooks key from the Webhooks service settings page."""
        key = self._retry(self._retrieve_webhooks_key, "RETRIEVING WEBHOOKS KEY")
        logger.info(f"IFTTT Webhooks Key: {key}")
        return key

    def _retrieve_webhooks_key(self) -> str:
        self._load(pages.WEBHOOKS_SETTINGS_URL)

        if self.driver.current_url == pages.WEBHOOKS_SERVICE_URL:
            # Redirected away from settings, check the service is connected
            if self.waiter.find(pages.WEBHOOKS_CONNECT_LINK, WaitClass.SHORT) is not None:
                raise ServiceNotConnectedError(WEBHOOKS_SERVICE)

        key_element = self.waiter.require(pages.WEBHOOKS_KEY_SPAN, "Webhooks Key")
        key = key_element.text.replace(pages.WEBHOOKS_KEY_URL_PREFIX, "").strip()
        if not key:
            raise UnexpectedPageStateError("WEBHOOKS KEY IS EMPTY")
        return key

    def scan_existing_applets(self, group: AppletGroup) -> List[AutomationEntity]:
        """List the Webhooks Applets for BroadLink created by this tool, restricted to the group."""
        return self._retry(lambda: self._scan_existing_applets(group),
                           "RETRIEVING EXISTING WEBHOOKS APPLETS FOR BROADLINK")

    def _scan_existing_applets(self, group: AppletGroup) -> List[AutomationEntity]:
        self._load(pages.BROADLINK_SERVICE_URL)

        # One of these sections is always present once the page has loaded
        self.waiter.require(pages.SERVICE_SECTIONS, "BroadLink Service Page")

        cards = self.waiter.find_all(pages.APPLET_CARD_LINKS, WaitClass.SHORT)
        logger.debug(f"Detected {len(cards)} total BroadLink Applets")

        if not cards and self.waiter.find(pages.BROADLINK_CONNECT_LINK, WaitClass.SHORT) is not None:
            raise ServiceNotConnectedError(BROADLINK_SERVICE)

        entities: Dict[str, AutomationEntity] = {}
        url_counts = {state: 0 for state in AppletState}
        for card in cards:
            try:
                entity, url_state = self._read_applet_card(card)
            except WebDriverException as e:
                logger.debug(f"Failed to get Applet info: {type(e).__name__}")
                continue

            if entity is None or not group.includes(entity.kind):
                continue

            entities[entity.applet_id] = entity
            if url_state is not None:
                url_counts[url_state] += 1

        self._log_applet_counts(list(entities.values()), url_counts, group)
        return sort_entities(entities.values())

    def _read_applet_card(self, card):
        permissions = card.find_element(*pages.CARD_PERMISSIONS)
        if permissions.find_element(*pages.CARD_TRIGGER_SERVICE).get_attribute("title") != "Webhooks":
            return None, None
        if permissions.find_element(*pages.CARD_ACTION_SERVICE).get_attribute("title") != "BroadLink":
            return None, None

        title = card.find_element(*pages.CARD_TITLE).text
        if parse_display_name(title) is None:
            return None, None

        href = card.get_attribute("href") or ""
        applet_id = applet_id_from_url(href)
        if applet_id is None:
            return None, None

        url_state = None
        for state in AppletState:
            if f"{APPLET_URL_MARKER}{state.value.lower()}-" in href:
                url_state = state
                break

        return AutomationEntity(applet_id, title), url_state

    def _log_applet_counts(self, entities: List[AutomationEntity], url_counts, group: AppletGroup):
        lines = [f"{_plural(len(entities), 'Existing Webhooks Applet')} for BroadLink Detected"]
        if group.includes_devices:
            lines.append(f"\t{_plural(url_counts[AppletState.ON], 'Turn Device On Applet')}")
            lines.append(f"\t{_plural(url_counts[AppletState.OFF], 'Turn Device Off Applet')}")
        else:
            lines.append("\tCHOSE NOT TO DETECT EXISTING WEBHOOKS APPLETS FOR DEVICES")
        if group.includes_scenes:
            lines.append(f"\t{_plural(url_counts[AppletState.SCENE], 'Scene Applet')}")
        else:
            lines.append("\tCHOSE NOT TO DETECT EXISTING WEBHOOKS APPLETS FOR SCENES")
        logger.info("\n".join(lines))

        counted = sum(url_counts.values())
        if counted != len(entities):
            logger.warning(
                f"WARNING: TOTAL EXISTING APPLETS COUNT ({len(entities)}) != "
                f"ON APPLETS + OFF APPLETS + SCENE APPLETS COUNT ({counted})")

    def setup_applet_wizard(self, event_name: str, is_scene: bool):
        """
        Walk the Applet wizard up to the "Complete action fields" page.

        Each step is driven by the action executor until IFTTT advances the
        wizard's sid, then verified by the heading of the next step.
        """
        self._load(pages.CREATE_URL)
        self.waiter.require(pages.CREATE_HEADING, "Create Applet Page")

        self._click_wizard("THIS", pages.THIS_THAT_BUTTON)
        self.waiter.require(pages.CHOOSE_SERVICE_HEADING, "Choose Trigger Service Page")

        self._search("Webhooks")
        self._click_wizard("Webhooks Service", pages.WEBHOOKS_SERVICE_LINK, service_gate=WEBHOOKS_SERVICE)
        self.waiter.require(pages.CHOOSE_TRIGGER_HEADING, "Choose Trigger Page")

        self._click_wizard("Receive a Web Request Trigger", pages.WEB_REQUEST_TRIGGER, ActivationMethod.SCRIPT)
        self.waiter.require(pages.TRIGGER_FIELDS_HEADING, "Complete Trigger Fields Page")

        event_field = self.waiter.require(pages.TEXT_AREA, "Webhooks Event Name Field")
        event_field.clear()
        event_field.send_keys(event_name)
        if event_name != DISCOVERY_EVENT_NAME:
            logger.info(f"\tWebhooks Event Name: {event_name}")

        self._click_wizard("Create Trigger", pages.CREATE_TRIGGER_BUTTON, ActivationMethod.ENTER)
        self.waiter.require(pages.THAT_LOGO, "Choose Action Step")

        self._click_wizard("THAT", pages.THIS_THAT_BUTTON, ActivationMethod.ENTER)
        self.waiter.require(pages.CHOOSE_ACTION_SERVICE_HEADING, "Choose Action Service Page")

        self._search("BroadLink")
        self._click_wizard("BroadLink Service", pages.BROADLINK_SERVICE_LINK, ActivationMethod.SCRIPT,
                           service_gate=BROADLINK_SERVICE)
        self.waiter.require(pages.CHOOSE_ACTION_HEADING, "Choose Action Page")

        if is_scene:
            self._click_wizard("Scene Control Action", pages.SCENE_CONTROL_ACTION, ActivationMethod.SCRIPT)
        else:
            self._click_wizard("Turn Device On or Off Action", pages.DEVICE_POWER_ACTION)
        self.waiter.require(pages.ACTION_FIELDS_HEADING, "Complete Action Fields Page")

    def discover_targets(self, group: AppletGroup) -> List[LocalTarget]:
        """Read the current BroadLink device and scene names from the wizard's action fields."""
        return self._retry(lambda: self._discover_targets(group), "RETRIEVING BROADLINK DEVICES AND SCENES")

    def _discover_targets(self, group: AppletGroup) -> List[LocalTarget]:
        self.setup_applet_wizard(DISCOVERY_EVENT_NAME, is_scene=not group.includes_devices)

        targets: List[LocalTarget] = []

        if group.includes_devices:
            device_names = self._read_target_options()
            targets.extend(LocalTarget(name, TargetKind.DEVICE) for name in device_names)
            logger.info(f"{_plural(len(device_names), 'BroadLink Device')} Detected")

            if group.includes_scenes:
                self._go_back_to_choose_action()
                self._click_wizard("Scene Control Action", pages.SCENE_CONTROL_ACTION, ActivationMethod.SCRIPT)
                self.waiter.require(pages.ACTION_FIELDS_HEADING, "Complete Action Fields Page")
        else:
            logger.info("CHOSE NOT TO DETECT DEVICES IN BROADLINK")

        if group.includes_scenes:
            scene_names = self._read_target_options()
            targets.extend(LocalTarget(name, TargetKind.SCENE) for name in scene_names)
            logger.info(f"{_plural(len(scene_names), 'BroadLink Scene')} Detected")
        else:
            logger.info("CHOSE NOT TO DETECT SCENES IN BROADLINK")

        return targets

    def _read_target_options(self) -> List[str]:
        self.waiter.require(pages.TARGET_OPTIONS_LOADED, "Loaded Device/Scene Options")
        names = [option.text for option in self.waiter.find_all(pages.TARGET_OPTIONS, WaitClass.LONG)]
        if names == [pages.UNAVAILABLE_OPTION]:
            return []
        return sorted(names, key=name_sort_key)

    def _go_back_to_choose_action(self):
        # Clicked exactly once, repeated clicks could go back several pages
        expected_sid = next_expected_sid(self.driver.current_url)
        back_button = self.waiter.require(pages.BACK_BUTTON, "Back Button")
        self.executor.activate(back_button, self._method(ActivationMethod.SCRIPT))

        def reached_expected_sid() -> bool:
            current_url = self.driver.current_url
            if current_url.startswith(CONNECT_SERVICE_URL_PREFIX):
                raise ServiceNotConnectedError(BROADLINK_SERVICE)
            return sid_from_url(current_url) >= expected_sid

        if not self.waiter.poll_until(reached_expected_sid, self.config.max_url_poll_ticks):
            logger.warning(f"Back button did not reach sid {expected_sid} - URL={self.driver.current_url}")

        self.waiter.require(pages.CHOOSE_ACTION_HEADING, "Choose Action Page")

    def create_applet(self, target: LocalTarget, state: AppletState, webhooks_key: str) -> AutomationEntity:
        """
        Create one Webhooks Applet for a target and state.

        Preparing the Applet and finishing it are retried separately so a
        failed finish never restarts the wizard and creates a duplicate.
        """
        event_name = target.event_name(state)
        self._retry(lambda: self._prepare_applet(target, state),
                    f'SETTING UP WEBHOOKS APPLET FOR "{event_name}"')
        entity = self._retry(lambda: self._finish_applet(target, state),
                             f'FINISHING WEBHOOKS APPLET FOR "{event_name}"')

        logger.info(f"\tFinal Applet Title: {entity.display_name}")
        logger.info(f"\tTrigger Applet URL: {entity.trigger_url(webhooks_key)}")
        return entity

    def _prepare_applet(self, target: LocalTarget, state: AppletState):
        self.setup_applet_wizard(target.event_name(state), target.is_scene)

        option = self.waiter.require(target_option_locator(target.name), f'"{target.name}" Option')
        option.click()

        if not target.is_scene:
            # Always wait for the states to load, but only "Off" needs selecting
            off_option = self.waiter.require(pages.OFF_STATE_OPTION, "Device State Options")
            if state is AppletState.OFF:
                off_option.click()

        self._click_wizard("Create Action", pages.CREATE_ACTION_BUTTON, ActivationMethod.ENTER)
        self.waiter.require(pages.REVIEW_HEADING, "Review and Finish Page")

        title_field = self.waiter.require(pages.TEXT_AREA, "Applet Title Field")
        original_title = title_field.text
        expected_title = generated_applet_title(target, state)
        if original_title != expected_title:
            raise UnexpectedPageStateError(
                f'ORIGINAL APPLET TITLE NOT CORRECT ("{original_title}" != "{expected_title}")')

        # clear() alone does not always update the character count
        title_field.clear()
        title_field.send_keys(Keys.ENTER, Keys.BACK_SPACE)
        title_field.clear()
        title_field.send_keys(target.display_name(state))
        logger.info(f"\tOriginal Applet Title: {original_title}")

        try:
            toggle = self.waiter.require(pages.NOTIFICATION_TOGGLE, "Disable Notifications Toggle")
            self.executor.activate(toggle, self._method(ActivationMethod.SCRIPT))
        except (ElementNotFoundError, WebDriverException) as e:
            logger.error(
                "ERROR CLICKING DISABLE NOTIFICATIONS TOGGLE - "
                f"BUT IF APPLET CREATION CONTINUES, NOTIFICATIONS ACTUALLY ARE DISABLED: {e}")

        self.waiter.require(pages.NOTIFICATION_DISABLED, "Disabled Notifications Toggle")

    def _finish_applet(self, target: LocalTarget, state: AppletState) -> AutomationEntity:
        event_name = target.event_name(state)
        desired_title = target.display_name(state)

        if not self.driver.current_url.startswith(pages.APPLET_URL_PREFIX):
            # Clicked once per attempt so a slow page never yields duplicate Applets
            finish_button = self.waiter.require(pages.FINISH_BUTTON, "Finish Button")
            self.executor.activate(finish_button, self._method(ActivationMethod.ENTER))
            self._wait_for_applet_page()

        current_url = self.driver.current_url
        if current_url.startswith(pages.PLANS_URL_PREFIX):
            raise AppletQuotaExceededError(current_url)
        if not current_url.startswith(pages.APPLET_URL_PREFIX):
            raise UnexpectedPageStateError(f'FINAL APPLET URL NOT CORRECT "{event_name}" - URL={current_url}')

        applet_path = current_url[len(pages.APPLET_URL_PREFIX):].split("?")[0].split("/")[0]
        logger.info(f"\tEdit Applet URL: {pages.APPLET_URL_PREFIX}{applet_path}/edit")

        final_title = self._read_final_title()
        if final_title != desired_title:
            raise UnexpectedPageStateError(f'FINAL APPLET TITLE NOT CORRECT ("{final_title}" != "{desired_title}")')

        applet_id = applet_id_from_url(current_url) or applet_path
        return AutomationEntity(applet_id, final_title)

    def _wait_for_applet_page(self):
        ticks = {"present": 0, "missing": 0}

        def settled() -> bool:
            current_url = self.driver.current_url
            if current_url.startswith(pages.APPLET_URL_PREFIX):
                return True
            if current_url.startswith(pages.PLANS_URL_PREFIX):
                raise AppletQuotaExceededError(current_url)

            if self.waiter.find(pages.FINISH_BUTTON, WaitClass.SHORT) is not None:
                ticks["present"] += 1
            else:
                ticks["missing"] += 1
            logger.debug(f"Waiting for Applet page ({ticks}) - URL={current_url}")

            return (ticks["present"] >= self.config.max_activation_clicks
                    or ticks["missing"] >= self.config.max_missing_ticks)

        self.waiter.poll_until(settled, self.config.max_activation_clicks + self.config.max_missing_ticks)

    def _read_final_title(self) -> Optional[str]:
        for attempt in range(self.config.max_missing_ticks):
            try:
                pages.check_for_server_error_page(self.waiter)
            except ServerErrorPageError as e:
                logger.error(f"ERROR: {e}")
                self.driver.refresh()
                continue

            wait = WaitClass.LONG if attempt == 0 else WaitClass.SHORT
            heading = self.waiter.find(pages.APPLET_TITLE, wait)
            if heading is not None:
                return heading.text

            # Can time out while the browser window is hidden
            logger.error(
                f"ERROR RETRIEVING FINAL APPLET TITLE ({attempt + 1}) - "
                "MAKE SURE WEB BROWSER WINDOW IS VISIBLE AND UNINTERRUPTED")
        return None

    def delete_applet(self, entity: AutomationEntity) -> DeletionStatus:
        """Delete an Applet through its edit page. Applets already gone are reported, not errors."""
        return self._retry(lambda: self._delete_applet(entity), "DELETING WEBHOOKS APPLET")

    def _delete_applet(self, entity: AutomationEntity) -> DeletionStatus:
        self._load(entity.edit_url)

        marker = self.waiter.require(pages.SAVE_OR_MISSING, "Save Button")
        if marker.get_attribute("value") != "Save":
            return DeletionStatus.DOES_NOT_EXIST

        # Only missing when the Applet was deleted after the scan
        delete_link = self.waiter.find(pages.DELETE_LINK, WaitClass.SHORT)
        if delete_link is None:
            return DeletionStatus.NO_DELETE_BUTTON

        self.executor.activate(delete_link, self._method(ActivationMethod.SCRIPT))
        if not self.waiter.wait_until(EC.alert_is_present(), WaitClass.SHORT):
            raise UnexpectedPageStateError(f"DELETE CONFIRMATION NOT SHOWN FOR {entity.display_name}")
        self.driver.switch_to.alert.accept()

        if not self.waiter.poll_until(lambda: self.driver.current_url in pages.POST_LOGIN_URLS,
                                      self.config.max_url_poll_ticks):
            raise UnexpectedPageStateError(
                f"TIMED OUT WAITING FOR DELETION OF {entity.display_name} - URL={self.driver.current_url}")

        return DeletionStatus.DELETED
