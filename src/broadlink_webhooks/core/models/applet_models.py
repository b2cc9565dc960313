"""Data models for the BroadLink Webhooks Applet automation."""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Any
from enum import Enum


IFTTT_BASE_URL = "https://ifttt.com"
APPLET_TITLE_PREFIX = "Webhooks Event: "
EVENT_NAME_PREFIX = "BroadLink-"
TRIGGER_URL_TEMPLATE = "https://maker.ifttt.com/trigger/{event_name}/with/key/{key}"
APPLET_URL_MARKER = "-webhooks-event-broadlink-"

_WHITESPACE = re.compile(r"\s")


class TargetKind(Enum):
    """Kinds of controllable objects defined in BroadLink."""
    DEVICE = "device"
    SCENE = "scene"


class AppletState(Enum):
    """States a Webhooks Applet can trigger."""
    ON = "On"
    OFF = "Off"
    SCENE = "Scene"

    @classmethod
    def for_kind(cls, kind: TargetKind) -> List["AppletState"]:
        """States that apply to a target kind, in creation order."""
        if kind is TargetKind.SCENE:
            return [cls.SCENE]
        return [cls.ON, cls.OFF]


class AppletGroup(Enum):
    """BroadLink groups an operator can run a task against."""
    DEVICES_AND_SCENES = "Devices and Scenes"
    DEVICES_ONLY = "Devices Only"
    SCENES_ONLY = "Scenes Only"

    @property
    def includes_devices(self) -> bool:
        return self is not AppletGroup.SCENES_ONLY

    @property
    def includes_scenes(self) -> bool:
        return self is not AppletGroup.DEVICES_ONLY

    def includes(self, kind: TargetKind) -> bool:
        """Check whether targets of this kind are in scope for the group."""
        if kind is TargetKind.SCENE:
            return self.includes_scenes
        return self.includes_devices

    @property
    def states(self) -> List[AppletState]:
        states = []
        if self.includes_devices:
            states.extend([AppletState.ON, AppletState.OFF])
        if self.includes_scenes:
            states.append(AppletState.SCENE)
        return states


class Task(Enum):
    """Tasks offered by the interactive menu."""
    CREATE_APPLETS = "Create Webhooks Applets"
    DELETE_ORPHANED_APPLETS = "Delete Webhooks Applets Not in BroadLink"
    DELETE_APPLETS = "Delete Webhooks Applets"
    OUTPUT_SUMMARY = "Output Summary"
    GENERATE_HOMEBRIDGE_IFTTT = "Generate homebridge-ifttt Configuration"
    GENERATE_HTTP_SWITCH = "Generate homebridge-http-switch Configuration"
    GENERATE_JSON = "Generate JSON Details"
    OPEN_EDIT_URLS = "Open Edit Applet URLs"
    OPEN_PROJECT_PAGE = 'Open "broadlink-webhooks" on GitHub'

    @property
    def needs_browser(self) -> bool:
        return self is not Task.OPEN_PROJECT_PAGE

    @property
    def needs_webhooks_key(self) -> bool:
        return self in (
            Task.CREATE_APPLETS,
            Task.GENERATE_HOMEBRIDGE_IFTTT,
            Task.GENERATE_HTTP_SWITCH,
            Task.GENERATE_JSON,
        )

    @property
    def needs_local_targets(self) -> bool:
        return self in (
            Task.CREATE_APPLETS,
            Task.DELETE_ORPHANED_APPLETS,
            Task.OUTPUT_SUMMARY,
        )


class BrowserChoice(Enum):
    """Browsers that can be automated through Selenium WebDriver."""
    FIREFOX_HEADLESS = "firefox-headless"
    FIREFOX = "firefox"
    CHROME_HEADLESS = "chrome-headless"
    CHROME = "chrome"
    SAFARI = "safari"

    @property
    def browser(self) -> str:
        return self.value.split("-")[0]

    @property
    def headless(self) -> bool:
        return self.value.endswith("-headless")

    @property
    def is_safari(self) -> bool:
        return self is BrowserChoice.SAFARI


class SessionState(Enum):
    """Lifecycle states of the single browser session."""
    ABSENT = "absent"
    LIVE_UNAUTHENTICATED = "live_unauthenticated"
    LIVE_AUTHENTICATED = "live_authenticated"


class ActivationMethod(Enum):
    """Ways of activating an interactive element."""
    CLICK = "click"
    ENTER = "enter"
    SCRIPT = "script"


class ActionStatus(Enum):
    """Terminal status of an action executor run."""
    OK = "ok"
    DEGRADED = "degraded"


class WaitClass(Enum):
    """Timeout classes used by the element waiter."""
    LONG = "long"
    SHORT = "short"


class DeletionStatus(Enum):
    """How an Applet deletion ended."""
    DELETED = "deleted"
    NO_DELETE_BUTTON = "no_delete_button"
    DOES_NOT_EXIST = "does_not_exist"

    @property
    def already_deleted(self) -> bool:
        return self is not DeletionStatus.DELETED


def encode_target_name(name: str) -> str:
    """Replace whitespace so the name survives inside an event name."""
    return _WHITESPACE.sub("_", name)


def decode_target_name(encoded_name: str) -> str:
    return encoded_name.replace("_", " ")


def build_event_name(target_name: str, state: AppletState) -> str:
    """Build the Webhooks event name, e.g. ``BroadLink-On+Living_Room_Lamp``."""
    return f"{EVENT_NAME_PREFIX}{state.value}+{encode_target_name(target_name)}"


def build_display_name(target_name: str, state: AppletState) -> str:
    return f"{APPLET_TITLE_PREFIX}{build_event_name(target_name, state)}"


def parse_display_name(display_name: str) -> Optional[Tuple[AppletState, str]]:
    """
    Parse an Applet title created by this tool.

    Args:
        display_name: Applet title as shown on IFTTT

    Returns:
        Tuple of (state, encoded target name), or None when the title was not
        produced by this tool
    """
    parts = display_name.split("+")
    if len(parts) != 2:
        return None

    prefix, encoded_name = parts
    state_prefix = APPLET_TITLE_PREFIX + EVENT_NAME_PREFIX
    if not prefix.startswith(state_prefix):
        return None

    try:
        state = AppletState(prefix[len(state_prefix):])
    except ValueError:
        return None

    if not encoded_name or _WHITESPACE.search(encoded_name):
        return None

    return state, encoded_name


def applet_id_from_url(applet_url: str) -> Optional[str]:
    """Extract the Applet ID from an ``/applets/<id>-webhooks-event-broadlink-...`` URL."""
    if "/applets/" not in applet_url or APPLET_URL_MARKER not in applet_url:
        return None
    applet_id = applet_url.split("/applets/")[1].split(APPLET_URL_MARKER)[0]
    return applet_id or None


@dataclass(frozen=True)
class LocalTarget:
    """A device or scene currently defined in BroadLink."""
    name: str
    kind: TargetKind = TargetKind.DEVICE

    @property
    def is_scene(self) -> bool:
        return self.kind is TargetKind.SCENE

    @property
    def states(self) -> List[AppletState]:
        return AppletState.for_kind(self.kind)

    def event_name(self, state: AppletState) -> str:
        return build_event_name(self.name, state)

    def display_name(self, state: AppletState) -> str:
        return build_display_name(self.name, state)


@dataclass(frozen=True)
class AutomationEntity:
    """A Webhooks Applet for BroadLink discovered on IFTTT."""
    applet_id: str
    display_name: str

    def __post_init__(self):
        if parse_display_name(self.display_name) is None:
            raise ValueError(f"Not a BroadLink Webhooks Applet title: {self.display_name!r}")

    @property
    def state(self) -> AppletState:
        return parse_display_name(self.display_name)[0]

    @property
    def encoded_target_name(self) -> str:
        return parse_display_name(self.display_name)[1]

    @property
    def target_name(self) -> str:
        return decode_target_name(self.encoded_target_name)

    @property
    def is_scene(self) -> bool:
        return self.state is AppletState.SCENE

    @property
    def kind(self) -> TargetKind:
        return TargetKind.SCENE if self.is_scene else TargetKind.DEVICE

    @property
    def event_name(self) -> str:
        return self.display_name[len(APPLET_TITLE_PREFIX):]

    @property
    def edit_url(self) -> str:
        return f"{IFTTT_BASE_URL}/applets/{self.applet_id}/edit"

    def trigger_url(self, webhooks_key: str) -> str:
        return TRIGGER_URL_TEMPLATE.format(event_name=self.event_name, key=webhooks_key)


@dataclass
class ReconciliationResult:
    """Create/skip/remove decisions for one task invocation."""
    to_create: List[Tuple[LocalTarget, AppletState]] = field(default_factory=list)
    to_skip: List[Tuple[LocalTarget, AppletState]] = field(default_factory=list)
    to_remove: List[AutomationEntity] = field(default_factory=list)
    still_backed: List[AutomationEntity] = field(default_factory=list)


@dataclass
class ActionOutcome:
    """Result of driving one element until its success condition holds."""
    name: str
    status: ActionStatus
    clicks: int
    missing_ticks: int
    final_url: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.status is ActionStatus.DEGRADED


@dataclass(frozen=True)
class WaitBudget:
    """Timeouts consumed by the element waiter, in seconds."""
    long_wait: float = 10.0
    short_wait: float = 0.1
    poll_interval: float = 0.1

    def timeout_for(self, wait: WaitClass) -> float:
        return self.long_wait if wait is WaitClass.LONG else self.short_wait


@dataclass
class AutomationConfiguration:
    """Configuration settings for the browser automation."""
    # Wait budget
    long_wait_seconds: float = 10.0
    short_wait_seconds: float = 0.1
    poll_interval_seconds: float = 0.1

    # Retry budget
    max_task_attempts: int = 3

    # Action executor bounds
    max_activation_clicks: int = 100
    max_missing_ticks: int = 100
    max_url_poll_ticks: int = 1200
    strict_conditions: bool = False

    # Browser window, ignored for Safari
    window_width: int = 690
    window_height: int = 1000

    @property
    def wait_budget(self) -> WaitBudget:
        return WaitBudget(
            long_wait=self.long_wait_seconds,
            short_wait=self.short_wait_seconds,
            poll_interval=self.poll_interval_seconds
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "long_wait_seconds": self.long_wait_seconds,
            "short_wait_seconds": self.short_wait_seconds,
            "poll_interval_seconds": self.poll_interval_seconds,
            "max_task_attempts": self.max_task_attempts,
            "max_activation_clicks": self.max_activation_clicks,
            "max_missing_ticks": self.max_missing_ticks,
            "max_url_poll_ticks": self.max_url_poll_ticks,
            "strict_conditions": self.strict_conditions,
            "window_width": self.window_width,
            "window_height": self.window_height
        }


@dataclass
class Credentials:
    """IFTTT login entered by the operator; kept in memory for one run only."""
    username: str
    password: str = field(repr=False)
