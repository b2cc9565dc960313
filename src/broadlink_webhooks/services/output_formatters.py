"""
Output formatters for Webhooks Applets.

Pure transforms from discovered Applets into:
- a homebridge-ifttt platform block
- a homebridge-http-switch accessory list
- a JSON details report
plus the filename and location rules used when saving them.
"""

import json
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from rich.table import Table

from ..core.config import settings
from ..core.models import (
    AppletGroup,
    AppletState,
    AutomationEntity,
    LocalTarget,
    ReconciliationResult
)
from .reconciliation import name_sort_key, sort_entities


SCENE_ACCESSORY_PREFIX = "Scene - "

_ILLEGAL_FILENAME_CHARS = re.compile(r'[/\?<>\\:\*\|"]')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x80-\x9f]")
_RESERVED_NAME = re.compile(r"^\.+$")
_WINDOWS_RESERVED_NAME = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE)
_WINDOWS_TRAILING = re.compile(r"[\. ]+$")
_MAX_FILENAME_BYTES = 255


def _in_group(entities: Iterable[AutomationEntity], group: AppletGroup) -> List[AutomationEntity]:
    return [entity for entity in sort_entities(entities) if group.includes(entity.kind)]


def accessory_name(entity: AutomationEntity) -> str:
    return f"{SCENE_ACCESSORY_PREFIX}{entity.target_name}" if entity.is_scene else entity.target_name


def homebridge_ifttt_config(entities: Iterable[AutomationEntity], webhooks_key: str,
                            group: AppletGroup) -> Dict[str, Any]:
    """
    Build the homebridge-ifttt platform block.

    Devices get one accessory with triggerOn/triggerOff buttons, scenes one
    "Scene - <name>" accessory with a single trigger. Scenes sort last.
    """
    accessories: Dict[str, Dict[str, Any]] = {}

    for entity in _in_group(entities, group):
        name = accessory_name(entity)
        trigger_key = "trigger" if entity.is_scene else f"trigger{entity.state.value}"
        accessory = accessories.setdefault(name, {"name": name, "buttons": [{}]})
        accessory["buttons"][0][trigger_key] = entity.event_name

    ordered = sorted(
        accessories.values(),
        key=lambda accessory: (accessory["name"].startswith(SCENE_ACCESSORY_PREFIX), name_sort_key(accessory["name"]))
    )

    return {
        "platform": "IFTTT",
        "name": "IFTTT",
        "makerkey": webhooks_key,
        "accessories": ordered
    }


def http_switch_config(entities: Iterable[AutomationEntity], webhooks_key: str,
                       group: AppletGroup) -> List[Dict[str, Any]]:
    """
    Build homebridge-http-switch accessories.

    A device with both On and Off Applets becomes a toggle switch. Scenes, and
    devices missing one of their Applets, become stateless switches.
    """
    devices: Dict[str, Dict[AppletState, AutomationEntity]] = {}
    scenes: List[AutomationEntity] = []

    for entity in _in_group(entities, group):
        if entity.is_scene:
            scenes.append(entity)
        else:
            devices.setdefault(entity.target_name, {})[entity.state] = entity

    switches = []
    for name in sorted(devices, key=name_sort_key):
        states = devices[name]
        if AppletState.ON in states and AppletState.OFF in states:
            switches.append({
                "accessory": "HTTP-SWITCH",
                "name": name,
                "switchType": "toggle",
                "onUrl": states[AppletState.ON].trigger_url(webhooks_key),
                "offUrl": states[AppletState.OFF].trigger_url(webhooks_key)
            })
        else:
            for state, entity in states.items():
                switches.append({
                    "accessory": "HTTP-SWITCH",
                    "name": f"{name} {state.value}",
                    "switchType": "stateless",
                    "onUrl": entity.trigger_url(webhooks_key)
                })

    for entity in scenes:
        switches.append({
            "accessory": "HTTP-SWITCH",
            "name": accessory_name(entity),
            "switchType": "stateless",
            "onUrl": entity.trigger_url(webhooks_key)
        })

    return switches


def json_details(entities: Iterable[AutomationEntity], webhooks_key: str,
                 group: AppletGroup) -> Dict[str, List[Dict[str, str]]]:
    """Group Applet details by state for use in custom scripts."""
    details: Dict[str, List[Dict[str, str]]] = {}
    if group.includes_devices:
        details["webhooksBroadLinkOnApplets"] = []
        details["webhooksBroadLinkOffApplets"] = []
    if group.includes_scenes:
        details["webhooksBroadLinkSceneApplets"] = []

    for entity in _in_group(entities, group):
        details[f"webhooksBroadLink{entity.state.value}Applets"].append({
            "name": entity.target_name,
            "appletID": entity.applet_id,
            "appletTitle": entity.display_name,
            "webhooksEventName": entity.event_name,
            "triggerAppletURL": entity.trigger_url(webhooks_key),
            "editAppletURL": entity.edit_url
        })

    for applets in details.values():
        applets.sort(key=lambda applet: name_sort_key(applet["name"]))

    return details


def render_json(data: Any) -> str:
    return json.dumps(data, indent=4, ensure_ascii=False)


def sanitize_filename(name: str, replacement: str = "") -> str:
    """Strip characters that are not allowed in filenames on common platforms."""
    sanitized = _ILLEGAL_FILENAME_CHARS.sub(replacement, name)
    sanitized = _CONTROL_CHARS.sub(replacement, sanitized)
    sanitized = _RESERVED_NAME.sub(replacement, sanitized)
    sanitized = _WINDOWS_RESERVED_NAME.sub(replacement, sanitized)
    sanitized = _WINDOWS_TRAILING.sub(replacement, sanitized)

    encoded = sanitized.encode("utf-8")
    if len(encoded) > _MAX_FILENAME_BYTES:
        sanitized = encoded[:_MAX_FILENAME_BYTES].decode("utf-8", errors="ignore")
    return sanitized


def build_output_filename(label: str, group: AppletGroup, when: Optional[datetime] = None) -> str:
    """
    Build names like "broadlink-webhooks JSON Details (Devices Only) 2024-03-09 at 1.05.09 PM.json".
    """
    when = when or datetime.now()
    date_part = sanitize_filename(when.strftime("%Y-%m-%d"), replacement="-")
    clock = f"{when.hour % 12 or 12}:{when:%M}:{when:%S} {when:%p}"
    time_part = sanitize_filename(clock, replacement=".")
    return sanitize_filename(f"broadlink-webhooks {label} ({group.value}) {date_part} at {time_part}.json")


def desktop_path(home: Optional[Path] = None, platform: str = sys.platform) -> Path:
    home = home or Path.home()
    desktop = home / "Desktop"
    if platform == "win32" and not desktop.exists():
        desktop = home / "OneDrive" / "Desktop"
    return desktop


def output_directory() -> Path:
    """Where generated files are saved: OUTPUT_DIR when set, otherwise the Desktop."""
    if settings.OUTPUT_DIR:
        return Path(settings.OUTPUT_DIR)
    return desktop_path()


def save_output(content: str, filename: str, directory: Optional[Path] = None) -> Path:
    """
    Write generated content to a file.

    Raises:
        OSError: If the file cannot be written
    """
    directory = Path(directory) if directory else output_directory()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(content, encoding="utf-8")
    return path


def format_duration(seconds: float) -> str:
    """Format a run time like "1 MINUTE 5 SECONDS"; empty for under half a second."""
    minutes = int(seconds // 60)
    remaining = round(seconds - minutes * 60)
    if remaining == 60:
        minutes += 1
        remaining = 0

    parts = []
    if minutes > 0:
        parts.append(f"{minutes} MINUTE{'' if minutes == 1 else 'S'}")
    if remaining > 0:
        parts.append(f"{remaining} SECOND{'' if remaining == 1 else 'S'}")
    return " ".join(parts)


def summary_tables(targets: Iterable[LocalTarget], result: ReconciliationResult,
                   group: AppletGroup) -> List[Table]:
    """Tables listing BroadLink targets, their Applets, missing Applets and orphans."""
    targets = [target for target in targets if group.includes(target.kind)]
    existing = set(result.to_skip)

    targets_table = Table(title=f"BroadLink {group.value}")
    targets_table.add_column("Kind")
    targets_table.add_column("Name")
    targets_table.add_column("Applets")
    for target in targets:
        states = [
            f"{state.value} {'✓' if (target, state) in existing else '✗'}"
            for state in target.states
        ]
        targets_table.add_row(target.kind.value.title(), target.name, ", ".join(states))

    missing_table = Table(title="Missing Webhooks Applets")
    missing_table.add_column("Name")
    missing_table.add_column("State")
    missing_table.add_column("Webhooks Event Name")
    for target, state in result.to_create:
        missing_table.add_row(target.name, state.value, target.event_name(state))

    orphans_table = Table(title="Webhooks Applets Not in BroadLink")
    orphans_table.add_column("Name")
    orphans_table.add_column("State")
    orphans_table.add_column("Edit Applet URL")
    for entity in result.to_remove:
        orphans_table.add_row(entity.target_name, entity.state.value, entity.edit_url)

    return [targets_table, missing_table, orphans_table]
