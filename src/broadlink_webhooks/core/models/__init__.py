"""Core data models for the BroadLink Webhooks automation."""

from .applet_models import (
    APPLET_URL_MARKER,
    ActionOutcome,
    ActionStatus,
    ActivationMethod,
    AppletGroup,
    AppletState,
    AutomationConfiguration,
    AutomationEntity,
    BrowserChoice,
    Credentials,
    DeletionStatus,
    LocalTarget,
    ReconciliationResult,
    SessionState,
    TargetKind,
    Task,
    WaitBudget,
    WaitClass,
    applet_id_from_url,
    build_display_name,
    build_event_name,
    decode_target_name,
    encode_target_name,
    parse_display_name
)

__all__ = [
    "APPLET_URL_MARKER",
    "ActionOutcome",
    "ActionStatus",
    "ActivationMethod",
    "AppletGroup",
    "AppletState",
    "AutomationConfiguration",
    "AutomationEntity",
    "BrowserChoice",
    "Credentials",
    "DeletionStatus",
    "LocalTarget",
    "ReconciliationResult",
    "SessionState",
    "TargetKind",
    "Task",
    "WaitBudget",
    "WaitClass",
    "applet_id_from_url",
    "build_display_name",
    "build_event_name",
    "decode_target_name",
    "encode_target_name",
    "parse_display_name"
]
