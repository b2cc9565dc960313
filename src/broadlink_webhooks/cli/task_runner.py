"""Runs one menu task against IFTTT and reports how it went."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from rich.console import Console
from selenium.common.exceptions import WebDriverException

from ..core.logging_config import get_task_logger
from ..core.models import (
    AppletGroup,
    AutomationConfiguration,
    AutomationEntity,
    DeletionStatus,
    LocalTarget,
    ReconciliationResult,
    Task
)
from ..services import ifttt_pages as pages
from ..services.ifttt_service import IftttAppletService
from ..services.output_formatters import (
    build_output_filename,
    format_duration,
    homebridge_ifttt_config,
    http_switch_config,
    json_details,
    render_json,
    save_output,
    summary_tables
)
from ..services.reconciliation import reconcile, sort_targets
from ..services.session_manager import BrowserSession
from .environment import open_url


logger = logging.getLogger(__name__)

GENERATED_OUTPUT_LABELS = {
    Task.GENERATE_HOMEBRIDGE_IFTTT: "Configuration for homebridge-ifttt",
    Task.GENERATE_HTTP_SWITCH: "Configuration for homebridge-http-switch",
    Task.GENERATE_JSON: "JSON Details",
}


def format_timestamp(when: datetime) -> str:
    return f"{when.month}/{when.day}/{when.year} AT {when.hour % 12 or 12}:{when:%M}:{when:%S} {when:%p}"


@dataclass
class TaskReport:
    """What a task run did."""
    task: Task
    group: AppletGroup
    duration: float = 0.0
    webhooks_key: Optional[str] = None
    entities: List[AutomationEntity] = field(default_factory=list)
    targets: List[LocalTarget] = field(default_factory=list)
    reconciliation: Optional[ReconciliationResult] = None
    created: List[AutomationEntity] = field(default_factory=list)
    deleted: List[AutomationEntity] = field(default_factory=list)
    output: Optional[str] = None
    saved_path: Optional[str] = None


class TaskRunner:
    """Dispatches menu tasks to the IFTTT flows."""

    def __init__(
        self,
        config: AutomationConfiguration,
        prompts,
        console: Optional[Console] = None,
        service_factory: Callable[[BrowserSession, AutomationConfiguration], IftttAppletService] = IftttAppletService,
        clock: Callable[[], float] = time.monotonic,
        url_opener: Callable[[str], bool] = open_url
    ):
        self.config = config
        self.prompts = prompts
        self.console = console or prompts.console
        self.service_factory = service_factory
        self.clock = clock
        self.url_opener = url_opener

    def open_project_page(self):
        if self.url_opener(pages.PROJECT_URL):
            logger.info(f"{Task.OPEN_PROJECT_PAGE.value}: {pages.PROJECT_URL}")

    def run(self, task: Task, group: AppletGroup, session: BrowserSession) -> TaskReport:
        """
        Run a task for a BroadLink group using an authenticated session.

        Raises:
            Whatever the underlying operation raises once its retries are used up
        """
        task_logger = get_task_logger("tasks", task=task.value, group=group.value)
        report = TaskReport(task=task, group=group)

        start = self.clock()
        logger.info(f'STARTED "{task.value}" TASK WITH "{group.value}" ON {format_timestamp(datetime.now())}')
        task_logger.log_operation_start(task.value, browser=session.choice.value)

        try:
            service = self.service_factory(session, self.config)

            if task.needs_webhooks_key:
                report.webhooks_key = service.retrieve_webhooks_key()

            report.entities = service.scan_existing_applets(group)

            if task.needs_local_targets:
                report.targets = service.discover_targets(group)

            report.reconciliation = reconcile(report.targets, report.entities, group)
            self._dispatch(service, report)
        except Exception as e:
            task_logger.log_operation_failure(task.value, self.clock() - start, str(e))
            raise

        report.duration = self.clock() - start
        duration = format_duration(report.duration)
        logger.info(
            f'FINISHED "{task.value}" TASK WITH "{group.value}"'
            f'{f" IN {duration}" if duration else ""} ON {format_timestamp(datetime.now())}')
        task_logger.log_operation_success(task.value, report.duration,
                                          created=len(report.created), deleted=len(report.deleted))

        if not session.choice.headless:
            self._return_to_broadlink_page(session)

        return report

    def _dispatch(self, service: IftttAppletService, report: TaskReport):
        task = report.task
        if task is Task.CREATE_APPLETS:
            self._create_applets(service, report)
        elif task is Task.DELETE_APPLETS:
            self._delete_applets(service, report, orphans_only=False)
        elif task is Task.DELETE_ORPHANED_APPLETS:
            self._delete_applets(service, report, orphans_only=True)
        elif task is Task.OUTPUT_SUMMARY:
            for table in summary_tables(sort_targets(report.targets), report.reconciliation, report.group):
                self.console.print(table)
        elif task in GENERATED_OUTPUT_LABELS:
            self._generate_output(report)
        elif task is Task.OPEN_EDIT_URLS:
            self._open_edit_urls(report)
        elif task is Task.OPEN_PROJECT_PAGE:
            self.open_project_page()

    def _create_applets(self, service: IftttAppletService, report: TaskReport):
        existing = set(report.reconciliation.to_skip)

        for is_scene in (False, True):
            targets = [t for t in sort_targets(report.targets)
                       if t.is_scene == is_scene and report.group.includes(t.kind)]
            if not targets:
                continue

            kind = "scene" if is_scene else "device"
            logger.info(f"Creating Webhooks Applets for {len(targets)} BroadLink {kind}"
                        f"{'' if len(targets) == 1 else 's'}...")

            for index, target in enumerate(targets, start=1):
                for state in target.states:
                    if is_scene:
                        logger.info(f"SCENE {index} OF {len(targets)}\n\tScene Name: {target.name}")
                    else:
                        logger.info(f"DEVICE {index} OF {len(targets)} - {state.value.upper()} STATE\n"
                                    f"\tDevice Name: {target.name}")

                    if (target, state) in existing:
                        logger.info(f'SKIPPING: WEBHOOKS APPLET WITH NAME "{target.display_name(state)}" ALREADY EXISTS')
                        continue

                    report.created.append(service.create_applet(target, state, report.webhooks_key))

    def _delete_applets(self, service: IftttAppletService, report: TaskReport, orphans_only: bool):
        still_backed = set(report.reconciliation.still_backed) if orphans_only else set()

        for index, entity in enumerate(report.entities, start=1):
            kind = "Scene" if entity.is_scene else "Device"
            details = f"{entity.edit_url} ({entity.display_name})"

            if entity in still_backed:
                logger.info(f"{index} - Not Deleting Webhooks Applet for {kind} - "
                            f"STILL EXISTS IN BROADLINK: {entity.target_name} ({entity.display_name})")
                continue

            try:
                status = service.delete_applet(entity)
            except Exception:
                logger.error(f"{index} - ERROR DELETING WEBHOOKS APPLET FOR {kind.upper()}: {details}")
                raise

            if status is DeletionStatus.DELETED:
                report.deleted.append(entity)
                logger.info(f"{index} - Deleted Webhooks Applet for {kind}: {details}")
            elif status is DeletionStatus.NO_DELETE_BUTTON:
                logger.info(f"{index} - Webhooks Applet for {kind} Already Deleted - NO DELETE BUTTON: {details}")
            else:
                logger.info(f"{index} - Webhooks Applet for {kind} Already Deleted - DOES NOT EXIST: {details}")

    def _generate_output(self, report: TaskReport):
        task = report.task
        label = GENERATED_OUTPUT_LABELS[task]

        if task is Task.GENERATE_HOMEBRIDGE_IFTTT:
            data = homebridge_ifttt_config(report.entities, report.webhooks_key, report.group)
        elif task is Task.GENERATE_HTTP_SWITCH:
            data = http_switch_config(report.entities, report.webhooks_key, report.group)
        else:
            data = json_details(report.entities, report.webhooks_key, report.group)

        report.output = render_json(data)
        self.console.print(f"\n{report.output}\n", markup=False, highlight=False)

        if not self.prompts.confirm("Would you like to save the output displayed above onto your Desktop?"):
            logger.info(f"CHOSE NOT TO SAVE {label.upper()} FILE\n"
                        "But, you can still copy-and-paste the output displayed above.")
            return

        filename = build_output_filename(label, report.group)
        try:
            saved = save_output(report.output, filename)
        except OSError as e:
            logger.error(f"ERROR SAVING {label.upper()} FILE: {filename}\n\n"
                         f"INSTEAD, YOU CAN COPY-AND-PASTE THE OUTPUT DISPLAYED ABOVE\n\n{e}")
            return

        report.saved_path = str(saved)
        logger.info(f"{label} File Saved: {saved}")

    def _open_edit_urls(self, report: TaskReport):
        for index, entity in enumerate(report.entities, start=1):
            kind = "Scene" if entity.is_scene else "Device"
            if self.url_opener(entity.edit_url):
                logger.info(f"{index} - Opening Edit Webhooks Applet for {kind} URL: "
                            f"{entity.edit_url} ({entity.display_name})")
            else:
                logger.error(f"{index} - ERROR OPENING EDIT WEBHOOKS APPLET FOR {kind.upper()} URL: "
                             f"{entity.edit_url} ({entity.display_name})")

    @staticmethod
    def _return_to_broadlink_page(session: BrowserSession):
        try:
            if session.driver.current_url != pages.BROADLINK_SERVICE_URL:
                session.driver.get(pages.BROADLINK_SERVICE_URL)
        except WebDriverException as e:
            logger.debug(f"Could not return to the BroadLink Applets page: {e}")
