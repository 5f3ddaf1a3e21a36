# zendesk_export/orchestrator.py
import datetime as dt
import logging
import time
from typing import Callable, Dict, Iterable, Optional

from . import pagination
from .attachments import AttachmentFetcher
from .client import RateLimitedHttpClient
from .comments import export_all_ticket_comments
from .errors import ZendeskExportError
from .pagination import Endpoint
from .settings import Settings
from .storage import CursorStore, ErrorLog, ExportFolder, append_records, write_snapshot
from .summary import FAILED, SKIPPED, RunSummary, StageResult

STAGES = (
    "tickets",
    "comments",
    "users",
    "attachments",
    "views",
    "triggers",
    "macros",
    "automations",
    "settings",
    "recipient_addresses",
)

SNAPSHOT_ENDPOINTS: Dict[str, Endpoint] = {
    "views": pagination.VIEWS,
    "triggers": pagination.TRIGGERS,
    "macros": pagination.MACROS,
    "automations": pagination.AUTOMATIONS,
    "recipient_addresses": pagination.RECIPIENT_ADDRESSES,
}


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds")


class ExportOrchestrator:
    """Runs the export stages in their fixed order and keeps a run summary."""

    def __init__(self, settings: Settings, client: Optional[RateLimitedHttpClient] = None,
                 stages: Optional[Iterable[str]] = None):
        self.settings = settings
        self.client = client or RateLimitedHttpClient(settings)
        self.folder = ExportFolder(settings.export_dir)
        self.errors = ErrorLog(self.folder.errors)
        self.cursors = CursorStore(self.folder.cursors)
        selected = set(stages) if stages else set(STAGES)
        unknown = selected - set(STAGES)
        if unknown:
            raise ValueError(f"Unknown stage(s): {', '.join(sorted(unknown))}")
        self.stages = [s for s in STAGES if s in selected]
        self.summary = RunSummary(started_at=_now())

    # ----------------------------
    # Stages
    # ----------------------------
    def export_incremental(self, endpoint: Endpoint, result: StageResult) -> StageResult:
        """Cursor-style stream appended page by page; the cursor is saved after each page."""
        target = self.folder.path(f"{endpoint.name}.json")
        cursor = self.cursors.get(endpoint.name)
        if cursor:
            logging.info("%s: resuming from saved cursor", endpoint.name)
        for page in pagination.collect(self.client, endpoint, cursor=cursor):
            records = [pagination.strip_transient(r) for r in page.records]
            result.exported += append_records(target, records)
            if page.after_cursor:
                self.cursors.set(endpoint.name, page.after_cursor)
            logging.info("%s: %d records so far (end_of_stream=%s)",
                         endpoint.name, result.exported, page.end_of_stream)
        return result

    def export_snapshot(self, endpoint: Endpoint, result: StageResult) -> StageResult:
        items = list(pagination.iter_records(self.client, endpoint))
        write_snapshot(self.folder.path(f"{endpoint.name}.json"), items)
        result.exported = len(items)
        return result

    def export_settings(self, result: StageResult) -> StageResult:
        value = pagination.fetch_object(self.client, pagination.SETTINGS)
        write_snapshot(self.folder.path("settings.json"), value)
        result.exported = 1
        return result

    def download_attachments(self, result: StageResult) -> StageResult:
        if not self.settings.download_attachments:
            logging.info("Attachment download disabled")
            result.status = SKIPPED
            return result
        fetcher = AttachmentFetcher(self.client, self.folder.attachments, self.errors, result)
        tickets = fetcher.fetch_all(self.folder.comments)
        logging.info("Attachments: scanned %d tickets", len(tickets))
        return result

    def _stage(self, name: str) -> Callable[[StageResult], StageResult]:
        if name == "tickets":
            return lambda r: self.export_incremental(pagination.TICKETS, r)
        if name == "users":
            return lambda r: self.export_incremental(pagination.USERS, r)
        if name == "comments":
            return lambda r: export_all_ticket_comments(self.client, self.folder, self.errors, r)
        if name == "attachments":
            return self.download_attachments
        if name == "settings":
            return self.export_settings
        endpoint = SNAPSHOT_ENDPOINTS[name]
        return lambda r: self.export_snapshot(endpoint, r)

    # ----------------------------
    # Driver
    # ----------------------------
    def run(self) -> RunSummary:
        self.folder.prepare()
        try:
            for name in self.stages:
                self.run_stage(name)
            self.summary.completed = True
            logging.info("Finished")
        finally:
            self.summary.finished_at = _now()
            self.summary.log()
            write_snapshot(self.folder.summary, self.summary.to_dict())
        return self.summary

    def run_stage(self, name: str) -> StageResult:
        logging.info("Exporting %s...", name.replace("_", " "))
        result = StageResult(name)
        self.summary.stages.append(result)
        started = time.monotonic()
        try:
            self._stage(name)(result)
        except ZendeskExportError as e:
            result.status = FAILED
            result.error = str(e)
            if name not in SNAPSHOT_ENDPOINTS and name != "settings":
                raise
            # snapshot stages never abort the run
            logging.error("%s export failed: %s", name, e)
            self.errors.write(f"Stage {name} failed: {e}")
        except Exception as e:
            result.status = FAILED
            result.error = f"{type(e).__name__}: {e}"
            raise
        finally:
            result.seconds = time.monotonic() - started
        return result
