"""Single-run ingestion pipeline: inbox workbook -> remote endpoint.

One run picks the newest spreadsheet in the inbox, validates its headers,
submits every row that is not already known, writes a failure report when
the outcome is mixed and finally moves the workbook to Processed or Error.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from licitaflow.config import AppSettings
from licitaflow.core.errors import HeaderValidationError, WorkbookReadError
from licitaflow.core.logger import get_logger
from licitaflow.services.schema.mapping import map_headers, to_canonical
from licitaflow.services.schema.models import CanonicalRecord, FailedRecord
from licitaflow.services.schema.transform import to_payload
from licitaflow.services.schema.validate import validate_data, validate_headers
from licitaflow.services.submission.client import SubmissionClient, safe_body
from licitaflow.services.submission.models import SubmissionError, is_duplicate_signal
from licitaflow_io.excel_reader import SheetData, read_records
from licitaflow_io.excel_writer import write_failure_report
from licitaflow_io.inbox import InboxDirectories
from licitaflow_persist.stores.dedup_store import DedupStore

LOGGER = get_logger().getChild("pipeline")

INELIGIBLE_ERROR = "record is not eligible for submission"

ProgressCallback = Callable[[str, Dict[str, Any]], None]


class RunState(str, Enum):
    IDLE = "IDLE"
    SELECTING = "SELECTING"
    PARSING = "PARSING"
    HEADER_VALIDATING = "HEADER_VALIDATING"
    TRANSFORMING = "TRANSFORMING"
    DEDUPLICATING = "DEDUPLICATING"
    SUBMITTING = "SUBMITTING"
    REPORTING = "REPORTING"
    RELOCATING = "RELOCATING"
    DONE = "DONE"
    ERROR = "ERROR"


class ProcessOutcome(BaseModel):
    """Per-record tally of one submission pass."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: int = 0
    skipped: int = 0
    duplicates: int = 0
    failed: List[FailedRecord] = Field(default_factory=list)


class RunResult(BaseModel):
    """Aggregated outcome returned to callers."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: Literal["no_file", "dry_run", "error", "processed"]
    state: RunState
    session_id: str
    file: Optional[str] = None
    moved_to: Optional[str] = None
    total_rows: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    duplicates: int = 0
    failed_records: List[FailedRecord] = Field(default_factory=list)
    report_path: Optional[str] = None
    unmapped_headers: List[str] = Field(default_factory=list)
    missing_headers: List[str] = Field(default_factory=list)
    validation_errors: List[str] = Field(default_factory=list)
    validation_warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class _SessionAdapter(logging.LoggerAdapter):
    """Append ``session=<id>`` to every message of a run."""

    def process(self, msg, kwargs):
        return f"{msg} session={self.extra['session']}", kwargs


def new_session_id() -> str:
    return uuid.uuid4().hex[:12]


class IngestionPipeline:
    """Coordinate inbox selection, parsing, submission and relocation."""

    def __init__(
        self,
        inbox: InboxDirectories,
        store: DedupStore,
        client: SubmissionClient,
        *,
        dry_run: bool = False,
        batch_size: int = 100,
        default_currency: str = "CLP",
        logger: logging.Logger | None = None,
        progress_cb: ProgressCallback | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.inbox = inbox
        self.store = store
        self.client = client
        self.dry_run = dry_run
        self.batch_size = batch_size
        self.default_currency = default_currency
        self._base_logger = logger or LOGGER
        self._progress_cb = progress_cb
        self.state = RunState.IDLE
        self.session_id = new_session_id()
        self.log: logging.LoggerAdapter = _SessionAdapter(self._base_logger, {"session": self.session_id})

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        *,
        dry_run: bool = False,
        session: Any = None,
        progress_cb: ProgressCallback | None = None,
    ) -> "IngestionPipeline":
        inbox = InboxDirectories(
            inbox=settings.inbox_dir,
            processed=settings.processed_dir,
            error=settings.error_dir,
        )
        return cls(
            inbox,
            DedupStore(settings.store_path),
            SubmissionClient(settings.api, session=session),
            dry_run=dry_run,
            batch_size=settings.batch_size,
            default_currency=settings.default_currency,
            progress_cb=progress_cb,
        )

    # Public API -------------------------------------------------------

    def run(self) -> RunResult:
        """Process the newest inbox workbook once."""

        self.session_id = new_session_id()
        self.log = _SessionAdapter(self._base_logger, {"session": self.session_id})
        self.state = RunState.IDLE
        self.log.info("pipeline.start dry_run=%s inbox=%s", self.dry_run, self.inbox.inbox)

        self._enter(RunState.SELECTING)
        self.inbox.ensure_directories()
        path = self.inbox.find_latest()
        if path is None:
            self.log.info("pipeline.no_file inbox=%s", self.inbox.inbox)
            self._enter(RunState.DONE)
            return self._result("no_file")

        self._enter(RunState.PARSING, file=path.name)
        try:
            sheet = read_records(path)
        except (WorkbookReadError, FileNotFoundError) as exc:
            return self._quarantine(path, str(exc))
        if not sheet.rows:
            return self._quarantine(path, "workbook has no data rows")

        self._enter(RunState.HEADER_VALIDATING, file=path.name, rows=len(sheet))
        header_mapping = map_headers(sheet.headers)
        header_check = validate_headers(sheet.headers, mapping=header_mapping)
        if not header_check.is_valid:
            error = HeaderValidationError(
                f"missing required columns: {', '.join(header_check.missing_headers)}",
                missing=header_check.missing_headers,
            )
            return self._quarantine(
                path,
                str(error),
                total_rows=len(sheet),
                missing_headers=error.missing,
                unmapped_headers=header_mapping.unmapped,
            )

        self._enter(RunState.TRANSFORMING, file=path.name)
        records = [
            to_canonical(row, header_mapping, source_row=index + 2)
            for row, index in zip(sheet.rows, sheet.indexes)
        ]
        validation = validate_data(records)
        for message in validation.errors:
            self.log.warning("pipeline.validation error=%s", message)
        if validation.warnings:
            self.log.info("pipeline.validation warnings=%d", len(validation.warnings))

        common = {
            "file": path.name,
            "total_rows": len(records),
            "unmapped_headers": header_mapping.unmapped,
            "validation_errors": validation.errors,
            "validation_warnings": validation.warnings,
        }

        if self.dry_run:
            self.log.info(
                "pipeline.dry_run file=%s rows=%d errors=%d",
                path.name,
                len(records),
                len(validation.errors),
            )
            self._enter(RunState.DONE)
            return self._result("dry_run", **common)

        outcome = self.process_data(records, sheet)

        report_path: Optional[Path] = None
        self._enter(RunState.REPORTING, failed=len(outcome.failed))
        if outcome.failed and outcome.success > 0:
            report_path = write_failure_report(outcome.failed, path.name, self.inbox.error)
            self.log.info("pipeline.report path=%s rows=%d", report_path, len(outcome.failed))

        self._enter(RunState.RELOCATING)
        if outcome.success == 0 and outcome.failed:
            moved = self.inbox.move_to_error(path)
        else:
            moved = self.inbox.move_to_processed(path)

        self._enter(RunState.DONE)
        self.log.info(
            "pipeline.done file=%s success=%d failed=%d skipped=%d duplicates=%d moved_to=%s",
            path.name,
            outcome.success,
            len(outcome.failed),
            outcome.skipped,
            outcome.duplicates,
            moved.parent,
        )
        return self._result(
            "processed",
            moved_to=str(moved),
            success=outcome.success,
            failed=len(outcome.failed),
            skipped=outcome.skipped,
            duplicates=outcome.duplicates,
            failed_records=outcome.failed,
            report_path=str(report_path) if report_path else None,
            **common,
        )

    def process_data(
        self,
        records: Sequence[CanonicalRecord],
        raw_rows: SheetData | Sequence[Dict[str, Any]],
    ) -> ProcessOutcome:
        """Submit records that are not yet known to the store."""

        rows = raw_rows.rows if isinstance(raw_rows, SheetData) else list(raw_rows)
        outcome = ProcessOutcome()

        self._enter(RunState.DEDUPLICATING, records=len(records))
        pending: List[tuple[int, CanonicalRecord]] = []
        for position, record in enumerate(records):
            if record.id and self.store.has_id(record.id):
                outcome.skipped += 1
            else:
                pending.append((position, record))
        self.log.info("pipeline.dedup pending=%d skipped=%d", len(pending), outcome.skipped)

        self._enter(RunState.SUBMITTING, pending=len(pending))
        sent = 0
        for done, (position, record) in enumerate(pending, start=1):
            original = dict(rows[position]) if position < len(rows) else {}
            row_index = (record.source_row - 2) if record.source_row is not None else position
            payload = to_payload(record, default_currency=self.default_currency)

            if not record.is_eligible:
                outcome.failed.append(
                    FailedRecord(original, payload, INELIGIBLE_ERROR, row_index=row_index)
                )
            elif self.store.has_id(record.id):
                # repeated id within the same sheet
                outcome.skipped += 1
            else:
                if sent:
                    self.client.pause()
                sent += 1
                self._submit_one(record, payload, original, row_index, outcome)

            if done % self.batch_size == 0 or done == len(pending):
                self.log.info(
                    "pipeline.progress processed=%d/%d success=%d failed=%d duplicates=%d",
                    done,
                    len(pending),
                    outcome.success,
                    len(outcome.failed),
                    outcome.duplicates,
                )
                self._notify("progress", processed=done, total=len(pending), success=outcome.success)
        return outcome

    # Internal helpers -------------------------------------------------

    def _submit_one(
        self,
        record: CanonicalRecord,
        payload,
        original: Dict[str, Any],
        row_index: int,
        outcome: ProcessOutcome,
    ) -> None:
        try:
            response = self.client.submit(payload)
        except SubmissionError as exc:
            if is_duplicate_signal(exc.status_code, exc.payload):
                self._mark_duplicate(record, exc.status_code)
                outcome.duplicates += 1
                return
            self.log.warning("pipeline.submit failed id=%s status=%s error=%s", record.id, exc.status_code, exc)
            outcome.failed.append(
                FailedRecord(original, payload, str(exc), row_index=row_index, status_code=exc.status_code)
            )
            return

        if response.status_code == 200:
            self.store.add_id(record.id)
            outcome.success += 1
            return
        body = safe_body(response)
        if is_duplicate_signal(response.status_code, body):
            self._mark_duplicate(record, response.status_code)
            outcome.duplicates += 1
            return
        self.log.warning("pipeline.submit rejected id=%s status=%d", record.id, response.status_code)
        outcome.failed.append(
            FailedRecord(
                original,
                payload,
                f"HTTP {response.status_code}: {_short(body)}",
                row_index=row_index,
                status_code=response.status_code,
            )
        )

    def _mark_duplicate(self, record: CanonicalRecord, status: Optional[int]) -> None:
        self.log.info("pipeline.submit duplicate id=%s status=%s", record.id, status)
        self.store.add_id(record.id)

    def _quarantine(self, path: Path, reason: str, **fields: Any) -> RunResult:
        self._enter(RunState.ERROR, file=path.name)
        self.log.error("pipeline.file_rejected file=%s reason=%s", path.name, reason)
        moved: Optional[Path] = None
        if not self.dry_run:
            moved = self.inbox.move_to_error(path)
        return self._result(
            "error",
            file=path.name,
            moved_to=str(moved) if moved else None,
            error=reason,
            **fields,
        )

    def _enter(self, state: RunState, **detail: Any) -> None:
        self.state = state
        self.log.debug("pipeline.state state=%s", state.value)
        self._notify(state.value, **detail)

    def _notify(self, stage: str, **detail: Any) -> None:
        if self._progress_cb is not None:
            self._progress_cb(stage, detail)

    def _result(self, status: str, **fields: Any) -> RunResult:
        return RunResult(status=status, state=self.state, session_id=self.session_id, **fields)


def _short(body: Any, limit: int = 200) -> str:
    text = body if isinstance(body, str) else str(body)
    return text if len(text) <= limit else text[:limit] + "..."


__all__ = ["IngestionPipeline", "ProcessOutcome", "RunResult", "RunState", "INELIGIBLE_ERROR"]
