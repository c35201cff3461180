"""
Convergence loop for FTP to Google Drive synchronization.

Runs enumeration and transfer passes until a pass has nothing left to
attempt. Transfers of one pass run concurrently and all of them finish
before the next pass loads the ledger again.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.utils import timezone

if TYPE_CHECKING:
    from ftpsync.providers.ftp import FtpSource, RemoteItem
    from ftpsync.sync.context import RunContext

from ftpsync.sync.enumerator import enumerate_source
from ftpsync.sync.exceptions import (
    DownloadFailed,
    HashMismatchAfterUpload,
    LedgerPersistFailed,
    SourceUnavailable,
    SyncError,
    UploadIncomplete,
)
from ftpsync.sync.models import EventType, RunStatus, SyncEvent, SyncRun
from ftpsync.sync.planner import ItemState, PlanDecision, TransferPlanner
from ftpsync.sync.transfer import TransferProcedure, TransferResult

logger = logging.getLogger(__name__)

EVENT_TYPES = {
    DownloadFailed: EventType.DOWNLOAD_FAILED,
    UploadIncomplete: EventType.UPLOAD_INCOMPLETE,
    HashMismatchAfterUpload: EventType.HASH_MISMATCH,
}


@dataclass
class PassResult:
    """Outcome of one enumeration and transfer pass."""

    number: int
    files_attempted: int = 0
    files_confirmed: int = 0
    files_failed: int = 0
    files_skipped: int = 0
    files_unresolvable: int = 0
    bytes_uploaded: int = 0
    unavailable_sources: list[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class SyncResult:
    """Result of a whole run."""

    passes: int = 0
    files_attempted: int = 0
    files_confirmed: int = 0
    files_failed: int = 0
    files_unresolvable: int = 0
    bytes_uploaded: int = 0
    unavailable_sources: list[str] = field(default_factory=list)
    converged: bool = False
    cancelled: bool = False

    def add(self, pass_result: PassResult) -> None:
        self.passes += 1
        self.files_attempted += pass_result.files_attempted
        self.files_confirmed += pass_result.files_confirmed
        self.files_failed += pass_result.files_failed
        self.files_unresolvable += pass_result.files_unresolvable
        self.bytes_uploaded += pass_result.bytes_uploaded
        # Only the last pass says which sources the run could not reach
        self.unavailable_sources = list(pass_result.unavailable_sources)


class SyncEngine:
    """
    Drives passes over all configured sources until convergence.

    Every pass reloads the ledger, enumerates each source folder, plans
    each item and hands attempted items to a thread pool. A source whose
    listing fails is skipped for that pass only; the other sources carry on.
    """

    def __init__(self, context: RunContext, sources: list[FtpSource]):
        self.context = context
        self.sources = sources
        self.planner = TransferPlanner(context)
        self.procedure = TransferProcedure(context)
        self.run_record: SyncRun | None = None
        self._pass_number = 0

    def run(self) -> SyncResult:
        """
        Execute passes until one attempts zero files.

        Returns:
            SyncResult with statistics summed over all passes

        Raises:
            LedgerPersistFailed: If a confirmation could not be persisted
        """
        settings = self.context.settings
        self.run_record = SyncRun.objects.create(skip_fetch=settings.skip_fetch)
        result = SyncResult()

        logger.info(
            f"Starting sync run {self.run_record.pk} over {len(self.sources)} source(s)"
            f"{' without fetching' if settings.skip_fetch else ''}"
        )

        try:
            root_id = self.context.ensure_root_folder()
            logger.info(f"Using root folder {settings.drive.root_folder!r} ({root_id})")

            while True:
                self._pass_number += 1
                pass_result = self._run_pass(self._pass_number)

                result.add(pass_result)

                if pass_result.cancelled:
                    result.cancelled = True
                    break

                logger.info(
                    f"Pass {pass_result.number} finished: {pass_result.files_attempted} attempted, "
                    f"{pass_result.files_confirmed} confirmed, {pass_result.files_failed} failed, "
                    f"{pass_result.files_skipped} already confirmed"
                )

                if pass_result.files_attempted == 0:
                    # Nothing left this run can do, but a skipped source may hold more
                    result.converged = not pass_result.unavailable_sources
                    if not result.converged:
                        logger.warning(
                            f"Stopping without converging: unreachable source(s) "
                            f"{', '.join(pass_result.unavailable_sources)}"
                        )
                    break

                if settings.max_passes and self._pass_number >= settings.max_passes:
                    logger.warning(
                        f"Stopping after {self._pass_number} passes without converging"
                    )
                    break

        except Exception as e:
            self._finish(result, RunStatus.FAILED, error_message=str(e))
            logger.error(f"Sync run failed: {e}", exc_info=True)
            raise

        status = RunStatus.CANCELLED if result.cancelled else RunStatus.COMPLETED
        self._finish(result, status)

        logger.info(
            f"Sync run {self.run_record.pk} {status.label.lower()} after {result.passes} pass(es): "
            f"{result.files_confirmed} confirmed, {result.files_failed} failed"
        )
        return result

    def _finish(self, result: SyncResult, status: RunStatus, error_message: str = "") -> None:
        run = self.run_record
        run.status = status
        run.completed_at = timezone.now()
        run.passes = result.passes
        run.files_attempted = result.files_attempted
        run.files_confirmed = result.files_confirmed
        run.files_failed = result.files_failed
        run.files_unresolvable = result.files_unresolvable
        run.bytes_uploaded = result.bytes_uploaded
        run.converged = result.converged
        run.error_message = error_message
        run.save()

    def _run_pass(self, number: int) -> PassResult:
        """
        Run one pass: load the ledger, enumerate and dispatch, then wait.

        On cancellation returns immediately without waiting for transfers
        already dispatched.
        """
        settings = self.context.settings
        pass_result = PassResult(number=number)

        self.context.ledger.load()

        executor = ThreadPoolExecutor(
            max_workers=settings.max_workers, thread_name_prefix="transfer"
        )
        futures: dict[Future, PlanDecision] = {}

        try:
            for source in self.sources:
                try:
                    for folder in source.folders:
                        if self._dispatch_folder(executor, source, folder, futures, pass_result):
                            pass_result.cancelled = True
                            break
                except SourceUnavailable as e:
                    pass_result.unavailable_sources.append(source.label)
                    self.context.notifier.notify(f"{e}, skipping it this pass", force=True)
                    self._record_event(
                        EventType.SOURCE_UNAVAILABLE, source=source.label, message=str(e)
                    )

                if pass_result.cancelled:
                    logger.warning(
                        f"Cancelled during pass {number}, not waiting for "
                        f"{len(self.context.in_flight)} transfer(s)"
                    )
                    return pass_result

            self._wait_for_transfers(futures, pass_result)

        finally:
            executor.shutdown(wait=not pass_result.cancelled)
            if not pass_result.cancelled:
                for source in self.sources:
                    source.close()

        return pass_result

    def _dispatch_folder(
        self,
        executor: ThreadPoolExecutor,
        source: FtpSource,
        folder: str,
        futures: dict[Future, PlanDecision],
        pass_result: PassResult,
    ) -> bool:
        """
        Plan every item of one folder and submit the attempted ones.

        Returns:
            True if the run was cancelled
        """

        def unreadable(item: RemoteItem, reason: str) -> None:
            # Counted as a failed attempt so the run keeps retrying it
            pass_result.files_attempted += 1
            pass_result.files_failed += 1
            self._record_event(
                EventType.UNREADABLE, source=item.source, file_path=item.full_path, message=reason
            )

        items = enumerate_source(
            source, folder, self.context.settings.skip_dot_files, on_unreadable=unreadable
        )
        for item in items:
            if self.context.cancelled:
                return True

            decision = self.planner.plan(item)

            if decision.state == ItemState.CONFIRMED:
                pass_result.files_skipped += 1
                continue

            if decision.state == ItemState.UNRESOLVABLE:
                pass_result.files_unresolvable += 1
                self._record_event(
                    EventType.UNRESOLVABLE,
                    source=item.source,
                    file_path=item.full_path,
                    message="Fetching disabled and no matching local copy",
                )
                continue

            pass_result.files_attempted += 1
            future = executor.submit(self._transfer, source, decision)
            futures[future] = decision
            self.context.in_flight.add(future)
            future.add_done_callback(self.context.in_flight.discard)

        return False

    def _transfer(self, source: FtpSource, decision: PlanDecision) -> TransferResult:
        """Fetch if needed, then upload and verify. Runs on a worker thread."""
        with self.context.artifact_lock(decision.local_path):
            self.planner.prepare(decision, source)
            return self.procedure.run(decision.item, decision.local_path)

    def _wait_for_transfers(
        self,
        futures: dict[Future, PlanDecision],
        pass_result: PassResult,
    ) -> None:
        """
        Pass barrier: collect every transfer of the pass.

        Item failures are logged and recorded and the item is retried next
        pass. A ledger persistence failure is re-raised once every transfer
        has finished.
        """
        persist_error: LedgerPersistFailed | None = None

        for future in as_completed(futures):
            item = futures[future].item
            try:
                transfer = future.result()

            except LedgerPersistFailed as e:
                logger.error(f"{item.name}: confirmation could not be persisted: {e}")
                self._record_event(
                    EventType.ERROR, source=item.source, file_path=item.full_path, message=str(e)
                )
                pass_result.files_failed += 1
                persist_error = persist_error or e

            except SyncError as e:
                logger.warning(f"{item.name}: left for retry: {e}")
                self._record_event(
                    EVENT_TYPES.get(type(e), EventType.ERROR),
                    source=item.source,
                    file_path=item.full_path,
                    message=str(e),
                )
                pass_result.files_failed += 1

            except Exception as e:
                logger.error(f"Unexpected error transferring {item.full_path}: {e}", exc_info=True)
                self._record_event(
                    EventType.ERROR, source=item.source, file_path=item.full_path, message=str(e)
                )
                pass_result.files_failed += 1

            else:
                pass_result.files_confirmed += 1
                pass_result.bytes_uploaded += transfer.bytes_uploaded
                self._record_event(
                    EventType.CONFIRMED,
                    source=item.source,
                    file_path=item.full_path,
                    message=transfer.web_view_link or "",
                )

        if persist_error is not None:
            raise persist_error

    def _record_event(self, event_type: EventType, **fields) -> None:
        SyncEvent.objects.create(
            run=self.run_record,
            pass_number=self._pass_number,
            event_type=event_type,
            **fields,
        )
