"""
Task Manager
============

Run batch exports as background asyncio tasks with status tracking,
progress subscriptions and cancellation. At most one export runs per session.
"""

from typing import Any, AsyncIterator, Dict, List, Optional
from datetime import datetime, timedelta
import asyncio
import uuid

from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.core.errors import (
    BatchQRError,
    EmptyTemplateError,
    ExportCancelledError,
    ExportInProgressError,
    ExportJobNotFoundError,
    MissingDatasetError,
)
from batchqr.core.export.orchestrator import CancellationToken
from batchqr.core.session import EditingSession
from batchqr.models.schemas import (
    ExportJobResponse,
    ExportResult,
    ExportStatus,
    ProgressEvent,
    RenderOptions,
    utcnow,
)

logger = get_logger(__name__)

TERMINAL_STATUSES = {ExportStatus.COMPLETED, ExportStatus.FAILED, ExportStatus.CANCELLED}


class ExportJob:
    """State of one export job."""

    def __init__(self, session_id: str, filename_column: Optional[str], options: RenderOptions):
        self.job_id = uuid.uuid4().hex
        self.session_id = session_id
        self.filename_column = filename_column
        self.options = options
        self.status = ExportStatus.PENDING
        self.progress = 0
        self.message: Optional[str] = "Queued"
        self.error: Optional[str] = None
        self.result: Optional[ExportResult] = None
        self.created_at: datetime = utcnow()
        self.updated_at: datetime = self.created_at
        self.cancellation = CancellationToken()
        self.task: Optional["asyncio.Task[None]"] = None
        self.subscribers: List["asyncio.Queue[ProgressEvent]"] = []

    @property
    def finished(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def event(self) -> ProgressEvent:
        return ProgressEvent(
            job_id=self.job_id, status=self.status, progress=self.progress, message=self.message
        )

    def to_response(self) -> ExportJobResponse:
        return ExportJobResponse(
            job_id=self.job_id,
            session_id=self.session_id,
            status=self.status,
            progress=self.progress,
            message=self.message,
            error=self.error,
            result=self.result.summary() if self.result else None,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class TaskManager:
    """Export job registry backed by asyncio tasks."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self.logger: Any = logger.bind(component="task_manager")  # structlog.BoundLoggerBase
        self.jobs: Dict[str, ExportJob] = {}
        self._running: Dict[str, str] = {}

    @property
    def active_jobs(self) -> int:
        return len(self._running)

    async def close(self) -> None:
        """Cancel running exports and wait for them to stop."""
        tasks = [job.task for job in self.jobs.values() if job.task and not job.task.done()]
        for job in self.jobs.values():
            job.cancellation.cancel()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.logger.info("Task manager closed", cancelled=len(tasks))

    def submit_export(
        self,
        session: EditingSession,
        filename_column: Optional[str] = None,
        options: Optional[RenderOptions] = None,
    ) -> ExportJob:
        """
        Start a background export of the session's current state.

        Args:
            session: Session to export
            filename_column: Column naming each file
            options: Render options

        Returns:
            The new job, already scheduled

        Raises:
            ExportInProgressError: If the session already has a running export
            EmptyTemplateError: If the template has no elements
            MissingDatasetError: If no dataset has been imported
        """
        running = self._running.get(session.session_id)
        if running is not None:
            raise ExportInProgressError(session.session_id, running)
        if session.template.is_empty:
            raise EmptyTemplateError()
        if session.dataset is None:
            raise MissingDatasetError()

        self._prune_expired()

        job = ExportJob(session.session_id, filename_column, options or RenderOptions())
        self.jobs[job.job_id] = job
        self._running[session.session_id] = job.job_id
        job.task = asyncio.create_task(self._run(job, session))

        self.logger.info(
            "Export submitted",
            job_id=job.job_id,
            session_id=session.session_id,
            rows=session.dataset.total_rows,
        )
        return job

    def get_job(self, job_id: str) -> ExportJob:
        self._prune_expired()
        job = self.jobs.get(job_id)
        if job is None:
            raise ExportJobNotFoundError(job_id)
        return job

    def cancel_job(self, job_id: str) -> ExportJob:
        """Request cancellation; the export stops before its next row."""
        job = self.get_job(job_id)
        if not job.finished:
            job.cancellation.cancel()
            self.logger.info("Export cancellation requested", job_id=job_id)
        return job

    def running_job_for(self, session_id: str) -> Optional[ExportJob]:
        job_id = self._running.get(session_id)
        return self.jobs.get(job_id) if job_id else None

    def discard_session(self, session_id: str) -> None:
        """
        Cancel the session's running export and drop its finished jobs and archives.

        The cancelled job stays registered until it stops; it holds no archive.
        """
        running = self.running_job_for(session_id)
        if running is not None:
            self.cancel_job(running.job_id)

        discarded = [
            job_id
            for job_id, job in self.jobs.items()
            if job.session_id == session_id and job.finished
        ]
        for job_id in discarded:
            del self.jobs[job_id]
        if discarded:
            self.logger.info("Session jobs discarded", session_id=session_id, count=len(discarded))

    async def subscribe(self, job_id: str) -> AsyncIterator[ProgressEvent]:
        """
        Stream progress events for a job.

        The current state is yielded first; the stream ends after a terminal
        status (completed, failed or cancelled).
        """
        job = self.get_job(job_id)
        queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()
        job.subscribers.append(queue)
        try:
            current = job.event()
            yield current
            if current.status in TERMINAL_STATUSES:
                return
            while True:
                event = await queue.get()
                yield event
                if event.status in TERMINAL_STATUSES:
                    return
        finally:
            job.subscribers.remove(queue)

    async def _run(self, job: ExportJob, session: EditingSession) -> None:
        self._update(job, status=ExportStatus.PROCESSING, message="Rendering rows")

        def on_progress(value: int) -> None:
            self._update(job, progress=value)

        try:
            job.result = await session.export_all(
                filename_column=job.filename_column,
                progress=on_progress,
                options=job.options,
                cancellation=job.cancellation,
            )
            self._update(
                job,
                status=ExportStatus.COMPLETED,
                progress=100,
                message=f"Exported {job.result.total_rows} rows",
            )
        except ExportCancelledError as e:
            self._update(job, status=ExportStatus.CANCELLED, progress=0, message=str(e))
        except BatchQRError as e:
            job.error = str(e)
            self._update(job, status=ExportStatus.FAILED, progress=0, message="Export failed")
        except Exception as e:
            self.logger.exception("Unexpected export failure", job_id=job.job_id)
            job.error = f"Unexpected export failure: {e}"
            self._update(job, status=ExportStatus.FAILED, progress=0, message="Export failed")
        except asyncio.CancelledError:
            self._update(job, status=ExportStatus.CANCELLED, progress=0, message="Export aborted")
            raise
        finally:
            self._running.pop(job.session_id, None)

    def _update(
        self,
        job: ExportJob,
        status: Optional[ExportStatus] = None,
        progress: Optional[int] = None,
        message: Optional[str] = None,
    ) -> None:
        if status is not None:
            job.status = status
        if progress is not None:
            job.progress = progress
        if message is not None:
            job.message = message
        job.updated_at = utcnow()

        event = job.event()
        for queue in job.subscribers:
            queue.put_nowait(event)

        if status is not None:
            self.logger.info(
                "Export status changed",
                job_id=job.job_id,
                status=job.status.value,
                progress=job.progress,
                error=job.error,
            )

    def _prune_expired(self) -> None:
        cutoff = utcnow() - timedelta(seconds=self.settings.export_job_ttl)
        expired = [
            job_id for job_id, job in self.jobs.items() if job.finished and job.updated_at < cutoff
        ]
        for job_id in expired:
            del self.jobs[job_id]
        if expired:
            self.logger.debug("Expired export jobs pruned", count=len(expired))
