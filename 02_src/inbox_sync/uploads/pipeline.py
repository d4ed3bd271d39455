"""Upload pipeline: per-file upload tasks with progress, retry and cancel."""

import asyncio
import uuid
from typing import Protocol

from ..errors import TooManyAttachments, UploadFailed
from ..inbox_api import IInboxApi
from ..logging_config import get_logger
from ..models import Attachment, PendingFile, UploadState, UploadTask

logger = get_logger(__name__)


class IUploadPipeline(Protocol):
    """Pending attachments of each thread's composer."""

    def tasks(self, thread_id: str) -> list[UploadTask]:
        ...

    def add_files(self, thread_id: str, files: list[PendingFile]) -> list[UploadTask]:
        """Accept files for the next message. Raises TooManyAttachments."""
        ...

    async def upload(self, task_id: str) -> UploadTask:
        """Upload one task now. Raises UploadFailed.

        Progress is kept across attempts, so a restarted upload never
        reports less than the previous attempt reached.
        """
        ...

    async def retry(self, task_id: str) -> UploadTask:
        ...

    def cancel(self, task_id: str) -> None:
        ...

    def clear(self, thread_id: str) -> None:
        ...

    async def ensure_uploaded(
        self, thread_id: str, timeout: float | None = None
    ) -> list[Attachment]:
        """Finish every upload of the thread and return the attachments."""
        ...


class UploadPipeline:
    """Tracks UploadTasks per thread.

    Non-voice files start uploading as soon as they are added. Voice
    files wait until the message is sent.
    """

    def __init__(
        self,
        api: IInboxApi,
        max_attachments: int = 5,
        wait_timeout: float = 10.0,
    ):
        self._api = api
        self._max_attachments = max_attachments
        self._wait_timeout = wait_timeout
        # thread id -> task id -> task, in selection order
        self._tasks: dict[str, dict[str, UploadTask]] = {}
        self._running: dict[str, asyncio.Task] = {}

    def tasks(self, thread_id: str) -> list[UploadTask]:
        return list(self._tasks.get(thread_id, {}).values())

    def get(self, task_id: str) -> UploadTask | None:
        for tasks in self._tasks.values():
            if task_id in tasks:
                return tasks[task_id]
        return None

    def add_files(self, thread_id: str, files: list[PendingFile]) -> list[UploadTask]:
        """Accept files for the next message.

        The whole batch is rejected when it would exceed the cap.
        """
        tasks = self._tasks.setdefault(thread_id, {})
        requested = len(tasks) + len(files)
        if requested > self._max_attachments:
            raise TooManyAttachments(self._max_attachments, requested)

        added = []
        for file in files:
            task = UploadTask(id=str(uuid.uuid4()), thread_id=thread_id, file=file)
            tasks[task.id] = task
            added.append(task)
            if not task.is_voice:
                self._spawn(task)
        logger.debug("Accepted %s file(s) for %s", len(added), thread_id)
        return added

    def _spawn(self, task: UploadTask) -> None:
        self._running[task.id] = asyncio.create_task(self._upload_in_background(task))

    async def _upload_in_background(self, task: UploadTask) -> None:
        try:
            await self.upload(task.id)
        except UploadFailed:
            pass  # recorded on the task
        finally:
            if self._running.get(task.id) is asyncio.current_task():
                del self._running[task.id]

    async def upload(self, task_id: str) -> UploadTask:
        """Upload one task now. Raises UploadFailed.

        Progress is kept across attempts, so a restarted upload never
        reports less than the previous attempt reached.
        """
        task = self._require(task_id)
        task.state = UploadState.UPLOADING
        task.error = None

        def on_progress(percent: int) -> None:
            if percent > task.progress:
                task.progress = min(percent, 100)

        try:
            attachments = await self._api.upload_files(
                [task.file], task.file.duration, on_progress
            )
            if not attachments:
                raise ValueError("Server returned no attachment")
        except Exception as e:
            task.state = UploadState.FAILED
            task.error = str(e)
            logger.warning(
                "Upload of %s failed: %s", task.file.filename, e,
                extra={"task_id": task.id, "thread_id": task.thread_id},
            )
            raise UploadFailed(task.id, task.file.filename, str(e)) from e

        attachment = attachments[0]
        if attachment.duration is None and task.file.duration is not None:
            attachment.duration = task.file.duration
        task.attachment = attachment
        task.progress = 100
        task.state = UploadState.DONE
        return task

    async def retry(self, task_id: str) -> UploadTask:
        """Re-attempt a task with its original file. Raises UploadFailed."""
        task = self._require(task_id)
        if task.state == UploadState.DONE:
            return task
        running = self._running.pop(task_id, None)
        if running:
            running.cancel()
        return await self.upload(task_id)

    def cancel(self, task_id: str) -> None:
        """Remove a task and its file from the composer."""
        running = self._running.pop(task_id, None)
        if running:
            running.cancel()
        for tasks in self._tasks.values():
            tasks.pop(task_id, None)

    async def ensure_uploaded(
        self, thread_id: str, timeout: float | None = None
    ) -> list[Attachment]:
        """Finish every upload of the thread and return the attachments.

        In-flight uploads get up to `timeout` seconds; anything not done
        after that is uploaded again here.
        """
        tasks = self.tasks(thread_id)
        in_flight = [
            self._running[task.id] for task in tasks if task.id in self._running
        ]
        if in_flight:
            _, pending = await asyncio.wait(
                in_flight,
                timeout=self._wait_timeout if timeout is None else timeout,
            )
            for running in pending:
                running.cancel()
            if pending:
                logger.warning(
                    "%s upload(s) still running after the wait, uploading again",
                    len(pending),
                )

        for task in tasks:
            if task.state != UploadState.DONE:
                self._running.pop(task.id, None)
                await self.upload(task.id)
        return [task.attachment for task in tasks]

    def clear(self, thread_id: str) -> None:
        """Forget a thread's tasks after a successful send."""
        for task_id in list(self._tasks.pop(thread_id, {})):
            running = self._running.pop(task_id, None)
            if running:
                running.cancel()

    async def stop(self) -> None:
        running = list(self._running.values())
        self._running.clear()
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)

    def _require(self, task_id: str) -> UploadTask:
        task = self.get(task_id)
        if task is None:
            raise KeyError(f"Unknown upload task {task_id}")
        return task
