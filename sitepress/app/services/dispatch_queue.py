############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# dispatch_queue.py: Background queue and worker for translation jobs
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Translation dispatch queue.

Admin actions enqueue a PostRecord and return immediately; a single consumer
task started by the application lifespan runs the TranslationDispatcher with
its own database session per job. Enqueue never blocks and never raises.
"""

import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitepress.app.core.metrics import DISPATCH_DROPPED, DISPATCH_QUEUE_DEPTH
from sitepress.app.core.post_schemas import PostRecord
from sitepress.app.db.session import get_async_db_context
from sitepress.app.logging_config import get_logger
from sitepress.app.services.translation import DispatchReport, TranslationDispatcher

logger = get_logger(__name__)


class DispatchQueue:
    """Bounded in-process job queue with one consumer task."""

    def __init__(
        self,
        dispatcher: TranslationDispatcher,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        maxsize: int = 100,
        drain_timeout: float = 10.0,
    ):
        self._dispatcher = dispatcher
        self._session_factory = session_factory
        self._queue: asyncio.Queue[PostRecord] = asyncio.Queue(maxsize=maxsize)
        self._drain_timeout = drain_timeout
        self._worker_task: Optional[asyncio.Task] = None
        self._accepting = False
        self.last_report: Optional[DispatchReport] = None

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        """Start the consumer task."""
        if self.running:
            return
        self._accepting = True
        self._worker_task = asyncio.create_task(self._worker_loop())
        logger.info("dispatch_queue_started", maxsize=self._queue.maxsize)

    async def stop(self) -> None:
        """Stop accepting jobs, drain what is queued (bounded), then cancel."""
        self._accepting = False
        if self._worker_task is None:
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("dispatch_queue_drain_timeout", pending=self._queue.qsize())

        self._worker_task.cancel()
        try:
            await self._worker_task
        except asyncio.CancelledError:
            pass
        self._worker_task = None
        logger.info("dispatch_queue_stopped", dropped=self._queue.qsize())

    def enqueue(self, record: PostRecord) -> bool:
        """
        Queue a translation job without waiting.

        Returns:
            False if the job was dropped (queue stopped or full)
        """
        if not self._accepting:
            DISPATCH_DROPPED.inc()
            logger.warning("dispatch_dropped", slug=record.slug, reason="not_running")
            return False
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            DISPATCH_DROPPED.inc()
            logger.warning("dispatch_dropped", slug=record.slug, reason="queue_full")
            return False

        DISPATCH_QUEUE_DEPTH.set(self._queue.qsize())
        logger.debug("dispatch_enqueued", slug=record.slug, locale=record.locale)
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _worker_loop(self) -> None:
        """Consume jobs until cancelled; a failed job never stops the loop."""
        while True:
            record = await self._queue.get()
            try:
                await self._run_job(record)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("dispatch_job_failed", slug=record.slug, error=str(e))
            finally:
                self._queue.task_done()
                DISPATCH_QUEUE_DEPTH.set(self._queue.qsize())

    async def _run_job(self, record: PostRecord) -> None:
        async with get_async_db_context(self._session_factory) as db:
            self.last_report = await self._dispatcher.dispatch(db, record)
