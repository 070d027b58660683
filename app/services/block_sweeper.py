"""Background reconciliation of lapsed block records.

Block enforcement on the request path only reads; this sweeper is the single
writer that turns a lapsed block record inactive and clears the user's cached
``is_blocked`` flag once nothing active remains. Between a block lapsing and
the next tick the flag is stale, which the request guard tolerates.
"""
from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Callable, Optional

from loguru import logger
from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.core.clock import Clock, utc_now
from app.core.config import Settings
from app.core.errors import ConflictError
from app.db.session import atomic
from app.models.user import User
from app.services import block_service


@dataclass
class SweepResult:
    updated_records: list[int] = field(default_factory=list)
    unblocked_users: list[int] = field(default_factory=list)
    failed_records: list[int] = field(default_factory=list)
    skipped: bool = False

    @property
    def mutated(self) -> bool:
        return bool(self.updated_records or self.unblocked_users)


class BlockSweeper:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        interval_seconds: float = 300,
        timeout_seconds: float = 60.0,
        record_timeout_seconds: float = 10.0,
        record_workers: int = 4,
        clock: Clock = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._timeout = timeout_seconds
        self._record_timeout = record_timeout_seconds
        self._record_workers = record_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._clock = clock
        self._run_lock = threading.Lock()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, config: Settings, engine: Engine, clock: Clock = utc_now) -> 'BlockSweeper':
        return cls(
            lambda: Session(engine),
            interval_seconds=config.BLOCK_SWEEP_INTERVAL_SECONDS,
            timeout_seconds=config.BLOCK_SWEEP_TIMEOUT_SECONDS,
            record_timeout_seconds=config.BLOCK_SWEEP_RECORD_TIMEOUT_SECONDS,
            clock=clock,
        )

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._running

    def run_once(self) -> SweepResult:
        """Deactivate every active record whose duration has elapsed.

        A failure to list the records propagates. Failures on individual
        records are logged and skipped so the rest of the batch still runs.
        Each record gets ``record_timeout_seconds``; a record that is still
        running after that is counted as failed and retried next tick. If a
        previous run still holds the sweep, this run is skipped.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning('Block sweep already in progress, skipping this run')
            return SweepResult(skipped=True)
        try:
            return self._sweep()
        finally:
            self._run_lock.release()

    def _sweep(self) -> SweepResult:
        result = SweepResult()
        now = self._clock()
        with self._session_factory() as session:
            expired = [
                (record.id, record.user_id)
                for record in block_service.list_active_expired_block_records(session, now)
            ]
        if not expired:
            logger.debug('No expired block records found')
            return result

        for block_id, user_id in expired:
            future = self._record_executor().submit(self._expire_record, block_id, user_id)
            try:
                unblocked = future.result(timeout=self._record_timeout)
            except FutureTimeoutError:
                logger.error('Block record #{} exceeded {}s, retrying next tick', block_id, self._record_timeout)
                result.failed_records.append(block_id)
                continue
            except ConflictError as exc:
                logger.warning('Failed to change status for block #{}: {}', block_id, exc.message)
                result.failed_records.append(block_id)
                continue
            except Exception:
                logger.exception('Failed to expire block record #{}', block_id)
                result.failed_records.append(block_id)
                continue
            result.updated_records.append(block_id)
            logger.info('Block record status changed for block #{}', block_id)
            if unblocked:
                result.unblocked_users.append(user_id)
                logger.info('User #{} unblocked by system after block expiration', user_id)

        logger.info(
            'Block records checked for expiration (unblocked users: {}, updated records: {}, failed: {})',
            len(result.unblocked_users),
            len(result.updated_records),
            len(result.failed_records),
        )
        return result

    def _expire_record(self, block_id: int, user_id: int) -> bool:
        with self._session_factory() as session:
            with atomic(session):
                block_service.deactivate_block_record(session, block_id)
                if block_service.count_active_blocks(session, user_id) > 0:
                    return False
                cleared = session.exec(
                    update(User)
                    .where((User.id == user_id) & (User.is_blocked.is_(True)))
                    .values(is_blocked=False)
                )
                return bool(cleared.rowcount)

    def _record_executor(self) -> ThreadPoolExecutor:
        # a stuck record keeps its worker, so the pool needs spare threads
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._record_workers, thread_name_prefix='block-sweep'
            )
        return self._executor

    def shutdown(self, wait: bool = True) -> None:
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    async def start(self) -> None:
        if self._running:
            logger.warning('Block sweeper is already running')
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info('Block sweeper started (interval: {}s)', self._interval)

    async def stop(self) -> None:
        self._running = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.shutdown(wait=False)
        logger.info('Block sweeper stopped')

    async def _loop(self) -> None:
        while self._running:
            try:
                await asyncio.wait_for(asyncio.to_thread(self.run_once), timeout=self._timeout)
            except asyncio.TimeoutError:
                logger.error('Block sweep exceeded {}s, retrying next tick', self._timeout)
            except Exception:
                logger.exception('Failed to update block records status')
            await asyncio.sleep(self._interval)
