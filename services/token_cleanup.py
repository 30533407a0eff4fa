"""Periodic removal of expired tokens, started by the application lifespan."""

import asyncio
from typing import Callable
from sqlalchemy.orm import Session
from core.config import SessionPolicy
from services.session_manager import SessionManager
from utils.signing import JwtSigner
from utils.logger import get_logger

logger = get_logger(__name__)


class TokenCleanupWorker:
    """
    Runs SessionManager.cleanup_expired_tokens every `interval_seconds`.

    Sweeps are single-flight: a sweep requested while another is running is
    skipped. The blocking database work runs in a thread so the event loop
    keeps serving requests.
    """

    def __init__(self, session_factory: Callable[[], Session], policy: SessionPolicy,
                 signer: JwtSigner, interval_seconds: int):
        self.session_factory = session_factory
        self.policy = policy
        self.signer = signer
        self.interval_seconds = interval_seconds
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _sweep(self) -> int:
        db = self.session_factory()
        try:
            return SessionManager(db, self.policy, self.signer).cleanup_expired_tokens()
        finally:
            db.close()

    async def run_once(self) -> int | None:
        """
        Returns:
            Number of deleted tokens, or None if a sweep was already running
        """
        if self._lock.locked():
            logger.debug("Token cleanup already running, skipping")
            return None
        async with self._lock:
            return await asyncio.to_thread(self._sweep)

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(
                    f"Token cleanup error: {e}",
                    extra={"error_type": type(e).__name__},
                    exc_info=True
                )

    def start(self) -> None:
        if self.interval_seconds <= 0:
            logger.info("Token cleanup disabled", extra={"interval_seconds": self.interval_seconds})
            return
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Token cleanup started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Token cleanup stopped")
