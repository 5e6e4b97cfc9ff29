"""Periodic removal of expired tokens and codes"""

import asyncio

from authserver.core.config import logger, settings
from authserver.services.token_store import TokenStores, token_stores


class ExpirySweeper:
    """Background task calling remove_expired() on every store"""

    def __init__(self, stores: TokenStores | None = None, interval: float | None = None):
        self.stores = stores or token_stores
        self.interval = interval if interval is not None else settings.token_expires_check_interval
        self._task: asyncio.Task | None = None

    async def run_once(self) -> dict[str, int]:
        """
        Sweep all three stores once

        A failing store is logged and skipped; the others are still swept.

        Returns:
            Number of records removed per store (failed stores are omitted)
        """
        removed = {}
        for name, store in (
            ("access_tokens", self.stores.access),
            ("refresh_tokens", self.stores.refresh),
            ("authorization_codes", self.stores.codes),
        ):
            try:
                removed[name] = len(await store.remove_expired())
            except Exception as e:
                logger.error(f"Expired {name} sweep failed: {e}", exc_info=True)

        logger.info(f"Expired token sweep: {removed}")
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()

    def start(self) -> None:
        """Start the sweep loop on the running event loop"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="expiry-sweeper")
            logger.info(f"Expiry sweeper started (interval={self.interval}s)")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish"""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()


# Global instance
expiry_sweeper = ExpirySweeper()
