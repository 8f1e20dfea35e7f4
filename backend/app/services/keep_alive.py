"""
Energo Token Keep-Alive
=======================

The Energo bearer token dies if nobody uses it for a while. This keeps it
busy by asking for one battery's latest order every minute.

    STOPPED --start()--> RUNNING --stop()--> STOPPED

A failed ping is logged and the next one still happens on schedule.
There is no backoff: a dead token gets pinged every interval until an
admin pastes a new one.

Author: CUUB Battery Team
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from app.services.energo_service import EnergoService
from app.services.poller import Poller, PollingTask

logger = logging.getLogger(__name__)


class TokenKeepAlive:
    """
    Periodic no-op request against Energo.

    Args:
        energo_service: Service used to send the ping
        poller: Shared poller (owns the scheduler)
        sample_battery_id: Any battery Energo knows about
        interval_seconds: Seconds between pings (default 60)
    """

    DEFAULT_BATTERY_ID = "RL3D52000012"
    DEFAULT_INTERVAL = 60

    def __init__(
        self,
        energo_service: EnergoService,
        poller: Poller,
        sample_battery_id: str = DEFAULT_BATTERY_ID,
        interval_seconds: float = DEFAULT_INTERVAL,
    ):
        self.energo_service = energo_service
        self.poller = poller
        self.sample_battery_id = sample_battery_id
        self.interval_seconds = interval_seconds

        self._task: Optional[PollingTask] = None
        self.consecutive_failures = 0
        self.last_success_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and self._task.is_running

    def start(self) -> "TokenKeepAlive":
        if self.is_running:
            return self

        logger.info(
            f"[Token Keep-Alive] Starting Energo API token keep-alive for battery "
            f"{self.sample_battery_id} (interval: {self.interval_seconds}s)"
        )
        self._task = self.poller.start(
            self.interval_seconds,
            self._ping,
            self._on_result,
            name="energo_keep_alive",
        )
        return self

    def stop(self) -> None:
        if not self.is_running:
            return
        logger.info("[Token Keep-Alive] Stopping Energo API token keep-alive")
        self._task.stop()

    def __call__(self) -> None:
        self.stop()

    async def _ping(self) -> bool:
        return await self.energo_service.send_keep_alive(self.sample_battery_id)

    def _on_result(self, error: Optional[Exception], accepted) -> None:
        if error is None and accepted:
            self.consecutive_failures = 0
            self.last_success_at = datetime.now(timezone.utc)
            return

        self.consecutive_failures += 1
        if self.consecutive_failures % 10 == 0:
            logger.warning(
                f"[Token Keep-Alive] {self.consecutive_failures} failed pings in a row - "
                f"the Energo token probably expired"
            )
