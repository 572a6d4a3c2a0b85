import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ..ports.otp_repo import OTPRepository
from ...utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class OTPCleaner:
    otp_repo: OTPRepository
    clock: Callable[[], datetime] = utcnow

    def sweep_expired(self) -> int:
        """Delete every code whose expiry has passed. Safe to run at any time."""
        count = self.otp_repo.delete_expired(self.clock())
        logger.info(f"Cleaned up {count} expired OTPs")
        return count


async def run_periodically(sweep: Callable[[], int], interval_seconds: int) -> None:
    """Run ``sweep`` in a worker thread every ``interval_seconds`` until cancelled.

    A failed sweep is logged and left for the next tick.
    """
    while True:
        try:
            await asyncio.to_thread(sweep)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error cleaning up expired OTPs: {e}")
        await asyncio.sleep(interval_seconds)
