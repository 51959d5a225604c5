import asyncio
import logging
import signal
import sys
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from config.paths import DASHBOARD_LOG
from config.settings import DISCOVERY_INTERVAL, METRICS_INTERVAL
from src.core.dashboard import DashboardService, dedupe_by_address
from utils.logger import setup_logger

logger = logging.getLogger(__name__)

CHECK_INTERVAL = 30  # seconds between schedule checks
ERROR_BACKOFF = 60


class DashboardOrchestrator:
    """Periodic discovery and metrics refresh for the dashboard data files."""

    def __init__(self, service: Optional[DashboardService] = None,
                 intervals: Optional[Dict[str, int]] = None,
                 check_interval: float = CHECK_INTERVAL):
        self.service = service or DashboardService()
        self.check_interval = check_interval

        # Seconds between runs of each cycle
        self.intervals = intervals or {
            "discovery": DISCOVERY_INTERVAL,
            "metrics": METRICS_INTERVAL
        }
        self.last_runs: Dict[str, Optional[datetime]] = dict.fromkeys(self.intervals)
        self.tracked_tokens: List[dict] = []

        self.running = True
        self.tasks: List[asyncio.Task] = []

    def _should_run(self, name: str) -> bool:
        last_run = self.last_runs.get(name)
        if last_run is None:
            return True
        return datetime.now() - last_run >= timedelta(seconds=self.intervals[name])

    async def run_discovery_cycle(self):
        logger.info("Starting discovery cycle")
        new_tokens, trending, _ = await self.service.collect_candidates()
        self.tracked_tokens = dedupe_by_address(new_tokens, trending, self.tracked_tokens)
        self.last_runs["discovery"] = datetime.now()
        logger.info(f"Discovery completed. {len(new_tokens)} new tokens, "
                    f"{len(trending)} trending memes, tracking {len(self.tracked_tokens)}")

    async def run_metrics_cycle(self):
        if not self.tracked_tokens:
            logger.debug("No tracked tokens yet, skipping metrics cycle")
            return
        logger.info(f"Starting metrics cycle for {len(self.tracked_tokens)} tokens")
        metrics = await self.service.metrics.get_detailed_metrics(self.tracked_tokens)
        if metrics:
            await self.service.comparator.compare_tokens(metrics)
            await self.service.recommender.generate_recommendations(metrics)
        self.last_runs["metrics"] = datetime.now()
        logger.info(f"Metrics cycle completed for {len(metrics)} tokens")

    async def _loop(self, name: str, cycle):
        while self.running:
            try:
                if self._should_run(name):
                    await cycle()
                await asyncio.sleep(self.check_interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in {name} cycle: {str(e)}", exc_info=True)
                await asyncio.sleep(ERROR_BACKOFF)

    def handle_shutdown(self):
        """Stop both loops. Installed as the SIGINT/SIGTERM handler."""
        logger.info("Shutdown requested, stopping poller")
        self.running = False
        for task in self.tasks:
            task.cancel()

    async def _drain_tasks(self):
        for task in self.tasks:
            task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)

    async def run(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.handle_shutdown)
            except NotImplementedError:
                logger.debug(f"Signal handlers not supported for {sig}")

        logger.info("Starting dashboard poller")
        self.tasks = [
            asyncio.create_task(self._loop(name, cycle))
            for name, cycle in (("discovery", self.run_discovery_cycle), ("metrics", self.run_metrics_cycle))
        ]

        try:
            await asyncio.gather(*self.tasks)
        except asyncio.CancelledError:
            logger.info("Poller loops cancelled")
        finally:
            await self._drain_tasks()
            await self.service.close()
            logger.info("Dashboard poller stopped")


async def main():
    try:
        await DashboardOrchestrator().run()
    except Exception as e:
        logger.critical(f"Poller crashed: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    setup_logger(log_file=DASHBOARD_LOG)
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Poller interrupted")
        sys.exit(0)
