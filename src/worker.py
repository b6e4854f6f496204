"""Background worker: aggregator flushes and the periodic jobs.

Run with: python -m src.worker

Any number of replicas may run. Flushes run in every replica (overlap is
tolerated); the leaderboard resync and the decay sweep are gated by job locks
so exactly one replica runs each per interval.
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import asyncio
import logging
import os
import signal

from config.settings import settings
from src.ss_aggregator.application.aggregator import Aggregator
from src.ss_cluster.jobs import JobScheduler
from src.ss_common.database import engine
from src.ss_common.keys import DECAY_JOB, LEADERBOARD_SYNC_JOB
from src.ss_common.redis_client import close_redis
from src.ss_leaderboard.application.service import LeaderboardService
from src.ss_market.application.decay_service import DecayService

logger = logging.getLogger("ss.worker")


async def flush_loop(aggregator: Aggregator, interval_s: float, stop: asyncio.Event) -> None:
    while not stop.is_set():
        try:
            await aggregator.flush()
        except Exception:
            # Batch already requeued by the aggregator; retry on the next tick.
            logger.exception("Flush tick failed")
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_s)
        except asyncio.TimeoutError:
            pass


async def run() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    aggregator = Aggregator()
    scheduler = JobScheduler(owner=f"worker:{os.getpid()}")
    leaderboard = LeaderboardService()
    decay = DecayService()

    logger.info("Worker started (pid %d)", os.getpid())
    try:
        await asyncio.gather(
            flush_loop(aggregator, settings.AGGREGATOR_FLUSH_INTERVAL_S, stop),
            scheduler.run_periodically(
                LEADERBOARD_SYNC_JOB,
                settings.LEADERBOARD_SYNC_INTERVAL_S,
                settings.LEADERBOARD_SYNC_LOCK_MS,
                leaderboard.full_resync,
                stop,
            ),
            scheduler.run_periodically(
                DECAY_JOB,
                settings.DECAY_INTERVAL_S,
                settings.DECAY_LOCK_MS,
                decay.run,
                stop,
            ),
        )
    finally:
        await aggregator.close()
        await engine.dispose()
        await close_redis()
        logger.info("Worker stopped")


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    asyncio.run(run())


if __name__ == "__main__":
    main()
