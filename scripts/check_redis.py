"""CLI smoke check: open a cache and a lock against a live Redis and exercise both."""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from pathlib import Path

from cachelock.build import DefaultRedisFactory
from cachelock.core import CacheLockError, ConfigParams, RedisCache, RedisLock
from cachelock.utils.logging import get_logger


logger = get_logger("CheckRedis")


async def run_check(config: ConfigParams, trace_id: str) -> None:
    factory = DefaultRedisFactory()
    cache: RedisCache = factory.create(DefaultRedisFactory.REDIS_CACHE_DESCRIPTOR)
    lock: RedisLock = factory.create(DefaultRedisFactory.REDIS_LOCK_DESCRIPTOR)
    cache.configure(config)
    lock.configure(config)

    await cache.open(trace_id)
    try:
        key = f"cachelock:check:{trace_id}"
        await cache.store(trace_id, key, {"probe": trace_id}, 5000)
        value = await cache.retrieve(trace_id, key)
        logger.info("Cache round trip returned %s", value)
        await cache.remove(trace_id, key)
    finally:
        await cache.close(trace_id)

    await lock.open(trace_id)
    try:
        async with lock.lock(trace_id, f"cachelock:check-lock:{trace_id}", 5000, 1000):
            logger.info("Lock acquired with owner token %s", lock.token)
    finally:
        await lock.close(trace_id)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Check connectivity of the Redis cache and lock components.")
    parser.add_argument("--config", type=Path, default=Path("config/cachelock.example.yml"), help="Path to YAML config")
    parser.add_argument("--trace-id", default=None, help="Trace id to tag log lines with")
    args = parser.parse_args()

    config = ConfigParams.from_file(args.config)
    trace_id = args.trace_id or uuid.uuid4().hex[:12]
    try:
        await run_check(config, trace_id)
    except CacheLockError as exc:
        logger.error("Check failed: %s", exc)
        return 1
    logger.info("Redis components are healthy")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
