"""
Redis-based notification queue for sync batches

Uses LPUSH/BRPOP like the platform's other worker queues.

Queue:
- queue:sync:batches - one message per committed batch
  {listener, from_block, to_block, events, applied, committed_at}
"""
import json
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as redis

DEFAULT_BATCH_QUEUE = 'queue:sync:batches'


class JobQueue:
    """
    Redis list producer/consumer

    The listener only publishes; dequeue() is what downstream workers
    (and tests) use to consume batch announcements.
    """

    def __init__(self, redis_url: str, queue_name: str = DEFAULT_BATCH_QUEUE):
        self.redis = None
        self.redis_url = redis_url
        self.queue_name = queue_name

    async def connect(self):
        """Initialize Redis connection"""
        self.redis = await redis.from_url(self.redis_url, decode_responses=True)

    async def close(self):
        """Close Redis connection"""
        if self.redis:
            await self.redis.close()

    async def enqueue(self, queue_name: str, job: dict):
        await self.redis.lpush(queue_name, json.dumps(job))

    async def dequeue(self, queue_name: str, timeout: int = 5) -> Optional[dict]:
        """
        Blocking pop from queue (BRPOP)

        Returns None on timeout
        """
        result = await self.redis.brpop(queue_name, timeout=timeout)
        if result:
            # result is a tuple: (queue_name, job_json)
            return json.loads(result[1])
        return None

    async def queue_length(self, queue_name: str) -> int:
        return await self.redis.llen(queue_name)

    async def publish_batch(
        self,
        listener_name: str,
        from_block: int,
        to_block: int,
        events: int,
        applied: int,
    ):
        """
        Announce a committed batch.

        Example:
            await queue.publish_batch('desci-main', 100, 199, events=12, applied=10)
        """
        await self.enqueue(self.queue_name, {
            'listener': listener_name,
            'from_block': from_block,
            'to_block': to_block,
            'events': events,
            'applied': applied,
            'committed_at': datetime.now(timezone.utc).isoformat(),
        })
