from functools import lru_cache

from redis import Redis
from rq import Queue

from quizdesk.core.config import settings


@lru_cache
def get_queue() -> Queue:
    return Queue(settings.NOTIFY_QUEUE, connection=Redis.from_url(settings.REDIS_URL))
