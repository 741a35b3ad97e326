import logging

from rq import Worker

from quizdesk.core.config import settings
from quizdesk.jobs.queue import get_queue

if __name__ == "__main__":
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL),
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    queue = get_queue()
    w = Worker([queue], connection=queue.connection)
    w.work()
