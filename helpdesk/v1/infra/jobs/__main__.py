import asyncio

from helpdesk.config.settings import settings
from helpdesk.v1.infra.jobs.startup import run_worker

if __name__ == "__main__":
    asyncio.run(run_worker(settings))
