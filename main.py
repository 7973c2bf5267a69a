"""
Entry Point for Cloud Server Deployment

Starts the queue API with uvicorn. The garbage collector runs inside the
API process (it is started by the application lifespan), and the queue
is held in that process's memory, so exactly one worker process is run:
a second process would hold a second, unrelated queue.

Logging is configured once, by importing offline_queue.main.
"""

import logging

import uvicorn

from offline_queue.core.config import settings
from offline_queue.main import app

logger = logging.getLogger(__name__)


def main():
    """Run the API server until interrupted."""
    port = settings.server_port

    print("=" * 70)
    print("OFFLINE ACTION QUEUE - STARTUP")
    print("=" * 70)
    print(f"Binding to 0.0.0.0:{port}")
    print(f"Docs: http://localhost:{port}/docs")
    print("=" * 70)

    logger.info(f"Starting queue API on 0.0.0.0:{port} (single worker)")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        reload=False,
        log_level=settings.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
