"""Run the service with uvicorn.

    $ python -m app.server

uvicorn turns SIGINT/SIGTERM into a lifespan shutdown, which is where the
jobs are expired and the storage root removed.
"""

import uvicorn

from app.config import settings


def main() -> None:
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=int(settings.shutdown_grace_seconds) or None,
    )


if __name__ == "__main__":
    main()
