"""Command-line entry point: `mernapp` or `python -m mernapp`.

Binds settings.host:settings.port (PORT, default 3000) with WEB_CONCURRENCY workers.
Each worker is an independent process with its own cache and connection supervisor.
"""

import uvicorn

from mernapp.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "mernapp.main:app",
        host=settings.host,
        port=settings.port,
        workers=max(1, settings.web_concurrency),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
