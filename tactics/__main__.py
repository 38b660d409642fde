"""Run the service: ``python -m tactics``."""

import logging

import uvicorn

from tactics.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    level = (level or settings.log_level).upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("tactics").setLevel(level)


def main() -> None:
    configure_logging()
    uvicorn.run("tactics.main:app", host="0.0.0.0", port=8000, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
