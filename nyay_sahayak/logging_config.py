import logging
import sys

from nyay_sahayak.config import settings


def configure_logging(level: str | None = None) -> None:
    """Configure process-wide logging once, at app start."""

    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
