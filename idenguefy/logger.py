from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_DIR = Path("logs")


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[Path] = None,
) -> None:
    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    logfile = log_dir / "idenguefy.log"
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(logfile),
            logging.StreamHandler(),
        ],
    )
    # urllib3 logs every connection at DEBUG; tile prefetch opens thousands
    logging.getLogger("urllib3").setLevel(logging.WARNING)
