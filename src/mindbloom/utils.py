# ==============================
# File: src/mindbloom/utils.py
# ==============================
import logging
import random
import string
import time
from datetime import datetime, timezone

from .config import CFG


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, CFG.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def now_ms() -> int:
    return int(time.time() * 1000)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str = "", rng: random.Random | None = None) -> str:
    """Time-ordered id with a short random suffix, e.g. ``conv_1727000000000_k3j9x0q1z``."""
    rng = rng or random
    suffix = "".join(rng.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    stem = f"{now_ms()}_{suffix}"
    return f"{prefix}_{stem}" if prefix else stem
