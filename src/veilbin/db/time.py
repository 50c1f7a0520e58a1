# src/veilbin/db/time.py
"""Time utilities for stored records."""

import time


def epoch_now() -> int:
    """Return the current Unix time in whole seconds."""
    return int(time.time())
