import time


def now_ms() -> int:
    """Horodatage epoch en millisecondes (format createdOn)."""
    return int(time.time() * 1000)
