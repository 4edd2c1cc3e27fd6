"""
Utility decorators and context managers.
"""

import time
from contextlib import contextmanager
from typing import Dict, Iterator


@contextmanager
def timer() -> Iterator[Dict[str, int]]:
    """
    Measure wall-clock time of a block in milliseconds.

    The yielded dict is filled in when the block exits, so read ``t["ms"]``
    after the ``with`` statement:

        with timer() as t:
            run()
        elapsed = t["ms"]
    """
    result = {"ms": 0}
    start = time.perf_counter()
    try:
        yield result
    finally:
        result["ms"] = max(1, int(round((time.perf_counter() - start) * 1000)))
