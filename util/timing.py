# util/timing.py
import time
from contextlib import contextmanager
from typing import Iterator, Dict, Any
import logging


@contextmanager
def timed(logger: logging.Logger, name: str, **kv: Any) -> Iterator[Dict[str, int]]:
    """
    Usage:
      with timed(logger, "classify.model", case=case_id) as t:
          ...
      t["ms"]  # elapsed milliseconds, filled on exit
    Emits one INFO on exit: "<name>.done ms=<int> key=val ..."
    """
    box: Dict[str, int] = {"ms": 0}
    t0 = time.perf_counter()
    try:
        yield box
    finally:
        box["ms"] = int((time.perf_counter() - t0) * 1000)
        suffix = "".join(f" {k}={v}" for k, v in kv.items())
        logger.info("%s.done ms=%d%s", name, box["ms"], suffix)
