"""Line-oriented dump of a numeric sequence."""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)


class OutputSinkError(OSError):
    """The destination could not be created or written."""


@contextmanager
def sink_errors(destination: str, what: str = "output") -> Iterator[None]:
    """Re-raise any ``OSError`` in the block as :class:`OutputSinkError`."""
    try:
        yield
    except OutputSinkError:
        raise
    except OSError as exc:
        raise OutputSinkError(f"cannot write {what} to {destination!r}: {exc}") from exc


def ensure_dir(path: str) -> str:
    with sink_errors(path, "directory"):
        os.makedirs(path, exist_ok=True)
    return path


def format_value(value: float) -> str:
    return repr(float(value))


def dump_sequence(values: Iterable[float], destination: str) -> str:
    """Write one value per line to ``destination`` and return its path.

    No header is written. Failures are re-raised as :class:`OutputSinkError`;
    ``values`` is left untouched so the caller can retry elsewhere.
    """

    with sink_errors(destination, "sequence"):
        parent = os.path.dirname(destination)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(destination, "w", encoding="utf-8") as f:
            for v in values:
                f.write(format_value(v))
                f.write("\n")
    logger.info("Saved sequence to %s", destination)
    return destination
