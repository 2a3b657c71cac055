from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any
from typing import TypeVar

from django.db import transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


def best_effort(
    label: str,
    func: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T | None:
    """Run a secondary write in its own savepoint; log and drop any failure.

    The primary mutation that precedes it is kept either way.
    """

    try:
        with transaction.atomic():
            return func(*args, **kwargs)
    except Exception:
        logger.exception("Side effect %s failed", label)
        return None
