from __future__ import annotations

import random
from datetime import datetime, timezone

from ticketdesk.app.ticket_models import ticket_type_prefix


_SUFFIX_MIN = 1000
_SUFFIX_MAX = 9999


def generate_ticket_id(
    now: datetime,
    category: str,
    *,
    rng: random.Random | None = None,
    precise: bool = False,
) -> str:
    """Build ``RP-20240101-4821`` style ids.

    With ``precise`` the time of day down to milliseconds is added after the
    date so that ids minted on a busy day stay distinct.
    """
    source = rng if rng is not None else random
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    stamp = now.strftime("%Y%m%d")
    if precise:
        stamp = f"{stamp}-{now.strftime('%H%M%S')}{now.microsecond // 1000:03d}"
    suffix = source.randint(_SUFFIX_MIN, _SUFFIX_MAX)
    return f"{ticket_type_prefix(category)}-{stamp}-{suffix}"


class TicketIdGenerator:
    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def generate(self, now: datetime, category: str, *, precise: bool = False) -> str:
        return generate_ticket_id(now, category, rng=self._rng, precise=precise)
