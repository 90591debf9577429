"""
Utility package

Timezone handling shared by the register engine and the web layer.
"""

from core.utils.timezone import (
    LOCAL_TZ,
    ensure_utc,
    local_today,
    now_utc,
    to_local,
)

__all__ = [
    "LOCAL_TZ",
    "ensure_utc",
    "local_today",
    "now_utc",
    "to_local",
]
