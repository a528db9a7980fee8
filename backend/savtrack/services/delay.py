"""
SAV deadline computation.

The clock starts at the case's created_at and runs for the type's
max_processing_days. It is considered stopped while the current status
pauses the timer or is final. A type with zero processing days is not
tracked at all.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from savtrack.services.catalog import CatalogResolver, StatusConfig, TypeConfig

_HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class DelayDefaults:
    """Processing days used when the shop has not configured the case's type."""

    by_type: tuple[tuple[str, int], ...] = (("external", 9), ("internal", 5))
    otherwise: int = 7

    def days_for(self, sav_type: str) -> int:
        return dict(self.by_type).get(sav_type, self.otherwise)


DEFAULT_DELAY_DEFAULTS = DelayDefaults()


@dataclass(frozen=True)
class DelayInfo:
    is_overdue: bool
    remaining_days: int
    remaining_hours: int
    total_remaining_hours: int
    progress: float
    is_paused: bool
    is_tracked: bool = True
    deadline: datetime | None = None


def compute_delay(
    case: Any,
    type_config: TypeConfig | None,
    status_config: StatusConfig,
    now: datetime,
    defaults: DelayDefaults = DEFAULT_DELAY_DEFAULTS,
) -> DelayInfo:
    """
    Deadline state of a case at ``now``.

    ``case`` needs ``created_at`` and ``sav_type``; the caller guarantees
    created_at is set.
    """
    is_final = status_config.is_final_status
    is_paused = status_config.pause_timer or is_final

    if type_config is not None:
        max_days = type_config.max_processing_days
    else:
        max_days = defaults.days_for(case.sav_type)

    if max_days <= 0:
        return DelayInfo(
            is_overdue=False,
            remaining_days=0,
            remaining_hours=0,
            total_remaining_hours=0,
            progress=0.0,
            is_paused=is_paused,
            is_tracked=False,
        )

    created_at = case.created_at
    deadline = created_at + timedelta(days=max_days)
    remaining = deadline - now

    is_overdue = not is_paused and not is_final and remaining <= timedelta(0)

    total_remaining_hours = max(0, math.floor(remaining / _HOUR))
    remaining_days, remaining_hours = divmod(total_remaining_hours, 24)

    elapsed_hours = math.floor((now - created_at) / _HOUR)
    progress = min(100.0, max(0.0, elapsed_hours / (max_days * 24) * 100))

    return DelayInfo(
        is_overdue=is_overdue,
        remaining_days=remaining_days,
        remaining_hours=remaining_hours,
        total_remaining_hours=total_remaining_hours,
        progress=progress,
        is_paused=is_paused,
        deadline=deadline,
    )


def delay_for_case(
    case: Any,
    catalog: CatalogResolver,
    now: datetime,
    defaults: DelayDefaults = DEFAULT_DELAY_DEFAULTS,
) -> DelayInfo:
    return compute_delay(
        case,
        catalog.find_type(case.sav_type),
        catalog.resolve_status(case.status),
        now,
        defaults,
    )


def format_delay_text(info: DelayInfo) -> str:
    if info.is_overdue:
        return "En retard"
    if info.remaining_days > 0:
        return f"{info.remaining_days}j {info.remaining_hours}h restantes"
    return f"{info.remaining_hours}h restantes"
