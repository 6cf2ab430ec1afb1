import math
from dataclasses import dataclass, field
from typing import Optional

from utils import (as_utc_date, format_count, format_long_date, in_window, last_370_days, to_date_key, today_utc,
                   week_index, weekday_index)

ROWS = 7
COLUMNS = 53
LEVELS = ('none', 'low', 'medium', 'high', 'max')
WEEKDAY_LABELS = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')


def level_for(count):
    if not count or count <= 0:
        return LEVELS[0]
    if count >= len(LEVELS) - 1:
        return LEVELS[-1]
    return LEVELS[math.ceil(count)]


def tooltip_text(day, count):
    return f'{format_long_date(day)}: {format_count(count)}'


@dataclass(frozen=True)
class HeatmapCell:
    date_key: str
    count: float
    level: str
    tooltip: str
    is_today: bool = False
    clickable: bool = False


@dataclass
class Heatmap:
    rows: list
    habit: Optional[dict] = None
    toggle_url: Optional[str] = None
    total: float = 0
    active_days: int = 0
    week_labels: list = field(default_factory=list)
    weekday_labels: tuple = WEEKDAY_LABELS
    levels: tuple = LEVELS

    @property
    def clickable(self):
        return bool(self.habit and self.toggle_url)

    def cells(self):
        for row in self.rows:
            for cell in row:
                if cell is not None:
                    yield cell


def build_heatmap(counts, habit=None, toggle_url=None, today=None):
    """Lay the last 370 days out on a 7x53 grid of weekday rows and week columns.

    `counts` maps date keys to entry totals; missing keys count as zero and
    keys outside the window are ignored. Cells are clickable only when both
    a habit and a toggle URL are given. Grid slots without a date stay None.
    """
    counts = counts or {}
    today = as_utc_date(today) if today else today_utc()
    clickable = bool(habit and toggle_url)
    rows = [[None] * COLUMNS for _ in range(ROWS)]

    total = 0
    active_days = 0
    for day in last_370_days(today):
        if not in_window(day, today):
            continue
        week, weekday = week_index(day, today), weekday_index(day)
        if not (0 <= week < COLUMNS and 0 <= weekday < ROWS):
            continue
        key = to_date_key(day)
        count = counts.get(key) or 0
        total += count
        if count > 0:
            active_days += 1
        rows[weekday][week] = HeatmapCell(
            date_key=key,
            count=count,
            level=level_for(count),
            tooltip=tooltip_text(day, count),
            is_today=(day == today),
            clickable=clickable,
        )

    return Heatmap(
        rows=rows,
        habit=habit,
        toggle_url=toggle_url if clickable else None,
        total=total,
        active_days=active_days,
        week_labels=[str(i) if i % 4 == 0 else '' for i in range(COLUMNS)],
    )
