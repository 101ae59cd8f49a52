"""
Academic week clock and schedule selection state.

The extracted index is never modified here; ScheduleView only keeps the
week/day selection alongside a reference to it.
"""

from datetime import date
from typing import List, Mapping, NamedTuple, Optional, Sequence, Tuple

from extractor import DaySchedule, ScheduleEntry

ACADEMIC_YEAR_START_MONTH = 9
ACADEMIC_YEAR_START_DAY = 1

SUNDAY = 6

# Days that get a tab in the week view.
DISPLAY_DAYS = ['ПН', 'ВТ', 'СР', 'ЧТ', 'ПТ', 'СБ']


class WeekOption(NamedTuple):
    week: int
    is_current: bool
    label: str


def current_week(today: Optional[date] = None) -> int:
    """
    Academic week number for ``today``, counted from September 1.

    On Sundays the count starts from September 1 of the previous calendar
    year and one extra week is added.
    """
    today = today or date.today()
    if today.weekday() == SUNDAY:
        start = date(today.year - 1, ACADEMIC_YEAR_START_MONTH, ACADEMIC_YEAR_START_DAY)
        return (today - start).days // 7 + 2
    start = date(today.year, ACADEMIC_YEAR_START_MONTH, ACADEMIC_YEAR_START_DAY)
    return (today - start).days // 7 + 1


def current_day_index(today: Optional[date] = None) -> int:
    """Monday-based weekday index; Sunday selects Monday."""
    today = today or date.today()
    index = (today.weekday() + 1) % 7 - 1
    return max(index, 0)


def week_options(index: Mapping[int, Sequence[DaySchedule]], current: int) -> List[WeekOption]:
    options = []
    for week in sorted(int(w) for w in index):
        if week == current:
            options.append(WeekOption(week, True, f"★ Неделя {week}"))
        else:
            options.append(WeekOption(week, False, f"Неделя {week}"))
    return options


class ScheduleView:
    """Selected week and day over an extracted schedule index."""

    def __init__(
        self,
        index: Mapping[int, Sequence[DaySchedule]],
        today: Optional[date] = None,
    ):
        self.index = index
        self.current_week = current_week(today)
        self.current_day = current_day_index(today)

    def select_week(self, week: int) -> None:
        self.current_week = int(week)

    def select_day(self, day_index: int) -> None:
        if not 0 <= day_index < len(DISPLAY_DAYS):
            raise ValueError(f"Day index out of range: {day_index}")
        self.current_day = day_index

    @property
    def day_code(self) -> str:
        return DISPLAY_DAYS[self.current_day]

    def week_options(self) -> List[WeekOption]:
        return week_options(self.index, self.current_week)

    def day_schedule(self) -> Tuple[ScheduleEntry, ...]:
        """Entries for the selected week and day, or () when there are none."""
        days = self.index.get(self.current_week)
        if not days:
            return ()
        for day in days:
            if day.day == self.day_code:
                return tuple(day.schedule)
        return ()
