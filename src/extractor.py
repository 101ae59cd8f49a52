"""
Group Timetable Extractor
=========================
Turns the decoded sheets of a group timetable workbook into a week-indexed
schedule.

Pipeline per sheet:
- Locate group columns (header run starting at the track sentinel)
- Locate week anchors in the header block of every group column
- Walk the rows below each anchor, segmenting them into days by the
  day label in column 0
- Decompose every subject cell into subject, teacher and classroom

Sheets are processed in source order and group columns left to right; a
later week block with the same number replaces an earlier one.
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Pattern, Sequence, Tuple

import pandas as pd

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────

GROUP_SENTINEL = '4422'

ANCHOR_SCAN_LAST_ROW = 18
MIN_WEEK = 1
MAX_WEEK = 52
WEEK_TOKEN = re.compile(r'[+-]?[0-9]+')

TIME_SLOTS = {
    '1': '8:00-9:30',
    '2': '9:40-11:10',
    '3': '12:00-13:30',
    '4': '13:40-15:10',
    '5': '15:50-17:20',
    '6': '17:30-19:00',
}

DAY_OFF_MARKER = 'выходной'
DAY_OFF_LABEL = 'Выходной'
EMPTY_SUBJECT = '-'

# Full weekday names are matched as substrings, in this order.
DAY_NAMES = OrderedDict([
    ('понедельник', 'ПН'),
    ('вторник', 'ВТ'),
    ('среда', 'СР'),
    ('четверг', 'ЧТ'),
    ('пятница', 'ПТ'),
    ('суббота', 'СБ'),
    ('воскресенье', 'ВС'),
])

DAY_ABBREVIATIONS = {
    'пн': 'ПН', 'вт': 'ВТ', 'ср': 'СР', 'чт': 'ЧТ',
    'пт': 'ПТ', 'сб': 'СБ', 'вс': 'ВС',
}

DAY_CODES = ['ПН', 'ВТ', 'СР', 'ЧТ', 'ПТ', 'СБ', 'ВС']
DAY_ORDER = {code: i for i, code in enumerate(DAY_CODES, 1)}
UNKNOWN_DAY_ORDER = len(DAY_CODES) + 1

CLASSROOM_PATTERNS: List[Pattern] = [
    re.compile(r'(\d+-\d+)\s'),
    re.compile(r'(\d+[А-Яа-я]*)\s'),
    re.compile(r'ауд\.?\s*(\S+)', re.IGNORECASE),
]

TEACHER_PATTERNS: List[Pattern] = [
    re.compile(r'([А-Я][а-я]+\s[А-Я]\.[А-Я]\.)'),
]


# ─────────────────────────────────────────────────────────────
# Data Types
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScheduleEntry:
    time: str
    subject: str
    teacher: str = ''
    classroom: str = ''
    is_day_off: bool = False

    @classmethod
    def day_off(cls) -> 'ScheduleEntry':
        return cls(time='', subject=DAY_OFF_LABEL, is_day_off=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'time': self.time,
            'subject': self.subject,
            'teacher': self.teacher,
            'classroom': self.classroom,
            'is_day_off': self.is_day_off,
        }


@dataclass(frozen=True)
class DaySchedule:
    day: str
    schedule: Tuple[ScheduleEntry, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {'day': self.day, 'schedule': [e.to_dict() for e in self.schedule]}


@dataclass(frozen=True)
class SubjectInfo:
    subject: str
    teacher: str = ''
    classroom: str = ''


@dataclass(frozen=True)
class RowSkip:
    """A grid row dropped from a day block because processing it failed."""
    sheet: str
    column: int
    row: int
    reason: str


@dataclass(frozen=True)
class DayBlock:
    days: Tuple[DaySchedule, ...]
    skipped: Tuple[RowSkip, ...] = ()


@dataclass(frozen=True)
class ExtractionResult:
    index: Mapping[int, Tuple[DaySchedule, ...]]
    skipped: Tuple[RowSkip, ...] = field(default_factory=tuple)


# ─────────────────────────────────────────────────────────────
# Utility Functions
# ─────────────────────────────────────────────────────────────

def cell_text(grid: Sequence[Sequence[Any]], row: int, col: int) -> str:
    """Trimmed text of grid[row][col]; missing rows/cells and blanks read as ''."""
    if row < 0 or row >= len(grid):
        return ''
    row_data = grid[row]
    if row_data is None or col < 0 or col >= len(row_data):
        return ''
    value = row_data[col]
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ''
    return str(value).strip()


def parse_week_number(value: Any) -> Optional[int]:
    """
    Parse a week-number token: trim, drop a trailing '.0', integer-parse.
    Returns None unless the result lies in [MIN_WEEK, MAX_WEEK].
    """
    if value is None:
        return None
    cleaned = str(value).strip()
    if cleaned.endswith('.0'):
        cleaned = cleaned[:-2].strip()
    if not WEEK_TOKEN.fullmatch(cleaned):
        return None
    number = int(cleaned)
    if MIN_WEEK <= number <= MAX_WEEK:
        return number
    return None


def is_week_number(value: Any) -> bool:
    return parse_week_number(value) is not None


def is_day_name(value: Any) -> bool:
    if not value:
        return False
    lower = str(value).lower()
    if any(name in lower for name in DAY_NAMES):
        return True
    return lower in DAY_ABBREVIATIONS


def normalize_day_name(value: str) -> str:
    """
    Map a day label to its two-letter code.

    Unrecognised labels fall back to the uppercased input with everything
    outside А-Я removed, which may leave an empty or partial code.
    """
    lower = value.lower()
    for name, code in DAY_NAMES.items():
        if name in lower:
            return code
    if lower in DAY_ABBREVIATIONS:
        return DAY_ABBREVIATIONS[lower]
    return re.sub(r'[^А-Я]', '', value.upper())


def day_order(code: str) -> int:
    return DAY_ORDER.get(code, UNKNOWN_DAY_ORDER)


def slot_time(value: str, time_slots: Optional[Mapping[str, str]] = None) -> str:
    """Slot index -> clock range; anything not in the table is returned as-is."""
    slots = TIME_SLOTS if time_slots is None else time_slots
    return slots.get(value, value)


def extract_first(patterns: Sequence[Pattern], text: str) -> Tuple[str, str]:
    """
    Try ``patterns`` in order; the first match wins.
    Returns (captured group, text with the whole match removed), or ('', text).
    """
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            residual = (text[:match.start()] + text[match.end():]).strip()
            return match.group(1), residual
    return '', text


def parse_subject_info(text: str) -> SubjectInfo:
    """
    Split a free-text subject cell into subject, teacher and classroom.

    Classroom is taken first, then the teacher from what is left; the
    remainder is the subject. A digit group inside the subject name is
    taken as the classroom if it comes first.
    """
    working = text.strip()
    classroom, working = extract_first(CLASSROOM_PATTERNS, working)
    teacher, working = extract_first(TEACHER_PATTERNS, working)
    subject = re.sub(r'\s+', ' ', working).strip()
    return SubjectInfo(subject=subject, teacher=teacher, classroom=classroom)


# ─────────────────────────────────────────────────────────────
# Grid Scanning
# ─────────────────────────────────────────────────────────────

def find_group_columns(grid: Sequence[Sequence[Any]], sentinel: str = GROUP_SENTINEL) -> List[int]:
    """Columns from the first header cell containing ``sentinel`` to the end of row 0."""
    if not grid or grid[0] is None:
        return []

    columns = []
    found_start = False
    for col in range(len(grid[0])):
        if sentinel in cell_text(grid, 0, col):
            found_start = True
        if found_start:
            columns.append(col)
    return columns


def find_week_numbers(grid: Sequence[Sequence[Any]], column: int) -> Dict[int, int]:
    """Week number -> anchor row, scanning rows 0..ANCHOR_SCAN_LAST_ROW of ``column``."""
    week_rows: Dict[int, int] = {}
    last_row = min(ANCHOR_SCAN_LAST_ROW, len(grid) - 1)
    for row in range(last_row + 1):
        week = parse_week_number(cell_text(grid, row, column))
        if week is not None:
            week_rows[week] = row
    return week_rows


def parse_week_schedule(
    grid: Sequence[Sequence[Any]],
    column: int,
    anchor_row: int,
    sheet_name: str = '',
    time_slots: Optional[Mapping[str, str]] = None,
) -> DayBlock:
    """
    Collect the day schedules of one week block.

    Walks every row below ``anchor_row`` to the end of the grid. The block
    is not cut at the next week anchor; rows are attributed to whichever
    day label was seen last. Rows before the first day label are ignored.
    """
    day_map: 'OrderedDict[str, List[ScheduleEntry]]' = OrderedDict()
    skipped: List[RowSkip] = []
    current_day = ''

    for row in range(anchor_row + 1, len(grid)):
        if grid[row] is None:
            continue
        try:
            day_cell = cell_text(grid, row, 0)
            if day_cell and is_day_name(day_cell):
                current_day = normalize_day_name(day_cell)
                day_map.setdefault(current_day, [])

            if not current_day:
                continue

            entry = _parse_entry(
                cell_text(grid, row, 1),
                cell_text(grid, row, column),
                time_slots,
            )
            if entry is not None:
                day_map[current_day].append(entry)
        except Exception as exc:
            logger.warning(
                "Skipping row %d (sheet %r, column %d): %s", row, sheet_name, column, exc
            )
            skipped.append(RowSkip(sheet_name, column, row, f"{type(exc).__name__}: {exc}"))

    days = [
        DaySchedule(day=day, schedule=tuple(entries))
        for day, entries in day_map.items()
        if entries
    ]
    days.sort(key=lambda d: day_order(d.day))
    return DayBlock(days=tuple(days), skipped=tuple(skipped))


def _parse_entry(
    time_cell: str,
    subject_cell: str,
    time_slots: Optional[Mapping[str, str]] = None,
) -> Optional[ScheduleEntry]:
    if not subject_cell or subject_cell == EMPTY_SUBJECT:
        return None
    if DAY_OFF_MARKER in subject_cell.lower():
        return ScheduleEntry.day_off()
    info = parse_subject_info(subject_cell)
    return ScheduleEntry(
        time=slot_time(time_cell, time_slots),
        subject=info.subject,
        teacher=info.teacher,
        classroom=info.classroom,
    )


# ─────────────────────────────────────────────────────────────
# Assembly
# ─────────────────────────────────────────────────────────────

def parse_group_column(
    grid: Sequence[Sequence[Any]],
    column: int,
    sheet_name: str = '',
    time_slots: Optional[Mapping[str, str]] = None,
) -> Tuple[Dict[int, Tuple[DaySchedule, ...]], List[RowSkip]]:
    """Week blocks of one group column. Weeks without any entries are left out."""
    weeks: Dict[int, Tuple[DaySchedule, ...]] = {}
    skipped: List[RowSkip] = []
    for week, anchor_row in find_week_numbers(grid, column).items():
        block = parse_week_schedule(grid, column, anchor_row, sheet_name, time_slots)
        skipped.extend(block.skipped)
        if block.days:
            weeks[week] = block.days
    return weeks, skipped


def parse_sheet_data(
    grid: Sequence[Sequence[Any]],
    sheet_name: str = '',
    sentinel: str = GROUP_SENTINEL,
    time_slots: Optional[Mapping[str, str]] = None,
) -> Tuple[Dict[int, Tuple[DaySchedule, ...]], List[RowSkip]]:
    weeks: Dict[int, Tuple[DaySchedule, ...]] = {}
    skipped: List[RowSkip] = []

    group_columns = find_group_columns(grid, sentinel)
    if not group_columns:
        logger.debug("Sheet %r has no group columns.", sheet_name)
        return weeks, skipped

    for column in group_columns:
        column_weeks, column_skipped = parse_group_column(grid, column, sheet_name, time_slots)
        weeks.update(column_weeks)
        skipped.extend(column_skipped)

    logger.info(
        "Sheet %r: %d group column(s), %d week(s).", sheet_name, len(group_columns), len(weeks)
    )
    return weeks, skipped


def process_workbook(
    sheets: Sequence[Tuple[str, Sequence[Sequence[Any]]]],
    sentinel: str = GROUP_SENTINEL,
    time_slots: Optional[Mapping[str, str]] = None,
) -> ExtractionResult:
    """
    Fold every sheet into one schedule index.

    ``sheets`` is a sequence of (sheet name, grid) in workbook order. Merging
    is last-write-wins per week number, following sheet order and then
    group-column order.
    """
    weeks: Dict[int, Tuple[DaySchedule, ...]] = {}
    skipped: List[RowSkip] = []
    for sheet_name, grid in sheets:
        sheet_weeks, sheet_skipped = parse_sheet_data(grid, sheet_name, sentinel, time_slots)
        weeks.update(sheet_weeks)
        skipped.extend(sheet_skipped)

    if skipped:
        logger.info("Skipped %d row(s) during extraction.", len(skipped))
    return ExtractionResult(index=_freeze(weeks), skipped=tuple(skipped))


def _freeze(weeks: Dict[int, Tuple[DaySchedule, ...]]) -> Mapping[int, Tuple[DaySchedule, ...]]:
    return MappingProxyType({week: weeks[week] for week in sorted(weeks)})


# ─────────────────────────────────────────────────────────────
# Structured Input / Output
# ─────────────────────────────────────────────────────────────

def coerce_index(data: Mapping[Any, Sequence[Mapping[str, Any]]]) -> Mapping[int, Tuple[DaySchedule, ...]]:
    """Build a schedule index from an already-structured {week: [day, ...]} mapping."""
    weeks: Dict[int, Tuple[DaySchedule, ...]] = {}
    for week, days in data.items():
        weeks[int(week)] = tuple(
            DaySchedule(
                day=str(day['day']),
                schedule=tuple(
                    ScheduleEntry(
                        time=str(item.get('time', '')),
                        subject=str(item.get('subject', '')),
                        teacher=str(item.get('teacher', '')),
                        classroom=str(item.get('classroom', '')),
                        is_day_off=bool(item.get('is_day_off', item.get('isDayOff', False))),
                    )
                    for item in day.get('schedule', [])
                ),
            )
            for day in days
        )
    return _freeze(weeks)


def index_to_json(index: Mapping[int, Sequence[DaySchedule]]) -> Dict[str, List[Dict[str, Any]]]:
    """JSON-safe form of the index; week keys become strings."""
    return {str(week): [day.to_dict() for day in days] for week, days in index.items()}


def to_records(index: Mapping[int, Sequence[DaySchedule]]) -> List[Dict[str, Any]]:
    """Flatten the index to one record per entry."""
    records = []
    for week, days in index.items():
        for day in days:
            for position, entry in enumerate(day.schedule):
                record = {'week': int(week), 'day': day.day, 'position': position}
                record.update(entry.to_dict())
                records.append(record)
    return records


# ─────────────────────────────────────────────────────────────
# Main Extractor Class
# ─────────────────────────────────────────────────────────────

class ScheduleExtractor:
    """
    Week-indexed schedule extractor over decoded workbook sheets.

    Usage:
        extractor = ScheduleExtractor([("Лист1", grid), ...])
        result = extractor.extract()
        data = extractor.to_json()

    The sheets are never modified; calling extract() again on the same
    sheets gives an equal result.
    """

    def __init__(
        self,
        sheets: Sequence[Tuple[str, Sequence[Sequence[Any]]]],
        sentinel: str = GROUP_SENTINEL,
        time_slots: Optional[Mapping[str, str]] = None,
    ):
        self.sheets = sheets
        self.sentinel = sentinel
        self.time_slots = dict(TIME_SLOTS if time_slots is None else time_slots)
        self.result: Optional[ExtractionResult] = None

    def extract(self) -> ExtractionResult:
        self.result = process_workbook(self.sheets, self.sentinel, self.time_slots)
        logger.info("Extracted %d week(s) from %d sheet(s).", len(self.result.index), len(self.sheets))
        return self.result

    @property
    def index(self) -> Mapping[int, Tuple[DaySchedule, ...]]:
        if self.result is None:
            return MappingProxyType({})
        return self.result.index

    def to_json(self) -> Dict[str, List[Dict[str, Any]]]:
        return index_to_json(self.index)
