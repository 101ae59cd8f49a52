"""
Schedule Validator
==================
Integrity and quality checks for an extracted schedule index.

Nothing here changes the index; findings are reported as Markdown.
"""

import logging
from typing import Any, Dict, List, Mapping, NamedTuple, Sequence

import pandas as pd

from extractor import DAY_CODES, TIME_SLOTS, DaySchedule, RowSkip, to_records

logger = logging.getLogger(__name__)

VALID_DAYS = set(DAY_CODES)
VALID_TIMES = set(TIME_SLOTS.values())

MAX_DISPLAY_ERRORS = 10
MAX_DISPLAY_WARNINGS = 5

RECORD_COLUMNS = ['week', 'day', 'position', 'time', 'subject', 'teacher', 'classroom', 'is_day_off']


class ValidationResult(NamedTuple):
    """Structured result from validate_schedule()."""
    report: str
    success: bool


# ─────────────────────────────────────────────────────────────
# Internal helpers
# ─────────────────────────────────────────────────────────────

def _blank(series: pd.Series) -> pd.Series:
    return series.isna() | (series.astype(str).str.strip() == '')


def _detect_double_booking(
    df: pd.DataFrame,
    group_col: str,
    label: str,
    limit: int = 10,
) -> List[str]:
    """
    Same week, day, time and ``group_col`` value used by different subjects.

    Used for classrooms (two lessons in one room) and teachers (one teacher
    in two lessons).
    """
    conflicts: List[str] = []
    check_df = df[~df['is_day_off'] & ~_blank(df[group_col]) & ~_blank(df['time'])]

    total_found = 0
    for (week, day, time, key), group in check_df.groupby(['week', 'day', 'time', group_col]):
        subjects = sorted(group['subject'].unique())
        if len(subjects) < 2:
            continue
        total_found += 1
        if total_found <= limit:
            conflicts.append(
                f"- {label} clash: **{key}** in week {week}, {day} {time} — "
                + ", ".join(f"'{s}'" for s in subjects)
            )

    if total_found > limit:
        conflicts.append(f"- ... and {total_found - limit} more {label.lower()} clashes.")
    return conflicts


# ─────────────────────────────────────────────────────────────
# Main validation entry point
# ─────────────────────────────────────────────────────────────

def validate_schedule(
    index: Mapping[int, Sequence[DaySchedule]],
    skipped: Sequence[RowSkip] = (),
) -> ValidationResult:
    """
    Run automated checks on an extracted schedule index.

    Returns ``ValidationResult(report, success)`` where *success* is ``True``
    when no critical errors are found.
    """
    if not index:
        return ValidationResult("## Validation Failed\nNo schedule data to validate.", False)

    records = to_records(index)
    if not records:
        return ValidationResult("## Validation Failed\nSchedule has no entries.", False)

    df = pd.DataFrame(records, columns=RECORD_COLUMNS)
    errors: List[str] = []
    warnings: List[str] = []
    notes: List[str] = []
    stats: Dict[str, Any] = {'total_entries': len(df), 'weeks': df['week'].nunique()}
    lessons = df[~df['is_day_off']]

    # ── Check 1: Missing subject ────────────────────────────
    no_subject = lessons[_blank(lessons['subject'])]
    for _, row in no_subject.head(MAX_DISPLAY_ERRORS).iterrows():
        errors.append(
            f"- Week {row['week']}, {row['day']} #{row['position']}: empty subject "
            f"(teacher: '{row['teacher']}', room: '{row['classroom']}')"
        )
    if len(no_subject) > MAX_DISPLAY_ERRORS:
        errors.append(f"- ... and {len(no_subject) - MAX_DISPLAY_ERRORS} more entries without a subject.")
    stats['missing_subject'] = len(no_subject)

    # ── Check 2: Invalid day codes ──────────────────────────
    invalid_days = df[~df['day'].isin(VALID_DAYS)]
    if len(invalid_days) > 0:
        for val, count in invalid_days['day'].value_counts().head(5).items():
            errors.append(f"- Invalid day value: '{val}' ({count} entries)")
    stats['invalid_days'] = len(invalid_days)

    # ── Check 3: Missing time ───────────────────────────────
    no_time = lessons[_blank(lessons['time'])]
    if len(no_time) > 0:
        warnings.append(f"- {len(no_time)} lesson(s) have no time.")
    stats['missing_time'] = len(no_time)

    # ── Check 4: Time outside the slot table ────────────────
    odd_time = lessons[~_blank(lessons['time']) & ~lessons['time'].isin(VALID_TIMES)]
    if len(odd_time) > 0:
        for val, count in odd_time['time'].value_counts().head(MAX_DISPLAY_WARNINGS).items():
            warnings.append(f"- Unrecognised time slot: '{val}' ({count} entries)")
    stats['unknown_time'] = len(odd_time)

    # ── Check 5: Classroom clashes ──────────────────────────
    room_clashes = _detect_double_booking(df, 'classroom', 'Classroom')
    stats['classroom_clashes'] = len(room_clashes)
    warnings.extend(room_clashes)

    # ── Check 6: Teacher clashes ────────────────────────────
    # Reported as notes: these come from the source document itself.
    teacher_clashes = _detect_double_booking(df, 'teacher', 'Teacher')
    stats['teacher_clashes'] = len(teacher_clashes)
    notes.extend(teacher_clashes)

    # ── Check 7: Day off mixed with lessons ─────────────────
    per_day = df.groupby(['week', 'day'])['is_day_off'].agg(['any', 'all'])
    mixed = per_day[per_day['any'] & ~per_day['all']]
    for (week, day), _ in mixed.head(MAX_DISPLAY_WARNINGS).iterrows():
        warnings.append(f"- Week {week}, {day}: day off listed together with lessons.")
    stats['mixed_days'] = len(mixed)

    # ── Check 8: Duplicate entries ──────────────────────────
    dup_cols = ['week', 'day', 'time', 'subject', 'teacher', 'classroom']
    dupes = lessons[lessons.duplicated(subset=dup_cols, keep=False)]
    if len(dupes) > 0:
        warnings.append(f"- {len(dupes)} potential duplicate entries detected.")
    stats['duplicates'] = len(dupes)

    # ── Check 9: Rows skipped during extraction ─────────────
    if skipped:
        warnings.append(f"- {len(skipped)} row(s) were skipped during extraction.")
        for skip in list(skipped)[:MAX_DISPLAY_WARNINGS]:
            warnings.append(
                f"  - sheet '{skip.sheet}', column {skip.column}, row {skip.row}: {skip.reason}"
            )
    stats['skipped_rows'] = len(skipped)

    # ── Generate Report ─────────────────────────────────────
    report = ["# Validation Report", ""]
    report.append("## Summary Statistics")
    report.append(f"- **Weeks**: {stats['weeks']} ({', '.join(str(w) for w in sorted(df['week'].unique()))})")
    report.append(f"- **Total Entries**: {stats['total_entries']}")
    report.append(f"- **Days off**: {int(df['is_day_off'].sum())}")
    report.append(f"- **Unique Subjects**: {lessons['subject'].nunique()}")
    report.append(f"- **Unique Teachers**: {lessons['teacher'].replace('', pd.NA).dropna().nunique()}")
    report.append("")

    total_issues = len(errors)
    total_warnings = len(warnings)
    success = total_issues == 0

    if success and total_warnings == 0:
        report.append("## Result: ✅ PASSED")
        report.append("All structural and logical checks passed with no warnings.")
    elif success:
        report.append("## Result: ⚠️ PASSED WITH WARNINGS")
        report.append(f"No critical errors. {total_warnings} warning(s) found.")
        report.append("\n### Warnings:")
        report.extend(warnings)
    else:
        report.append("## Result: ❌ FAILED")
        report.append(f"Found **{total_issues} error(s)** and **{total_warnings} warning(s)**.")
        report.append("\n### Errors:")
        report.extend(errors)
        if warnings:
            report.append("\n### Warnings:")
            report.extend(warnings)

    if notes:
        report.append("\n### Notes (source-data clashes):")
        report.extend(notes)

    logger.info("Validation complete: %d errors, %d warnings", total_issues, total_warnings)
    return ValidationResult("\n".join(report), success)
