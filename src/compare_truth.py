"""
Ground-Truth Comparator
=======================
Compare an extracted schedule JSON against a manually verified one and
report field-level accuracy.

Both files hold the {week: [{day, schedule: [...]}]} layout written by
main.py. Entries are aligned on week, day and position within the day.
"""

import json
import sys
from typing import Dict, List

import pandas as pd

from extractor import coerce_index, to_records


ALIGN_KEYS = ['week', 'day', 'position']
COMPARE_FIELDS = ['time', 'subject', 'teacher', 'classroom', 'is_day_off']


def _normalise(val: object) -> str:
    """Normalise a value to a comparable string."""
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return ''
    return ' '.join(str(val).split())


def _load_records(path: str) -> pd.DataFrame:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    records = to_records(coerce_index(data))
    df = pd.DataFrame(records, columns=ALIGN_KEYS + COMPARE_FIELDS)
    return df.astype({'week': int, 'position': int})


def compare_results(
    extracted_path: str,
    ground_truth_path: str,
) -> str:
    """
    Compare the extracted JSON against a manually verified ground-truth JSON.

    Entries present on only one side are counted separately and do not
    contribute to the accuracy figure.
    """
    try:
        df_ext = _load_records(extracted_path)
        df_truth = _load_records(ground_truth_path)
    except FileNotFoundError as e:
        return f"Error: File not found — {e}"

    merged = pd.merge(
        df_truth,
        df_ext,
        on=ALIGN_KEYS,
        how='outer',
        suffixes=('_truth', '_ext'),
        indicator=True,
    )

    matched = merged[merged['_merge'] == 'both']
    only_truth = merged[merged['_merge'] == 'left_only']
    only_ext = merged[merged['_merge'] == 'right_only']

    total_cells = 0
    matching_cells = 0
    mismatches: List[str] = []
    per_col_match: Dict[str, int] = {c: 0 for c in COMPARE_FIELDS}
    per_col_total: Dict[str, int] = {c: 0 for c in COMPARE_FIELDS}

    for _, row in matched.iterrows():
        for col in COMPARE_FIELDS:
            val_truth = _normalise(row[f"{col}_truth"])
            val_ext = _normalise(row[f"{col}_ext"])
            total_cells += 1
            per_col_total[col] += 1
            if val_truth == val_ext:
                matching_cells += 1
                per_col_match[col] += 1
            else:
                key_desc = ' | '.join(str(row[k]) for k in ALIGN_KEYS)
                mismatches.append(
                    f"  [{key_desc}] {col}: expected '{val_truth}', got '{val_ext}'"
                )

    accuracy = (matching_cells / total_cells * 100) if total_cells > 0 else 0

    lines = [
        "# Accuracy Report",
        "",
        f"Overall Accuracy: **{accuracy:.2f}%**  ({matching_cells}/{total_cells} cells)",
        "",
        f"- Entries in ground truth: {len(df_truth)}",
        f"- Entries in extracted:    {len(df_ext)}",
        f"- Matched entries:         {len(matched)}",
        f"- Only in truth:           {len(only_truth)}",
        f"- Only in extracted:       {len(only_ext)}",
        "",
        "## Per-Field Accuracy",
    ]
    for col in COMPARE_FIELDS:
        ct = per_col_total[col]
        cm = per_col_match[col]
        pct = (cm / ct * 100) if ct > 0 else 0
        lines.append(f"- **{col}**: {pct:.1f}%  ({cm}/{ct})")

    lines.append("")
    lines.append(f"## Mismatches ({len(mismatches)})")
    lines.extend(mismatches[:80])
    if len(mismatches) > 80:
        lines.append(f"  ... and {len(mismatches) - 80} more.")

    return "\n".join(lines)


if __name__ == "__main__":
    if len(sys.argv) == 3:
        print(compare_results(sys.argv[1], sys.argv[2]))
    else:
        print("Usage: python compare_truth.py <extracted.json> <truth.json>")
