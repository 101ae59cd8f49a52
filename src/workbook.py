"""
Timetable document loading: fetch, decode to string grids, extract.

A decode failure falls back to the fixed demo schedule. A fetch failure
does not: it raises FetchError and the caller shows no data at all.
"""

import io
import logging
import os
from typing import Any, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd
import pdfplumber
import requests

from extractor import DaySchedule, coerce_index, process_workbook

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_URL = (
    "https://docs.google.com/spreadsheets/d/1NzZJ-EsIW_3A_89i6zjvXrVJuMaGllQZ"
    "/export?format=xlsx&gid=2079030459"
)
FETCH_TIMEOUT = 30

SPREADSHEET_KINDS = {'xlsx', 'xlsm', 'xls', 'ods'}
PDF_KIND = 'pdf'

RawGrid = List[List[str]]


class FetchError(RuntimeError):
    """The document could not be downloaded."""


# ─────────────────────────────────────────────────────────────
# Fetch
# ─────────────────────────────────────────────────────────────

def fetch_document(url: str = DEFAULT_SOURCE_URL, timeout: int = FETCH_TIMEOUT) -> bytes:
    """Download the document once. No retries."""
    logger.info("Fetching %s", url)
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(f"Could not fetch {url}: {e}") from e
    logger.debug("Fetched %d bytes.", len(response.content))
    return response.content


# ─────────────────────────────────────────────────────────────
# Decode
# ─────────────────────────────────────────────────────────────

def stringify_cell(value: Any) -> str:
    """Blank -> '', integral float -> integer string, anything else -> str()."""
    if value is None:
        return ''
    if isinstance(value, (float, np.floating)):
        if np.isnan(value):
            return ''
        if float(value).is_integer():
            return str(int(value))
    return str(value)


def _frame_to_grid(df: pd.DataFrame) -> RawGrid:
    return [[stringify_cell(v) for v in row] for row in df.itertuples(index=False, name=None)]


def _decode_spreadsheet(content: bytes) -> List[Tuple[str, RawGrid]]:
    frames = pd.read_excel(io.BytesIO(content), sheet_name=None, header=None, dtype=object)
    return [(str(name), _frame_to_grid(df)) for name, df in frames.items()]


def _decode_pdf(content: bytes) -> List[Tuple[str, RawGrid]]:
    sheets = []
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        for page_no, page in enumerate(pdf.pages, 1):
            grid: RawGrid = []
            for table in page.extract_tables():
                for row in table or []:
                    if row:
                        grid.append([stringify_cell(cell) for cell in row])
            sheets.append((f"page {page_no}", grid))
    return sheets


def decode_workbook(content: bytes, kind: str = 'xlsx') -> List[Tuple[str, RawGrid]]:
    """Decode a document into (sheet name, grid) pairs in document order."""
    kind = kind.lower().lstrip('.')
    if kind in SPREADSHEET_KINDS:
        sheets = _decode_spreadsheet(content)
    elif kind == PDF_KIND:
        sheets = _decode_pdf(content)
    else:
        raise ValueError(f"Unsupported document type: {kind!r}")
    logger.info("Decoded %d sheet(s).", len(sheets))
    return sheets


def kind_from_path(path: str) -> str:
    ext = os.path.splitext(path)[1].lower().lstrip('.')
    return PDF_KIND if ext == PDF_KIND else (ext or 'xlsx')


# ─────────────────────────────────────────────────────────────
# Fallback
# ─────────────────────────────────────────────────────────────

def demo_data() -> dict:
    return {
        8: [
            {
                'day': 'ПН',
                'schedule': [
                    {
                        'time': '09:00 - 10:30',
                        'subject': 'Математика',
                        'teacher': 'Иванов А.Б.',
                        'classroom': '101',
                        'is_day_off': False,
                    },
                ],
            },
        ],
    }


def demo_index() -> Mapping[int, Tuple[DaySchedule, ...]]:
    return coerce_index(demo_data())


# ─────────────────────────────────────────────────────────────
# Load
# ─────────────────────────────────────────────────────────────

def load_schedule(content: bytes, kind: str = 'xlsx') -> Tuple[Mapping[int, Tuple[DaySchedule, ...]], Sequence]:
    """
    Decode and extract. Returns (index, skipped rows).

    If decoding fails the demo index is returned with no skipped rows.
    """
    try:
        sheets = decode_workbook(content, kind)
    except Exception:
        logger.exception("Could not decode document; using demo schedule.")
        return demo_index(), ()
    result = process_workbook(sheets)
    return result.index, result.skipped


def load_path(path: str) -> Tuple[Mapping[int, Tuple[DaySchedule, ...]], Sequence]:
    with open(path, 'rb') as f:
        content = f.read()
    return load_schedule(content, kind_from_path(path))
