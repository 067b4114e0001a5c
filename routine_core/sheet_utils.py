# -*- coding: utf-8 -*-
import io
import re
from pathlib import Path
import typing as t

import pandas as pd
import requests


SheetRecords = list[dict[str, str]]

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xls")
CSV_SUFFIXES = (".csv", ".txt")


class SheetParseError(ValueError):
    """Raised when an uploaded spreadsheet cannot be read or understood."""


def load_upload(path_or_url: str, timeout: float = 30.0) -> bytes:
    """
    Loads an uploaded file from a local path or a URL.
    :param path_or_url: A local file path or a URL to the file.
    :return: The raw file contents.
    """
    if path_or_url.startswith('http://') or path_or_url.startswith('https://'):
        response = requests.get(path_or_url, timeout=timeout)
        response.raise_for_status()
        return response.content
    path = Path(path_or_url)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_bytes()


def normalize_header(value: t.Any) -> str:
    """Lower-case a header and collapse every run of non-alphanumerics to one space."""
    return re.sub(r"[^0-9a-z]+", " ", str(value or "").lower()).strip()


def read_sheets(content: bytes, filename: str) -> list[tuple[str, SheetRecords]]:
    """
    Reads every sheet of a spreadsheet into header-keyed records.
    CSV files yield a single sheet named after the file stem.
    :param content: Raw file bytes.
    :param filename: Original file name, used to pick the reader.
    :return: (sheet name, records) pairs; every cell is a stripped string.
    """
    suffix = Path(filename or "").suffix.lower()
    try:
        if suffix in CSV_SUFFIXES:
            frames = {Path(filename).stem: pd.read_csv(io.BytesIO(content), dtype=str, na_filter=False)}
        elif suffix in EXCEL_SUFFIXES or not suffix:
            frames = pd.read_excel(io.BytesIO(content), sheet_name=None, dtype=str, na_filter=False)
        else:
            raise SheetParseError(f"Unsupported file type: {suffix}")
    except SheetParseError:
        raise
    except Exception as e:
        raise SheetParseError(f"Could not read {filename or 'file'}: {e}") from e

    sheets: list[tuple[str, SheetRecords]] = []
    for name, frame in frames.items():
        frame = frame.dropna(how="all")
        records: SheetRecords = []
        for raw in frame.to_dict(orient="records"):
            records.append({str(k).strip(): _cell(v) for k, v in raw.items()})
        sheets.append((str(name), records))
    return sheets


def _cell(value: t.Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def match_columns(headers: t.Iterable[str], aliases: dict[str, tuple[str, ...]]) -> dict[str, str]:
    """
    Maps canonical field names to the actual header that carries them.
    :param headers: Headers as they appear in the sheet.
    :param aliases: Canonical field -> accepted normalized header spellings.
    :return: Canonical field -> original header, for the fields that were found.
    """
    found: dict[str, str] = {}
    for header in headers:
        norm = normalize_header(header)
        for name, spellings in aliases.items():
            if name not in found and norm in spellings:
                found[name] = header
                break
    return found
