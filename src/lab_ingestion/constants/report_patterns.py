# ============================================================================
# src/lab_ingestion/constants/report_patterns.py
# ============================================================================
"""
Ancillary Report Patterns
- Report date (labeled dates are preferred over any date in the text)
- Patient name
- Report type with canonical labels
- Dates embedded in file names
"""

import re
from typing import Pattern, Tuple

UNKNOWN_PATIENT = "Unknown Patient"
DEFAULT_REPORT_TYPE = "Blood Test"

MONTHS = r"(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?"

# Date label that usually marks the collection/report date; "Birth Date" is not one
_DATE_LABEL = (
    r"(?:collect(?:ed|ion)(?:\s+date)?|report(?:ed)?(?:\s+date)?|sample\s+date|"
    r"test\s+date|date\s+of\s+(?:collection|report|test)|(?<!birth\s)\bdate)"
    r"\s*[:\-]?\s*"
)

# (pattern, format kind); kinds are resolved by the parameter extractor
DATE_PATTERNS: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(_DATE_LABEL + r"(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})", re.IGNORECASE), "ymd"),
    (re.compile(_DATE_LABEL + r"(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})", re.IGNORECASE), "numeric"),
    (re.compile(_DATE_LABEL + MONTHS + r"\s+(\d{1,2}),?\s+(\d{4})", re.IGNORECASE), "month_day"),
    (re.compile(_DATE_LABEL + r"(\d{1,2})\s+" + MONTHS + r",?\s+(\d{4})", re.IGNORECASE), "day_month"),
    (re.compile(r"\b(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})\b"), "ymd"),
    (re.compile(r"\b(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})\b"), "numeric"),
    (re.compile(r"\b" + MONTHS + r"\s+(\d{1,2}),?\s+(\d{4})\b", re.IGNORECASE), "month_day"),
    (re.compile(r"\b(\d{1,2})\s+" + MONTHS + r",?\s+(\d{4})\b", re.IGNORECASE), "day_month"),
)

# Name stops at the end of line or at the next demographic label
_NAME_END = r"(?=[ \t]*(?:$|\bDOB\b|\bD\.O\.B\b|\bDate\b|\bMRN\b|\bID\b|\bAge\b|\bSex\b|\bGender\b|\bTest\b|,))"
_NAME = r"([A-Za-z][A-Za-z.' \t]{1,48}?)"

NAME_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"patient\s+name[ \t]*[:\-]?[ \t]*" + _NAME + _NAME_END, re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bpatient[ \t]*[:\-][ \t]*" + _NAME + _NAME_END, re.IGNORECASE | re.MULTILINE),
    re.compile(r"^[ \t]*name[ \t]*[:\-][ \t]*" + _NAME + _NAME_END, re.IGNORECASE | re.MULTILINE),
    re.compile(r"\b(?:mr|mrs|ms|miss)\.?[ \t]+" + _NAME + _NAME_END, re.IGNORECASE | re.MULTILINE),
)

# Words that look like a name but are a label captured by accident
NAME_STOPWORDS = frozenset({"name", "patient", "unknown", "na", "n a", "none"})

REPORT_TYPE_PATTERNS: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(r"complete\s+blood\s+count|\bcbc\b|\bhaemogram\b|\bhemogram\b", re.IGNORECASE),
     "Complete Blood Count"),
    (re.compile(r"comprehensive\s+metabolic\s+panel|\bcmp\b", re.IGNORECASE),
     "Comprehensive Metabolic Panel"),
    (re.compile(r"basic\s+metabolic\s+panel|\bbmp\b", re.IGNORECASE),
     "Basic Metabolic Panel"),
    (re.compile(r"lipid\s+(?:panel|profile)", re.IGNORECASE),
     "Lipid Panel"),
    (re.compile(r"liver\s+function|\blft\b", re.IGNORECASE),
     "Liver Function Test"),
    (re.compile(r"kidney\s+function|renal\s+function|\bkft\b|\brft\b", re.IGNORECASE),
     "Kidney Function Test"),
    (re.compile(r"thyroid\s+function|thyroid\s+profile", re.IGNORECASE),
     "Thyroid Function Test"),
)

# Dates in file names, e.g. "cbc_2024-03-05.pdf", "scan_20240305.png", "05-03-2024.jpg"
FILE_NAME_DATE_PATTERNS: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(r"(?<!\d)(\d{4})[-_.](\d{2})[-_.](\d{2})(?!\d)"), "ymd"),
    (re.compile(r"(?<!\d)(\d{4})(\d{2})(\d{2})(?!\d)"), "ymd"),
    (re.compile(r"(?<!\d)(\d{2})[-_.](\d{2})[-_.](\d{4})(?!\d)"), "numeric"),
)
