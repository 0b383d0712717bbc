"""Comma-separated contractor lists.

Lines are parsed one at a time with :mod:`csv`, so a broken line never
prevents the rest of the text from importing. Header detection is a keyword
heuristic: a data row consisting of a keyword (a contractor literally called
"Name", say) is misread as a header. Callers that know their input pass
``skip_first_row`` or their own predicate instead.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Callable, Iterable, Iterator, List, Sequence

logger = logging.getLogger(__name__)

HeaderPredicate = Callable[[Sequence[str]], bool]

# Header keywords in every language the product ships with
HEADER_KEYWORDS = frozenset(
    {
        "name",
        "contractor",
        "contractors",
        "category",
        "название",
        "наименование",
        "контрагент",
        "контрагенты",
        "категория",
        "имя",
    }
)

EXPORT_HEADER = ("Name", "Category")


def is_header_row(fields: Sequence[str]) -> bool:
    """Return ``True`` when any field is exactly a known header keyword."""
    return any(field.strip().casefold() in HEADER_KEYWORDS for field in fields)


def parse_line(line: str) -> List[str]:
    """Split one line into trimmed fields; raises ``csv.Error`` when malformed."""
    reader = csv.reader([line], skipinitialspace=True, strict=True)
    row = next(reader, [])
    return [field.strip() for field in row]


def iter_rows(
    text: str,
    *,
    skip_first_row: bool | None = None,
    header_predicate: HeaderPredicate | None = None,
) -> Iterator[List[str]]:
    """Yield data rows from ``text``.

    Blank and malformed lines are dropped. ``skip_first_row`` overrides header
    detection for the first line; ``True`` drops it unconditionally and
    ``False`` keeps it. Later lines are always tested with the predicate.
    """
    predicate = header_predicate or is_header_row
    first = True
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            fields = parse_line(line)
        except csv.Error as exc:
            logger.warning("Skipping malformed line %d: %s", lineno, exc)
            first = False
            continue
        if first and skip_first_row is not None:
            first = False
            if skip_first_row:
                continue
            yield fields
            continue
        first = False
        if predicate(fields):
            logger.debug("Treating line %d as a header", lineno)
            continue
        yield fields


def format_rows(rows: Iterable[Sequence[str]], header: Sequence[str] = EXPORT_HEADER) -> str:
    """Render rows with every field double-quote wrapped."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


__all__ = [
    "HEADER_KEYWORDS",
    "EXPORT_HEADER",
    "HeaderPredicate",
    "is_header_row",
    "parse_line",
    "iter_rows",
    "format_rows",
]
