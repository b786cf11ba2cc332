from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session


def format_document_number(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:05d}"


def next_document_number(session: Session, column: Any, prefix: str) -> str:
    """Return the next ``PREFIX-00001`` style number for ``column``.

    Suffixes are compared numerically so numbering keeps working past five
    digits. A unique constraint on the column rejects concurrent duplicates.
    """
    highest = 0
    for value in session.scalars(select(column).where(column.like(f"{prefix}-%"))):
        suffix = value[len(prefix) + 1 :]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return format_document_number(prefix, highest + 1)
