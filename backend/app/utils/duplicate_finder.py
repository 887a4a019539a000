"""
Duplicate grouping for lookup values.

Pure functions, no database access. Given the (id, left, right) rows of one
lookup, computes three kinds of duplicate groups:

  left        — two or more rows share the same `left`
  right       — two or more rows share the same `right`
  left-right  — two or more rows share the exact (left, right) pair

and turns them into warning findings:

  - every row of a left-right group gets one HIGH finding;
  - every row of a left or right group gets one MEDIUM finding per group,
    unless the row already belongs to a left-right group (the pair finding
    covers it, so the row is never reported twice for the same mapping).

Usage:
    findings = find_lookup_duplicates(rows)
    for f in findings:
        ...
"""
from __future__ import annotations

import uuid
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.models.data_warning import WarningSeverity


class ValueRow(Protocol):
    id: uuid.UUID
    left: str
    right: str


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass
class DuplicateGroup:
    """Rows sharing one grouping key, in input order."""
    key: Hashable
    ids: list[uuid.UUID] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.ids)


@dataclass
class DuplicateFinding:
    """One warning-to-be for a single lookup value."""
    item_id: uuid.UUID
    severity: WarningSeverity
    left_duplicate: bool = False
    right_duplicate: bool = False
    left_right_duplicate: bool = False
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class LookupDuplicates:
    left: list[DuplicateGroup]
    right: list[DuplicateGroup]
    left_right: list[DuplicateGroup]


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

def group_duplicates(
    rows: Iterable[ValueRow], key: Callable[[ValueRow], Hashable]
) -> list[DuplicateGroup]:
    """Group rows by `key`; return only groups with more than one row."""
    groups: dict[Hashable, DuplicateGroup] = {}
    for row in rows:
        k = key(row)
        if k not in groups:
            groups[k] = DuplicateGroup(key=k)
        groups[k].ids.append(row.id)
    return [g for g in groups.values() if g.count > 1]


def collect_duplicates(rows: Iterable[ValueRow]) -> LookupDuplicates:
    rows = list(rows)
    return LookupDuplicates(
        left=group_duplicates(rows, lambda r: r.left),
        right=group_duplicates(rows, lambda r: r.right),
        # Tuple key: values containing "|" cannot collide.
        left_right=group_duplicates(rows, lambda r: (r.left, r.right)),
    )


def find_lookup_duplicates(rows: Iterable[ValueRow]) -> list[DuplicateFinding]:
    """All findings for one lookup: MEDIUM left, MEDIUM right, then HIGH pairs."""
    dups = collect_duplicates(rows)
    pair_ids = {vid for g in dups.left_right for vid in g.ids}

    findings: list[DuplicateFinding] = []

    for g in dups.left:
        for vid in g.ids:
            if vid in pair_ids:
                continue
            findings.append(DuplicateFinding(
                item_id=vid,
                severity=WarningSeverity.MEDIUM,
                left_duplicate=True,
                details={
                    "duplicate_value": g.key,
                    "duplicate_type": "left",
                    "duplicate_count": g.count,
                },
            ))

    for g in dups.right:
        for vid in g.ids:
            if vid in pair_ids:
                continue
            findings.append(DuplicateFinding(
                item_id=vid,
                severity=WarningSeverity.MEDIUM,
                right_duplicate=True,
                details={
                    "duplicate_value": g.key,
                    "duplicate_type": "right",
                    "duplicate_count": g.count,
                },
            ))

    for g in dups.left_right:
        left, right = g.key
        for vid in g.ids:
            findings.append(DuplicateFinding(
                item_id=vid,
                severity=WarningSeverity.HIGH,
                left_right_duplicate=True,
                details={
                    "duplicate_left": left,
                    "duplicate_right": right,
                    "duplicate_type": "left-right",
                    "duplicate_count": g.count,
                },
            ))

    return findings
