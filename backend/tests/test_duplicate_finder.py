"""
Unit tests for app.utils.duplicate_finder.

Pure functions, no database. Covers:
  group_duplicates      — only groups with more than one row are returned
  collect_duplicates    — left, right and (left, right) pair grouping
  find_lookup_duplicates — severities, flags, details, and the rule that a
                           row in a pair group gets no left/right finding
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from app.models.data_warning import WarningSeverity
from app.utils.duplicate_finder import (
    collect_duplicates,
    find_lookup_duplicates,
    group_duplicates,
)


@dataclass
class Row:
    left: str
    right: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)


def _by_id(findings):
    out: dict = {}
    for f in findings:
        out.setdefault(f.item_id, []).append(f)
    return out


# ---------------------------------------------------------------------------
# group_duplicates / collect_duplicates
# ---------------------------------------------------------------------------

class TestGrouping:
    def test_singletons_are_dropped(self):
        rows = [Row("a", "1"), Row("b", "2")]
        assert group_duplicates(rows, lambda r: r.left) == []

    def test_group_keeps_input_order(self):
        rows = [Row("a", "1"), Row("a", "2"), Row("a", "3")]
        [group] = group_duplicates(rows, lambda r: r.left)
        assert group.key == "a"
        assert group.ids == [r.id for r in rows]
        assert group.count == 3

    def test_pair_key_is_a_tuple(self):
        # "a|b" + "c" and "a" + "b|c" would collide under a joined string key
        rows = [Row("a|b", "c"), Row("a", "b|c")]
        dups = collect_duplicates(rows)
        assert dups.left_right == []

    def test_empty_input(self):
        dups = collect_duplicates([])
        assert dups.left == [] and dups.right == [] and dups.left_right == []


# ---------------------------------------------------------------------------
# find_lookup_duplicates
# ---------------------------------------------------------------------------

class TestFindLookupDuplicates:
    def test_no_duplicates_no_findings(self):
        rows = [Row("A", "X"), Row("B", "Y"), Row("C", "Z")]
        assert find_lookup_duplicates(rows) == []

    def test_left_duplicate_is_medium(self):
        r1, r2 = Row("A", "X"), Row("A", "Y")
        findings = find_lookup_duplicates([r1, r2])

        assert len(findings) == 2
        for f in findings:
            assert f.severity == WarningSeverity.MEDIUM
            assert f.left_duplicate is True
            assert f.right_duplicate is False
            assert f.left_right_duplicate is False
            assert f.details == {
                "duplicate_value": "A",
                "duplicate_type": "left",
                "duplicate_count": 2,
            }
        assert {f.item_id for f in findings} == {r1.id, r2.id}

    def test_right_duplicate_is_medium(self):
        r1, r2 = Row("A", "X"), Row("B", "X")
        findings = find_lookup_duplicates([r1, r2])

        assert len(findings) == 2
        assert all(f.right_duplicate and f.severity == WarningSeverity.MEDIUM for f in findings)
        assert findings[0].details["duplicate_type"] == "right"
        assert findings[0].details["duplicate_value"] == "X"

    def test_pair_duplicate_is_high_and_suppresses_side_findings(self):
        r1, r2 = Row("A", "X"), Row("A", "X")
        findings = find_lookup_duplicates([r1, r2])

        assert len(findings) == 2
        for f in findings:
            assert f.severity == WarningSeverity.HIGH
            assert f.left_right_duplicate is True
            assert f.left_duplicate is False
            assert f.right_duplicate is False
            assert f.details == {
                "duplicate_left": "A",
                "duplicate_right": "X",
                "duplicate_type": "left-right",
                "duplicate_count": 2,
            }

    def test_row_in_left_and_right_groups_gets_two_findings(self):
        # r1 shares left with r2 and right with r3
        r1, r2, r3 = Row("A", "X"), Row("A", "Y"), Row("B", "X")
        per_row = _by_id(find_lookup_duplicates([r1, r2, r3]))

        assert len(per_row[r1.id]) == 2
        assert {f.details["duplicate_type"] for f in per_row[r1.id]} == {"left", "right"}
        assert len(per_row[r2.id]) == 1
        assert len(per_row[r3.id]) == 1

    def test_mixed_lookup(self):
        """
        (A,X) x2 → both HIGH; (A,Y) shares left "A" → MEDIUM left, counted
        over all three rows with left "A".
        """
        p1, p2, other = Row("A", "X"), Row("A", "X"), Row("A", "Y")
        per_row = _by_id(find_lookup_duplicates([p1, p2, other]))

        assert [f.severity for f in per_row[p1.id]] == [WarningSeverity.HIGH]
        assert [f.severity for f in per_row[p2.id]] == [WarningSeverity.HIGH]
        [left] = per_row[other.id]
        assert left.severity == WarningSeverity.MEDIUM
        assert left.details["duplicate_count"] == 3

    def test_findings_are_ordered_left_right_then_pairs(self):
        rows = [Row("A", "X"), Row("A", "X"), Row("B", "Z"), Row("B", "W"), Row("C", "Q"), Row("D", "Q")]
        types = [f.details["duplicate_type"] for f in find_lookup_duplicates(rows)]
        assert types == ["left", "left", "right", "right", "left-right", "left-right"]
