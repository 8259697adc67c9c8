"""Tests for exceptions module."""

from __future__ import annotations

from biograph_query.comparators import ALLOWED_COMPARATORS
from biograph_query.exceptions import (
    AmbiguousAttributeResolution,
    CriteriaError,
    InvalidComparator,
    MalformedCriteria,
    UnknownJoinPath,
)

# -- InvalidComparator -------------------------------------------------------


def test_invalid_comparator_fuzzy_suggestion():
    err = InvalidComparator("ILKE", ALLOWED_COMPARATORS)
    assert "ILKE" in str(err)
    assert "ILIKE" in err.suggestions


def test_invalid_comparator_injection_attempt_has_no_suggestions():
    err = InvalidComparator(">= 0; DROP table data;", ALLOWED_COMPARATORS)
    d = err.to_dict()
    assert d["error"] == "INVALID_COMPARATOR"
    assert d["suggestions"] == []
    assert d["allowed"] == ALLOWED_COMPARATORS


def test_invalid_comparator_non_string():
    err = InvalidComparator(None, ALLOWED_COMPARATORS)
    assert err.suggestions == []
    assert err.to_dict()["comparator"] == "None"


# -- MalformedCriteria -------------------------------------------------------


def test_malformed_criteria_includes_path():
    err = MalformedCriteria("Leaf requires 'fieldName'", path="<root>.content[1]")
    assert "<root>.content[1]" in str(err)
    d = err.to_dict()
    assert d["error"] == "MALFORMED_CRITERIA"
    assert d["path"] == "<root>.content[1]"
    assert d["message"] == "Leaf requires 'fieldName'"


def test_malformed_criteria_without_path():
    err = MalformedCriteria("bad")
    assert str(err) == "bad"


# -- UnknownJoinPath ---------------------------------------------------------


def test_unknown_join_path_lists_known_paths():
    err = UnknownJoinPath("Subject", "Sample", ["sample_subject", "data_data"])
    assert "Subject" in str(err)
    assert err.to_dict() == {
        "error": "UNKNOWN_JOIN_PATH",
        "child": "Subject",
        "parent": "Sample",
        "known": ["data_data", "sample_subject"],
    }


# -- AmbiguousAttributeResolution --------------------------------------------


def test_ambiguous_attribute_none_found():
    err = AmbiguousAttributeResolution(3, "Diagnosis", 0)
    assert "found no attribute" in str(err)
    assert err.to_dict()["count"] == 0


def test_ambiguous_attribute_several_found():
    err = AmbiguousAttributeResolution(3, "Diagnosis", 2)
    assert "found 2 attributes" in str(err)


# -- Hierarchy ---------------------------------------------------------------


def test_all_inherit_from_criteria_error():
    for cls in (
        InvalidComparator,
        MalformedCriteria,
        UnknownJoinPath,
        AmbiguousAttributeResolution,
    ):
        assert issubclass(cls, CriteriaError)


def test_base_to_dict():
    err = CriteriaError("boom")
    assert err.to_dict() == {"error": "CriteriaError", "message": "boom"}
