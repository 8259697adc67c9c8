"""Shared fixtures for query compiler tests."""

from __future__ import annotations

import pytest

from biograph_query import EntityGraph, ParameterAllocator, QueryBuilder


@pytest.fixture
def graph() -> EntityGraph:
    return EntityGraph.default()


@pytest.fixture
def allocator() -> ParameterAllocator:
    return ParameterAllocator()


@pytest.fixture
def path_builder(graph: EntityGraph) -> QueryBuilder:
    return QueryBuilder(strategy="path", graph=graph)


@pytest.fixture
def containment_builder(graph: EntityGraph) -> QueryBuilder:
    return QueryBuilder(strategy="containment", graph=graph)


@pytest.fixture
def mass_criteria() -> dict:
    """Single float leaf with a unit on a Data root."""
    return {
        "dataType": 1,
        "model": "Data",
        "content": [
            {
                "fieldName": "mass",
                "fieldType": "float",
                "comparator": ">=",
                "fieldValue": "1.5",
                "fieldUnit": "M☉",
            }
        ],
    }


@pytest.fixture
def star_criteria() -> dict:
    """Data root with several metadata leaves, including a list value."""
    return {
        "dataType": 7,
        "model": "Data",
        "content": [
            {
                "fieldName": "constellation",
                "fieldType": "text",
                "comparator": "=",
                "fieldValue": "cepheus",
                "caseInsensitive": True,
            },
            {
                "fieldName": "Radius",
                "fieldType": "float",
                "comparator": ">=",
                "fieldValue": "100",
                "fieldUnit": "R☉",
            },
            {
                "fieldName": "Type",
                "fieldType": "text",
                "comparator": "IN",
                "fieldValue": ["hypergiant", "supergiant"],
                "isList": True,
            },
        ],
    }


@pytest.fixture
def subject_with_sample() -> dict:
    """Subject root with one nested Sample condition."""
    return {
        "dataType": 1,
        "model": "Subject",
        "content": [
            {
                "dataType": 2,
                "model": "Sample",
                "content": [
                    {
                        "fieldName": "Diagnosis",
                        "fieldType": "text",
                        "comparator": "=",
                        "fieldValue": "neuroblastoma",
                    }
                ],
            }
        ],
    }

