from .allocator import ParameterAllocator
from .builder import CriteriaBuilder
from .comparators import ALLOWED_COMPARATORS, Comparator, ensure_comparator
from .compiler import CompiledNode, CriteriaCompiler
from .criteria import (
    Condition,
    CriteriaFactory,
    CriteriaRequest,
    FieldType,
    Junction,
    Leaf,
    Nested,
    PersonalDetails,
    QueryFlags,
    Specialized,
)
from .cte import CommonTableExpression, CteAssembler
from .exceptions import (
    AmbiguousAttributeResolution,
    CriteriaError,
    InvalidComparator,
    MalformedCriteria,
    UnknownJoinPath,
)
from .graph import EntityDescription, EntityGraph, EntityKind, JoinPath
from .query_builder import QueryBuilder, compose
from .settings import QuerySettings
from .statement import CompiledStatement, StatementBuilder
from .strategies import (
    ContainmentStrategy,
    PathStrategy,
    PredicateStrategy,
    StrategyKind,
    build_strategy,
)
from .trees import data_type_tree, subject_data_tree, subject_data_types

__all__ = [
    # Entry points
    "QueryBuilder",
    "compose",
    "QuerySettings",
    "CompiledStatement",
    # Criteria AST
    "Condition",
    "CriteriaBuilder",
    "CriteriaFactory",
    "CriteriaRequest",
    "FieldType",
    "Junction",
    "Leaf",
    "Nested",
    "PersonalDetails",
    "QueryFlags",
    "Specialized",
    # Entity graph
    "EntityDescription",
    "EntityGraph",
    "EntityKind",
    "JoinPath",
    # Compilation stages
    "ALLOWED_COMPARATORS",
    "Comparator",
    "ensure_comparator",
    "ParameterAllocator",
    "CompiledNode",
    "CriteriaCompiler",
    "CommonTableExpression",
    "CteAssembler",
    "StatementBuilder",
    # Strategies
    "ContainmentStrategy",
    "PathStrategy",
    "PredicateStrategy",
    "StrategyKind",
    "build_strategy",
    # Tree queries
    "data_type_tree",
    "subject_data_tree",
    "subject_data_types",
    # Exceptions
    "AmbiguousAttributeResolution",
    "CriteriaError",
    "InvalidComparator",
    "MalformedCriteria",
    "UnknownJoinPath",
]
