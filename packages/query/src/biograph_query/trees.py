"""
Recursive and per-subject tree queries.

These read the same junction tables as the criteria compiler, so the join
columns are taken from the :class:`EntityGraph` rather than spelled out.
Each function returns a :class:`CompiledStatement` binding its id as ``$1``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .graph import EntityGraph, EntityKind
from .statement import CompiledStatement

if TYPE_CHECKING:
    from .graph import JoinPath

DATA_TYPE_TABLE = "data_type"
DATA_TYPE_JUNCTION = "datatype_children__datatype_parents"


def data_type_tree(root_id: int) -> CompiledStatement:
    """
    Walk the data type hierarchy upwards from *root_id*.

    Every row carries the child and parent ids, names and models, the
    ``path`` of ids visited so far, a ``cycle`` flag and the ``depth``.
    Recursion stops on a row whose parent was already on its path.
    """
    statement = " ".join(
        [
            "WITH RECURSIVE nodes (parent_id, parent_name, parent_model,",
            "child_id, child_name, child_model, path, cycle, depth) AS (",
            "SELECT r.datatype_children, p1.name, p1.model,",
            "r.datatype_parents, p2.name, p2.model,",
            "ARRAY[r.datatype_parents, r.datatype_children],",
            "(r.datatype_parents = r.datatype_children), 1",
            f"FROM {DATA_TYPE_JUNCTION} AS r, {DATA_TYPE_TABLE} AS p1,",
            f"{DATA_TYPE_TABLE} AS p2",
            "WHERE r.datatype_children = $1",
            "AND p1.id = r.datatype_children AND p2.id = r.datatype_parents",
            "UNION ALL",
            "SELECT r.datatype_children, p1.name, p1.model,",
            "r.datatype_parents, p2.name, p2.model,",
            "nd.path || r.datatype_parents,",
            "r.datatype_parents = ANY(nd.path), nd.depth + 1",
            f"FROM {DATA_TYPE_JUNCTION} AS r, {DATA_TYPE_TABLE} AS p1,",
            f"{DATA_TYPE_TABLE} AS p2, nodes AS nd",
            "WHERE r.datatype_children = nd.child_id",
            "AND p1.id = r.datatype_children AND p2.id = r.datatype_parents",
            "AND NOT nd.cycle)",
            "SELECT * FROM nodes",
        ]
    )
    return CompiledStatement(statement, (root_id,))


def subject_data_tree(
    subject_id: int, graph: EntityGraph | None = None
) -> CompiledStatement:
    """
    Every Sample and Data attached to a Subject, with its direct parents.

    Ids are prefixed ``s_`` (sample) and ``d_`` (data) so both kinds share
    one id space; ``parent_sample`` and ``parent_data`` use the same form.
    """
    graph = graph or EntityGraph.default()
    subject, sample, data = EntityKind.SUBJECT, EntityKind.SAMPLE, EntityKind.DATA
    sample_subject = graph.lookup_join(sample, subject)
    sample_sample = graph.lookup_join(sample, sample)
    data_subject = graph.lookup_join(data, subject)
    data_sample = graph.lookup_join(data, sample)
    data_data = graph.lookup_join(data, data)

    statement = " ".join(
        [
            "SELECT concat('s_', s.id) AS id, dt.name AS type, s.metadata,",
            _parent_ref("ss", sample_sample, "s_", "parent_sample") + ",",
            "NULL AS parent_data,",
            "s.biobank_code AS biobank_code",
            "FROM sample s",
            f"INNER JOIN {DATA_TYPE_TABLE} dt ON s.type = dt.id",
            f"INNER JOIN {sample_subject.table} ssb",
            f'ON ssb."{sample_subject.child_column}" = s.id',
            f"LEFT JOIN {sample_sample.table} ss",
            f'ON ss."{sample_sample.child_column}" = s.id',
            f'WHERE ssb."{sample_subject.parent_column}" = $1',
            "UNION ALL",
            "SELECT concat('d_', d.id) AS id, dt.name AS type, d.metadata,",
            _parent_ref("sd", data_sample, "s_", "parent_sample") + ",",
            _parent_ref("dd", data_data, "d_", "parent_data") + ",",
            "NULL AS biobank_code",
            "FROM data d",
            f"INNER JOIN {DATA_TYPE_TABLE} dt ON d.type = dt.id",
            f"INNER JOIN {data_subject.table} dsb",
            f'ON dsb."{data_subject.child_column}" = d.id',
            f"LEFT JOIN {data_sample.table} sd",
            f'ON sd."{data_sample.child_column}" = d.id',
            f"LEFT JOIN {data_data.table} dd",
            f'ON dd."{data_data.child_column}" = d.id',
            f'WHERE dsb."{data_subject.parent_column}" = $1',
        ]
    )
    return CompiledStatement(statement, (subject_id,))


def subject_data_types(
    subject_id: int, graph: EntityGraph | None = None
) -> CompiledStatement:
    """Distinct data type ids of the Samples and Data attached to a Subject."""
    graph = graph or EntityGraph.default()
    selects = []
    for kind in (EntityKind.SAMPLE, EntityKind.DATA):
        path = graph.lookup_join(kind, EntityKind.SUBJECT)
        selects.append(
            " ".join(
                [
                    f"SELECT {DATA_TYPE_TABLE}.id FROM {DATA_TYPE_TABLE}",
                    f"INNER JOIN {kind.table}",
                    f"ON {DATA_TYPE_TABLE}.id = {kind.table}.type",
                    f"INNER JOIN {path.table} j",
                    f'ON j."{path.child_column}" = {kind.table}.id',
                    f'WHERE j."{path.parent_column}" = $1',
                ]
            )
        )
    return CompiledStatement(" UNION ".join(selects), (subject_id,))


def _parent_ref(alias: str, path: JoinPath, id_prefix: str, name: str) -> str:
    column = f'{alias}."{path.parent_column}"'
    return (
        f"CASE WHEN {column} > 0 THEN concat('{id_prefix}', {column}) "
        f"ELSE NULL END AS {name}"
    )
