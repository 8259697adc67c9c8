"""
Projection of metadata documents into typed EAV value tables.

Every attribute of a data type is declared once in ``eav_attribute``.
Values land in ``<field_type>_<entity table>``, e.g. ``float_sample``,
one row per scalar value and one per loop element.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import column, insert, select, table

from biograph_query import metadata
from biograph_query.criteria import FieldType
from biograph_query.exceptions import AmbiguousAttributeResolution

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from biograph_query.graph import EntityKind

logger = logging.getLogger(__name__)

UNIT_FIELD_TYPES = frozenset({FieldType.INTEGER, FieldType.FLOAT})

_eav_attribute = table(
    "eav_attribute",
    column("id"),
    column("data_type"),
    column("name"),
    column("field_type"),
    column("has_unit"),
)


@dataclass(frozen=True)
class Attribute:
    id: int
    name: str
    field_type: FieldType
    has_unit: bool = False

    @property
    def stores_unit(self) -> bool:
        """Only numeric attributes declared with a unit keep one."""
        return self.has_unit and self.field_type in UNIT_FIELD_TYPES

    def value_table(self, entity_kind: EntityKind) -> str:
        return f"{self.field_type.value}_{entity_kind.table}"


class AttributeProjector:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def resolve(self, data_type: int, name: str) -> Attribute:
        """
        Return the single attribute *name* declared for *data_type*.

        Raises:
            AmbiguousAttributeResolution: None or several rows match.
        """
        result = await self._session.execute(
            select(
                _eav_attribute.c.id,
                _eav_attribute.c.name,
                _eav_attribute.c.field_type,
                _eav_attribute.c.has_unit,
            ).where(
                _eav_attribute.c.data_type == data_type,
                _eav_attribute.c.name == name,
            )
        )
        rows = result.mappings().all()
        if len(rows) != 1:
            raise AmbiguousAttributeResolution(data_type, name, len(rows))
        row = rows[0]
        return Attribute(
            id=row["id"],
            name=row["name"],
            field_type=FieldType.parse(row["field_type"]),
            has_unit=bool(row["has_unit"]),
        )

    async def project(
        self,
        entity_kind: EntityKind,
        entity_id: int,
        data_type: int,
        document: Mapping[str, Mapping[str, Any]],
    ) -> int:
        """
        Insert the values of *document* for one entity.

        Descriptors holding neither ``value`` nor ``values`` are skipped.
        Returns the number of value rows inserted.
        """
        inserted = 0
        for name, descriptor in document.items():
            attribute = await self.resolve(data_type, name)
            entries = list(metadata.iter_entries(descriptor))
            if not entries:
                logger.warning(
                    "Metadata field '%s' holds no value and was not projected", name
                )
                continue

            columns = [column("entity"), column("attribute"), column("value")]
            if attribute.stores_unit:
                columns.append(column("unit"))
            values_table = table(attribute.value_table(entity_kind), *columns)

            rows = []
            for value, unit in entries:
                row = {"entity": entity_id, "attribute": attribute.id, "value": value}
                if attribute.stores_unit:
                    row["unit"] = unit
                rows.append(row)
            await self._session.execute(insert(values_table), rows)
            inserted += len(rows)

        logger.info(
            "Projected %d value(s) of %s %s into EAV tables",
            inserted,
            entity_kind.value,
            entity_id,
        )
        return inserted
