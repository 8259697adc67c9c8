"""
Human-readable code allocation for Subjects and Samples.

Codes are ``prefix + number``. The next code is derived from the most
recently inserted one, read inside the caller's transaction. Two
concurrent transactions can read the same latest code and allocate the
same next one: callers that need uniqueness rely on a unique constraint
and retry.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from sqlalchemy import column, select, table

from biograph_query.graph import EntityGraph, EntityKind

from .associations import junction_table
from .exceptions import PersistenceError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

SUBJECT_CODE_PREFIX = "CPN-"
START_SAMPLE_CODE = "0"

_NUMERIC_CODE = re.compile(r"^[0-9.]+$")

_subject = table("subject", column("id"), column("type"), column("code"))
_sample = table(
    "sample", column("id"), column("type"), column("biobank"), column("biobank_code")
)
_data_type = table(
    "data_type",
    column("id"),
    column("project"),
    column("biobank_prefix"),
    column("parent_code"),
    column("parent_no_prefix"),
)


def split_code(code: str) -> tuple[str, int]:
    """Split ``"CPN-41"`` into ``("CPN-", 41)``. No trailing digits gives 0."""
    head = code.rstrip("0123456789")
    digits = code[len(head) :]
    return head, int(digits) if digits else 0


def increment_code(last: str, prefix: str | None) -> str:
    """
    The code following *last*.

    Numeric codes get *prefix* prepended, or ``0`` without one; prefixed
    codes keep their prefix and increment the numeric tail.
    """
    if _NUMERIC_CODE.match(last):
        number = int(last.split(".")[0] or 0)
        return f"{prefix or '0'}{number + 1}"
    head, number = split_code(last)
    return f"{prefix or head}{number + 1}"


class CodeAllocator:
    def __init__(
        self, session: AsyncSession, graph: EntityGraph | None = None
    ) -> None:
        self._session = session
        self._graph = graph or EntityGraph.default()

    async def next_subject_code(
        self, subject_type: int, code: str | None = None
    ) -> str:
        """An explicit *code* wins; otherwise increment the latest of the type."""
        if code:
            return code
        result = await self._session.execute(
            select(_subject.c.code)
            .where(_subject.c.type == subject_type)
            .order_by(_subject.c.id.desc())
            .limit(1)
        )
        last = result.scalar_one_or_none()
        if not last:
            return f"{SUBJECT_CODE_PREFIX}1"
        head, number = split_code(last)
        return f"{head or SUBJECT_CODE_PREFIX}{number + 1}"

    async def next_biobank_code(
        self,
        sample_type: int,
        biobank: int,
        project: int | None,
        parent_sample: int | None = None,
        code: str | None = None,
    ) -> str | None:
        """
        Next biobank code for a Sample of *sample_type* stored in *biobank*.

        Returns ``None`` outside a project. Types flagged ``parent_code``
        derive the code from *parent_sample*. Root samples of types flagged
        ``parent_no_prefix`` continue the project-wide numeric sequence of
        root samples and carry no prefix.

        Raises:
            PersistenceError: *sample_type* is not a type of *project*.
        """
        if code:
            return code
        if project is None:
            return None

        result = await self._session.execute(
            select(
                _data_type.c.biobank_prefix,
                _data_type.c.parent_code,
                _data_type.c.parent_no_prefix,
            ).where(_data_type.c.id == sample_type, _data_type.c.project == project)
        )
        settings = result.mappings().first()
        if settings is None:
            raise PersistenceError(
                f"Sample type {sample_type} is not defined in project {project}"
            )
        prefix = settings["biobank_prefix"]

        if parent_sample is not None and settings["parent_code"]:
            return f"{prefix or ''}{parent_sample}"

        sequence_wide = parent_sample is None and settings["parent_no_prefix"]
        last = await self._last_biobank_code(
            sample_type, biobank, project, sequence_wide
        )
        next_code = increment_code(
            last or START_SAMPLE_CODE, None if sequence_wide else prefix
        )
        logger.info("Allocated biobank code for sample type %s", sample_type)
        return next_code

    async def _last_biobank_code(
        self, sample_type: int, biobank: int, project: int, sequence_wide: bool
    ) -> str | None:
        query = select(_sample.c.biobank_code).where(_sample.c.biobank == biobank)
        if sequence_wide:
            path = self._graph.lookup_join(EntityKind.SAMPLE, EntityKind.SAMPLE)
            parents = junction_table(path)
            query = (
                query.join(_data_type, _data_type.c.id == _sample.c.type)
                .outerjoin(parents, parents.c[path.child_column] == _sample.c.id)
                .where(
                    _data_type.c.project == project,
                    parents.c[path.parent_column].is_(None),
                    _sample.c.biobank_code.regexp_match(_NUMERIC_CODE.pattern),
                )
            )
        else:
            query = query.where(_sample.c.type == sample_type)
        result = await self._session.execute(
            query.order_by(_sample.c.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()
