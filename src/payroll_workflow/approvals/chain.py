"""Approval chain configuration with scope matching."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.approvals.resolvers import ApproverFunction
from payroll_workflow.errors import ApprovalChainNotConfiguredError
from payroll_workflow.models import ApprovalChainLevel, RequestType

logger = logging.getLogger(__name__)

# A department match outranks a project match; both outrank global rows
DEPARTMENT_WEIGHT = 2
PROJECT_WEIGHT = 1


@dataclass(frozen=True)
class ChainLevel:
    """One resolved level of an approval chain."""

    level_no: int
    function: ApproverFunction
    close_level: bool
    specific_employee_no: int | None = None
    department_code: str | None = None
    project_code: str | None = None

    @property
    def label(self) -> str:
        return self.function.label


@dataclass(frozen=True)
class ApprovalChain:
    """Ordered levels for one request type and scope.

    Levels are strictly increasing and the last one is always terminal.
    """

    request_type: str
    levels: tuple[ChainLevel, ...]

    def __len__(self) -> int:
        return len(self.levels)

    @property
    def first(self) -> ChainLevel:
        return self.levels[0]

    def get(self, level_no: int) -> ChainLevel:
        for level in self.levels:
            if level.level_no == level_no:
                return level
        raise ApprovalChainNotConfiguredError(self.request_type, level_no)

    def next_after(self, level_no: int) -> ChainLevel | None:
        """Return the level following level_no, or None if it closes the chain."""
        current = self.get(level_no)
        if current.close_level:
            return None
        for level in self.levels:
            if level.level_no > level_no:
                return level
        return None


def scope_score(
    row_department: str | None,
    row_project: str | None,
    department_code: str | None,
    project_code: str | None,
) -> int:
    """Score how specifically a row scope matches; -1 on explicit mismatch."""
    score = 0
    if row_department is not None:
        if row_department != department_code:
            return -1
        score += DEPARTMENT_WEIGHT
    if row_project is not None:
        if row_project != project_code:
            return -1
        score += PROJECT_WEIGHT
    return score


def select_chain(
    request_type: str,
    rows: Iterable[ApprovalChainLevel],
    department_code: str | None = None,
    project_code: str | None = None,
) -> ApprovalChain:
    """Pick the most specific scoped chain among active rows.

    Rows sharing one (department, project) scope form a chain. The chain
    with the highest scope score wins as a whole, so levels from different
    scopes are never mixed.
    """
    groups: dict[tuple[str | None, str | None], list[ApprovalChainLevel]] = {}
    for row in rows:
        if not row.is_active:
            continue
        groups.setdefault((row.department_code, row.project_code), []).append(row)

    best: list[ApprovalChainLevel] | None = None
    best_score = -1
    for (row_department, row_project), members in groups.items():
        score = scope_score(row_department, row_project, department_code, project_code)
        if score > best_score:
            best, best_score = members, score

    if not best:
        raise ApprovalChainNotConfiguredError(request_type)

    levels: list[ChainLevel] = []
    seen: set[int] = set()
    for row in sorted(best, key=lambda r: r.level_no):
        if row.level_no in seen:
            logger.warning(
                "Duplicate chain level %s for %s in scope (%s, %s); keeping the first",
                row.level_no,
                request_type,
                row.department_code,
                row.project_code,
            )
            continue
        seen.add(row.level_no)
        levels.append(
            ChainLevel(
                level_no=row.level_no,
                function=ApproverFunction.parse(row.function_call),
                close_level=row.close_level,
                specific_employee_no=row.specific_employee_no,
                department_code=row.department_code,
                project_code=row.project_code,
            )
        )
        if row.close_level:
            break

    if not levels[-1].close_level:
        levels[-1] = replace(levels[-1], close_level=True)

    return ApprovalChain(request_type=request_type, levels=tuple(levels))


class ApprovalChainConfig:
    """Loads approval chains from the approval_chain_level table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_chain(
        self,
        request_type: RequestType | str,
        department_code: str | None = None,
        project_code: str | None = None,
    ) -> ApprovalChain:
        """Return the active chain for a request type and scope.

        Raises:
            ApprovalChainNotConfiguredError: no active level matches
        """
        request_type = RequestType(request_type).value
        result = await self.session.execute(
            select(ApprovalChainLevel).where(
                ApprovalChainLevel.request_type == request_type,
                ApprovalChainLevel.is_active.is_(True),
            )
        )
        chain = select_chain(request_type, result.scalars().all(), department_code, project_code)
        logger.debug(
            "Chain for %s scope (%s, %s): %s",
            request_type,
            department_code,
            project_code,
            [(lvl.level_no, lvl.function.value) for lvl in chain.levels],
        )
        return chain
