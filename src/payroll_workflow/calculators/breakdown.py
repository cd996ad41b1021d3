"""Gross salary split into components by breakdown percentages."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from payroll_workflow.calculators.line_builder import SalaryLineBuilder
from payroll_workflow.calculators.types import BreakdownShare, SalaryLine, TypeCode
from payroll_workflow.errors import RequestValidationError

logger = logging.getLogger(__name__)

ONE = Decimal("1")


def merge_shares(
    category_shares: Iterable[BreakdownShare],
    overrides: Iterable[BreakdownShare] = (),
) -> list[BreakdownShare]:
    """Overlay per-employee contract shares on the category defaults.

    An override set that sums to one is a complete breakdown and replaces
    the category defaults outright. Otherwise each override replaces the
    category share with the same type code and adds any type code the
    category does not carry, and the merged set must still sum to one.

    Raises:
        RequestValidationError: If a partial override leaves the merged
            shares summing to anything but one.
    """
    overrides = list(overrides)
    if overrides and _total(overrides) == ONE:
        return sorted(overrides, key=lambda share: share.trans_type_code)

    merged = {share.trans_type_code: share for share in category_shares}
    for share in overrides:
        merged[share.trans_type_code] = share
    result = [merged[code] for code in sorted(merged)]
    if overrides and _total(result) != ONE:
        raise RequestValidationError(
            f"Contract breakdown overrides leave salary shares summing to {_total(result)}, not 1"
        )
    return result


def _total(shares: Iterable[BreakdownShare]) -> Decimal:
    return sum((share.percentage for share in shares), Decimal("0"))


def split_salary(gross: Decimal, shares: list[BreakdownShare]) -> list[SalaryLine]:
    """Split gross into one allowance line per share.

    Without shares the whole amount becomes basic salary. When the shares
    sum to exactly one the lines are reconciled so they add up to gross.
    """
    if not shares:
        logger.warning("No salary breakdown configured; booking %s as basic salary", gross)
        return [SalaryLineBuilder.allowance(TypeCode.BASIC, gross)]

    lines = [
        SalaryLineBuilder.allowance(share.trans_type_code, gross * share.percentage)
        for share in shares
    ]
    total_share = _total(shares)
    if total_share == ONE:
        SalaryLineBuilder.reconcile(lines, SalaryLineBuilder.quantize(gross))
    else:
        logger.warning("Salary breakdown shares sum to %s, not 1; lines left unreconciled", total_share)
    return lines
