"""Tests for approval chain selection."""

import pytest

from payroll_workflow.approvals.chain import ApprovalChainConfig, scope_score, select_chain
from payroll_workflow.approvals.resolvers import ApproverFunction
from payroll_workflow.errors import ApprovalChainNotConfiguredError, ResolutionError
from payroll_workflow.models import ApprovalChainLevel


def row(level_no, function, close=False, dept=None, project=None, active=True, specific=None):
    return ApprovalChainLevel(
        request_type="VAC",
        level_no=level_no,
        function_call=function,
        close_level=close,
        department_code=dept,
        project_code=project,
        is_active=active,
        specific_employee_no=specific,
    )


GLOBAL = [
    row(1, "GetDirectManager"),
    row(2, "GetProjectManager"),
    row(3, "GetHRManager", close=True),
]


class TestScopeScore:
    def test_department_beats_project_beats_global(self):
        assert scope_score("ENG", None, "ENG", "P1") > scope_score(None, "P1", "ENG", "P1")
        assert scope_score(None, "P1", "ENG", "P1") > scope_score(None, None, "ENG", "P1")
        assert scope_score("ENG", "P1", "ENG", "P1") > scope_score("ENG", None, "ENG", "P1")

    def test_mismatch(self):
        assert scope_score("FIN", None, "ENG", "P1") == -1
        assert scope_score(None, "P2", "ENG", "P1") == -1


class TestSelectChain:
    def test_global_chain(self):
        chain = select_chain("VAC", GLOBAL, "ENG", "P1")

        assert [lvl.level_no for lvl in chain.levels] == [1, 2, 3]
        assert chain.first.function == ApproverFunction.DIRECT_MANAGER
        assert chain.next_after(1).level_no == 2
        assert chain.next_after(3) is None

    def test_most_specific_scope_wins_whole_chain(self):
        rows = GLOBAL + [
            row(1, "GetFinManager", dept="FIN"),
            row(2, "GetGeneralManager", close=True, dept="FIN"),
        ]

        chain = select_chain("VAC", rows, "FIN", None)

        assert [lvl.function for lvl in chain.levels] == [
            ApproverFunction.FINANCE_MANAGER,
            ApproverFunction.GENERAL_MANAGER,
        ]

    def test_other_scope_falls_back_to_global(self):
        rows = GLOBAL + [row(1, "GetFinManager", close=True, dept="FIN")]

        chain = select_chain("VAC", rows, "ENG", "P1")

        assert len(chain) == 3

    def test_truncated_at_first_close_level(self):
        rows = [
            row(1, "GetDirectManager"),
            row(2, "GetHRManager", close=True),
            row(3, "GetGeneralManager", close=True),
        ]

        chain = select_chain("VAC", rows)

        assert [lvl.level_no for lvl in chain.levels] == [1, 2]

    def test_last_level_forced_terminal(self):
        chain = select_chain("VAC", [row(1, "GetDirectManager"), row(2, "GetHRManager")])

        assert chain.levels[-1].close_level is True
        assert chain.next_after(2) is None

    def test_levels_need_not_be_contiguous(self):
        chain = select_chain("VAC", [row(10, "GetDirectManager"), row(30, "GetHRManager", close=True)])

        assert chain.first.level_no == 10
        assert chain.next_after(10).level_no == 30

    def test_duplicate_level_keeps_first(self):
        rows = [row(1, "GetDirectManager"), row(1, "GetHRManager"), row(2, "GetFinManager", close=True)]

        chain = select_chain("VAC", rows)

        assert [lvl.function for lvl in chain.levels] == [
            ApproverFunction.DIRECT_MANAGER,
            ApproverFunction.FINANCE_MANAGER,
        ]

    def test_inactive_rows_ignored(self):
        with pytest.raises(ApprovalChainNotConfiguredError):
            select_chain("VAC", [row(1, "GetDirectManager", active=False)])

    def test_no_matching_scope(self):
        with pytest.raises(ApprovalChainNotConfiguredError):
            select_chain("VAC", [row(1, "GetHRManager", close=True, dept="FIN")], "ENG", None)

    def test_unknown_function_rejected(self):
        with pytest.raises(ResolutionError):
            select_chain("VAC", [row(1, "GetCEO", close=True)])

    def test_get_unknown_level(self):
        chain = select_chain("VAC", GLOBAL)

        with pytest.raises(ApprovalChainNotConfiguredError) as exc_info:
            chain.get(7)

        assert exc_info.value.level_no == 7


class TestApprovalChainConfig:
    async def test_loads_from_database(self, org):
        chain = await ApprovalChainConfig(org).get_chain("PAYROLL", "ENG", "P1")

        assert [lvl.function for lvl in chain.levels] == [
            ApproverFunction.HR_MANAGER,
            ApproverFunction.FINANCE_MANAGER,
            ApproverFunction.GENERAL_MANAGER,
        ]

    async def test_department_scoped_chain(self, org):
        chain = await ApprovalChainConfig(org).get_chain("VAC", "FIN", None)

        assert len(chain) == 1
        assert chain.first.function == ApproverFunction.FINANCE_MANAGER

    async def test_unconfigured_type(self, session):
        with pytest.raises(ApprovalChainNotConfiguredError):
            await ApprovalChainConfig(session).get_chain("LOAN", "ENG", "P1")
