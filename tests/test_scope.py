"""
Scope resolver tests.

resolve_data_filter is pure: these tests build an OrgGraph in memory and
check the DataFilter produced for each role.
"""

from uuid import uuid4

from campus_sim.models.membership import OrgRole
from campus_sim.models.organization import OrgKind
from campus_sim.models.user import GlobalRole
from campus_sim.services.org_graph import OrgGraph, OrgNode
from campus_sim.services.scope import (
    MISSING_SCHOOL_WARNING,
    MembershipGrant,
    plan_membership_repair,
    resolve_data_filter,
)


def build_graph():
    north = OrgNode(id=uuid4(), name="North", kind=OrgKind.SCHOOL)
    south = OrgNode(id=uuid4(), name="South", kind=OrgKind.SCHOOL)
    cs = OrgNode(id=uuid4(), name="CS", kind=OrgKind.DEPARTMENT, parent_id=north.id)
    math = OrgNode(id=uuid4(), name="Math", kind=OrgKind.DEPARTMENT, parent_id=north.id)
    law = OrgNode(id=uuid4(), name="Law", kind=OrgKind.DEPARTMENT, parent_id=south.id)
    return OrgGraph([north, south, cs, math, law]), north, south, cs, math, law


def grant(org: OrgNode, role: OrgRole = OrgRole.MARKETER) -> MembershipGrant:
    return MembershipGrant(organization_id=org.id, role_in_org=role)


def test_super_admin_unrestricted_without_memberships():
    graph, *_ = build_graph()
    data_filter = resolve_data_filter(GlobalRole.SUPER_ADMIN, [], graph)
    assert data_filter.unrestricted
    assert data_filter.covers_number(None, None)
    assert data_filter.is_valid


def test_school_admin_sees_all_departments_of_school():
    graph, north, south, cs, math, law = build_graph()
    data_filter = resolve_data_filter(
        GlobalRole.SCHOOL_ADMIN, [grant(north, OrgRole.SCHOOL_ADMIN)], graph
    )
    assert data_filter.school_ids == {north.id}
    assert data_filter.department_ids == {cs.id, math.id}
    assert data_filter.covers_number(None, math.id)
    assert not data_filter.covers_number(south.id, law.id)


def test_marketer_scope_is_exact_memberships():
    graph, north, _, cs, math, _ = build_graph()
    data_filter = resolve_data_filter(GlobalRole.MARKETER, [grant(north), grant(cs)], graph)
    assert data_filter.school_ids == {north.id}
    assert data_filter.department_ids == {cs.id}
    assert data_filter.organization_ids == {north.id, cs.id}
    assert data_filter.is_valid
    # Numbers placed directly on Math without a school are outside the scope.
    assert not data_filter.covers_number(None, math.id)


def test_department_without_school_is_a_warning_not_a_rejection():
    graph, _, south, cs, _, law = build_graph()
    data_filter = resolve_data_filter(GlobalRole.MARKETER, [grant(cs), grant(law)], graph)
    assert not data_filter.is_valid
    assert data_filter.validation_warning == MISSING_SCHOOL_WARNING
    assert data_filter.missing_schools == ("North", "South")
    assert data_filter.department_ids == {cs.id, law.id}
    assert data_filter.school_ids == frozenset()


def test_no_memberships_means_empty_scope():
    graph, north, *_ = build_graph()
    data_filter = resolve_data_filter(GlobalRole.MARKETER, [], graph)
    assert not data_filter.unrestricted
    assert not data_filter.covers_number(north.id, None)
    assert data_filter.is_valid


def test_unknown_membership_ignored():
    graph, *_ = build_graph()
    stale = MembershipGrant(organization_id=uuid4(), role_in_org=OrgRole.MARKETER)
    data_filter = resolve_data_filter(GlobalRole.MARKETER, [stale], graph)
    assert data_filter.organization_ids == frozenset()


def test_membership_repair_adds_parent_schools_once():
    graph, north, south, cs, math, law = build_graph()
    final_ids, added = plan_membership_repair([cs.id, math.id, law.id], graph)
    assert final_ids == [cs.id, math.id, law.id, north.id, south.id]
    assert added == ["North", "South"]


def test_membership_repair_noop_when_school_present():
    graph, north, _, cs, _, _ = build_graph()
    final_ids, added = plan_membership_repair([north.id, cs.id], graph)
    assert final_ids == [north.id, cs.id]
    assert added == []
