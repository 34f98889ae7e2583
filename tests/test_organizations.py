"""
Organization management tests.
"""

import pytest

from factories import auth_headers

ORGS_URL = "/api/v1/admin/organizations"


async def create(client, caller, name, kind, parent_id=None):
    body = {"name": name, "kind": kind}
    if parent_id is not None:
        body["parent_id"] = str(parent_id)
    return await client.post(ORGS_URL, json=body, headers=auth_headers(caller))


# ---------------------------------------------------------------------------
# 1. Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_super_admin_creates_school_and_department(client, campus):
    school = await create(client, campus.super_admin, "East Institute", "SCHOOL")
    assert school.status_code == 201, school.text
    school_id = school.json()["id"]

    dept = await create(client, campus.super_admin, "Physics", "DEPARTMENT", school_id)
    assert dept.status_code == 201, dept.text
    assert dept.json()["parent_id"] == school_id


@pytest.mark.asyncio
async def test_invalid_shapes_rejected(client, campus):
    resp = await create(client, campus.super_admin, "Floating", "DEPARTMENT")
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INVALID_HIERARCHY"

    resp = await create(client, campus.super_admin, "Nested", "DEPARTMENT", campus.north_cs.id)
    assert resp.status_code == 400

    resp = await create(client, campus.super_admin, "Sub School", "SCHOOL", campus.north.id)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_unknown_parent(client, campus):
    resp = await create(
        client, campus.super_admin, "Ghost", "DEPARTMENT", "00000000-0000-0000-0000-000000000000"
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_school_admin_limited_to_own_school(client, campus):
    resp = await create(client, campus.north_admin, "Chemistry", "DEPARTMENT", campus.north.id)
    assert resp.status_code == 201

    resp = await create(client, campus.north_admin, "Sculpture", "DEPARTMENT", campus.south.id)
    assert resp.status_code == 403

    resp = await create(client, campus.north_admin, "West School", "SCHOOL")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_sibling_names_unique(client, campus):
    resp = await create(client, campus.super_admin, "Mathematics", "DEPARTMENT", campus.north.id)
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "ORG_NAME_TAKEN"

    # Same name under another school is fine.
    resp = await create(client, campus.super_admin, "Mathematics", "DEPARTMENT", campus.south.id)
    assert resp.status_code == 201


# ---------------------------------------------------------------------------
# 2. Read
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_listing_is_scoped(client, campus):
    resp = await client.get(ORGS_URL, headers=auth_headers(campus.marketer))
    names = {item["name"] for item in resp.json()["items"]}
    assert names == {"North University", "Computer Science"}

    resp = await client.get(
        ORGS_URL, params={"kind": "SCHOOL"}, headers=auth_headers(campus.super_admin)
    )
    assert resp.json()["total"] == 2


@pytest.mark.asyncio
async def test_hierarchy_with_stats(client, campus):
    resp = await client.get(f"{ORGS_URL}/hierarchy", headers=auth_headers(campus.north_admin))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_schools"] == 1
    assert body["total_departments"] == 2

    north = body["schools"][0]
    assert north["name"] == "North University"
    assert north["stats"]["number_count"] == 2
    assert north["stats"]["member_count"] == 2
    departments = {child["name"]: child["stats"] for child in north["children"]}
    assert departments["Computer Science"]["number_count"] == 1
    assert departments["Mathematics"]["number_count"] == 0


@pytest.mark.asyncio
async def test_super_admin_sees_whole_tree(client, campus):
    resp = await client.get(f"{ORGS_URL}/hierarchy", headers=auth_headers(campus.super_admin))
    body = resp.json()
    assert [school["name"] for school in body["schools"]] == ["North University", "South College"]
    assert body["total_departments"] == 3


@pytest.mark.asyncio
async def test_get_foreign_organization_forbidden(client, campus):
    resp = await client.get(f"{ORGS_URL}/{campus.south.id}", headers=auth_headers(campus.north_admin))
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# 3. Update / Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_rename_organization(client, campus):
    resp = await client.patch(
        f"{ORGS_URL}/{campus.north_math.id}",
        json={"name": "Applied Mathematics", "description": "Numbers people"},
        headers=auth_headers(campus.north_admin),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["name"] == "Applied Mathematics"
    assert resp.json()["description"] == "Numbers people"


@pytest.mark.asyncio
async def test_delete_requires_empty_organization(client, campus):
    headers = auth_headers(campus.super_admin)
    resp = await client.delete(f"{ORGS_URL}/{campus.north.id}", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "ORG_NOT_EMPTY"

    resp = await client.delete(f"{ORGS_URL}/{campus.north_math.id}", headers=headers)
    assert resp.status_code == 200
    resp = await client.get(f"{ORGS_URL}/{campus.north_math.id}", headers=headers)
    assert resp.status_code == 404
