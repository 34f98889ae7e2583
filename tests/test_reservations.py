"""
Reservation lifecycle tests.

Verifies that:
- Claims enforce the payment tiers and mutual exclusion
- Admin edits approve, release and respect scope
- Release always clears every claim field
- The expiry sweep only touches stale PENDING_REVIEW claims
"""

import asyncio
from datetime import timedelta

import pytest
from fastapi import HTTPException

from campus_sim.models.phone_number import CLAIM_FIELDS, ReservationState
from campus_sim.schemas.phone_number import ClaimRequest, PhoneNumberPatchRequest
from campus_sim.services.reservation_service import CLAIM_TIMEOUT, ReservationService, utcnow
from campus_sim.services.scope import build_auth_context
from factories import auth_headers, make_number

DEPOSIT_CLAIM = {
    "customer_name": "Zhang San",
    "customer_contact": "13900000001",
    "payment_amount": 20,
}

FULL_CLAIM = {
    "customer_name": "Li Si",
    "customer_contact": "13900000002",
    "payment_amount": 200,
    "shipping_address": "1 Campus Road, Dorm 5",
    "payment_method": "WECHAT",
}


async def claim(client, number_id, body=DEPOSIT_CLAIM):
    return await client.post(f"/api/v1/numbers/{number_id}/claim", json=body)


# ---------------------------------------------------------------------------
# 1. Public catalogue
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_anonymous_catalogue_lists_everything_without_customer_data(client, campus):
    resp = await client.get("/api/v1/numbers")
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 3
    assert "customer_name" not in body["items"][0]


@pytest.mark.asyncio
async def test_hide_reserved_filters_claimed_numbers(client, campus):
    await claim(client, campus.north_number.id)
    resp = await client.get("/api/v1/numbers", params={"hide_reserved": True})
    values = [item["number_value"] for item in resp.json()["items"]]
    assert campus.north_number.number_value not in values
    assert len(values) == 2


@pytest.mark.asyncio
async def test_authenticated_catalogue_is_scoped(client, campus):
    resp = await client.get("/api/v1/numbers", headers=auth_headers(campus.south_admin))
    values = [item["number_value"] for item in resp.json()["items"]]
    assert values == [campus.south_number.number_value]


# ---------------------------------------------------------------------------
# 2. Claim
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_deposit_claim_moves_to_pending_review(client, campus):
    resp = await claim(client, campus.north_number.id)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["reservation_status"] == "PENDING_REVIEW"
    assert body["claimed_at"] is not None
    assert body["customer_name"] == "Zhang San"
    assert body["payment_amount"] == 20


@pytest.mark.asyncio
async def test_full_payment_claim_keeps_address(client, campus):
    resp = await claim(client, campus.north_number.id, FULL_CLAIM)
    assert resp.status_code == 201, resp.text
    assert resp.json()["shipping_address"] == "1 Campus Road, Dorm 5"
    assert resp.json()["payment_method"] == "WECHAT"


@pytest.mark.asyncio
async def test_full_payment_without_address_rejected(client, campus):
    body = {**FULL_CLAIM, "shipping_address": "   "}
    resp = await claim(client, campus.north_number.id, body)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "SHIPPING_ADDRESS_REQUIRED"


@pytest.mark.asyncio
async def test_unknown_tier_rejected(client, campus):
    resp = await claim(client, campus.north_number.id, {**DEPOSIT_CLAIM, "payment_amount": 50})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INVALID_PAYMENT_TIER"


@pytest.mark.asyncio
async def test_missing_customer_name_is_validation_error(client, campus):
    body = {key: value for key, value in DEPOSIT_CLAIM.items() if key != "customer_name"}
    resp = await claim(client, campus.north_number.id, body)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_second_claim_conflicts(client, campus):
    first = await claim(client, campus.north_number.id)
    assert first.status_code == 201
    second = await claim(client, campus.north_number.id, FULL_CLAIM)
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "ALREADY_CLAIMED"

    # The first claim is untouched.
    resp = await client.get(
        f"/api/v1/admin/numbers/{campus.north_number.id}",
        headers=auth_headers(campus.super_admin),
    )
    assert resp.json()["customer_name"] == "Zhang San"


@pytest.mark.asyncio
async def test_claim_unknown_number(client, campus):
    resp = await claim(client, "00000000-0000-0000-0000-000000000000")
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "NUMBER_NOT_FOUND"


@pytest.mark.asyncio
async def test_concurrent_claims_have_exactly_one_winner(client, campus):
    bodies = [{**DEPOSIT_CLAIM, "customer_name": f"Customer {i}"} for i in range(5)]
    responses = await asyncio.gather(
        *(claim(client, campus.north_cs_number.id, body) for body in bodies)
    )
    codes = sorted(resp.status_code for resp in responses)
    assert codes == [201, 409, 409, 409, 409]

    winner = next(resp.json() for resp in responses if resp.status_code == 201)
    resp = await client.get(
        f"/api/v1/admin/numbers/{campus.north_cs_number.id}",
        headers=auth_headers(campus.super_admin),
    )
    assert resp.json()["customer_name"] == winner["customer_name"]


# ---------------------------------------------------------------------------
# 3. Admin edits
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_admin_approves_pending_claim(client, campus):
    await claim(client, campus.north_number.id)
    resp = await client.patch(
        f"/api/v1/admin/numbers/{campus.north_number.id}",
        json={"reservation_status": "RESERVED", "assigned_marketer": "seller"},
        headers=auth_headers(campus.north_admin),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["reservation_status"] == "RESERVED"
    assert body["assigned_marketer"] == "seller"
    assert body["customer_name"] == "Zhang San"


@pytest.mark.asyncio
async def test_patch_ignores_read_only_fields(client, campus):
    resp = await client.patch(
        f"/api/v1/admin/numbers/{campus.north_number.id}",
        json={"number_value": "19999999999", "is_premium": True, "premium_reason": "manual"},
        headers=auth_headers(campus.north_admin),
    )
    assert resp.status_code == 200
    assert resp.json()["number_value"] == campus.north_number.number_value
    assert resp.json()["is_premium"] is True


@pytest.mark.asyncio
async def test_patch_null_status_rejected(client, campus):
    resp = await client.patch(
        f"/api/v1/admin/numbers/{campus.north_number.id}",
        json={"reservation_status": None},
        headers=auth_headers(campus.north_admin),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INVALID_FIELD"


@pytest.mark.asyncio
async def test_direct_reservation_sets_claimed_at(client, campus):
    resp = await client.patch(
        f"/api/v1/admin/numbers/{campus.north_number.id}",
        json={"reservation_status": "RESERVED", "customer_name": "Walk-in"},
        headers=auth_headers(campus.marketer),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["claimed_at"] is not None


@pytest.mark.asyncio
async def test_patch_to_unreserved_clears_claim(client, campus):
    await claim(client, campus.north_number.id, FULL_CLAIM)
    resp = await client.patch(
        f"/api/v1/admin/numbers/{campus.north_number.id}",
        json={"reservation_status": "UNRESERVED"},
        headers=auth_headers(campus.north_admin),
    )
    body = resp.json()
    assert body["reservation_status"] == "UNRESERVED"
    for name in CLAIM_FIELDS:
        assert body[name] is None, name


@pytest.mark.asyncio
async def test_patch_moves_number_to_department(client, campus):
    resp = await client.patch(
        f"/api/v1/admin/numbers/{campus.north_number.id}",
        json={"department_id": str(campus.north_math.id)},
        headers=auth_headers(campus.north_admin),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["school_id"] == str(campus.north.id)
    assert resp.json()["department_id"] == str(campus.north_math.id)


@pytest.mark.asyncio
async def test_patch_cannot_move_number_out_of_scope(client, campus):
    resp = await client.patch(
        f"/api/v1/admin/numbers/{campus.north_number.id}",
        json={"school_id": str(campus.south.id)},
        headers=auth_headers(campus.north_admin),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "OUT_OF_SCOPE"


@pytest.mark.asyncio
async def test_out_of_scope_number_forbidden(client, campus):
    resp = await client.get(
        f"/api/v1/admin/numbers/{campus.north_number.id}",
        headers=auth_headers(campus.south_admin),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "OUT_OF_SCOPE"


@pytest.mark.asyncio
async def test_admin_endpoints_require_token(client, campus):
    resp = await client.get("/api/v1/admin/numbers")
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "MISSING_TOKEN"

    resp = await client.get("/api/v1/admin/numbers", headers={"Authorization": "Bearer junk"})
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_patch_conflicts_when_number_swept_meanwhile(
    session_factory, campus, db, monkeypatch
):
    stale = utcnow() - CLAIM_TIMEOUT - timedelta(minutes=1)
    number = await make_number(
        db, "13822223333", school=campus.north,
        state=ReservationState.PENDING_REVIEW, claimed_at=stale, customer_name="Slow Payer",
    )
    await db.commit()

    original_get_scoped = ReservationService._get_scoped

    async def get_scoped_then_sweep(self, ctx, number_id):
        loaded = await original_get_scoped(self, ctx, number_id)
        async with session_factory() as other:
            assert await ReservationService(db=other).sweep_expired() == 1
        return loaded

    monkeypatch.setattr(ReservationService, "_get_scoped", get_scoped_then_sweep)

    async with session_factory() as session:
        ctx = await build_auth_context(session, campus.north_admin)
        with pytest.raises(HTTPException) as exc_info:
            await ReservationService(db=session).patch_number(
                ctx,
                number.id,
                PhoneNumberPatchRequest(reservation_status=ReservationState.RESERVED),
            )
    assert exc_info.value.status_code == 409
    assert exc_info.value.detail["code"] == "STATE_CHANGED"

    await db.refresh(number)
    assert number.reservation_status == ReservationState.UNRESERVED
    assert number.customer_name is None
    assert number.claimed_at is None


# ---------------------------------------------------------------------------
# 4. Release / Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_release_clears_every_claim_field(client, campus):
    await claim(client, campus.north_number.id, FULL_CLAIM)
    await client.patch(
        f"/api/v1/admin/numbers/{campus.north_number.id}",
        json={
            "reservation_status": "RESERVED",
            "ems_tracking_number": "EA123456789CN",
            "delivery_status": "IN_TRANSIT_ACTIVATED",
        },
        headers=auth_headers(campus.north_admin),
    )

    resp = await client.post(
        f"/api/v1/admin/numbers/{campus.north_number.id}/release",
        headers=auth_headers(campus.north_admin),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["reservation_status"] == "UNRESERVED"
    for name in CLAIM_FIELDS:
        assert body[name] is None, name

    # Released numbers can be claimed again.
    assert (await claim(client, campus.north_number.id)).status_code == 201


@pytest.mark.asyncio
async def test_marketer_cannot_release(client, campus):
    resp = await client.post(
        f"/api/v1/admin/numbers/{campus.north_number.id}/release",
        headers=auth_headers(campus.marketer),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_ROLE"


@pytest.mark.asyncio
async def test_delete_number(client, campus):
    headers = auth_headers(campus.north_admin)
    resp = await client.delete(f"/api/v1/admin/numbers/{campus.north_number.id}", headers=headers)
    assert resp.status_code == 200
    resp = await client.get(f"/api/v1/admin/numbers/{campus.north_number.id}", headers=headers)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# 5. Expiry sweep
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_sweep_releases_only_stale_pending_claims(client, campus, db):
    stale = utcnow() - CLAIM_TIMEOUT - timedelta(minutes=1)
    expired = await make_number(
        db, "13811112222", school=campus.north,
        state=ReservationState.PENDING_REVIEW, claimed_at=stale, customer_name="Late",
    )
    fresh = await make_number(
        db, "13811113333", school=campus.north,
        state=ReservationState.PENDING_REVIEW, claimed_at=utcnow(), customer_name="Fresh",
    )
    approved = await make_number(
        db, "13811114444", school=campus.north,
        state=ReservationState.RESERVED, claimed_at=stale, customer_name="Paid",
    )
    await db.commit()

    headers = auth_headers(campus.super_admin)
    resp = await client.post("/api/v1/admin/release-expired", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["released_count"] == 1

    states = {}
    for number in (expired, fresh, approved):
        detail = await client.get(f"/api/v1/admin/numbers/{number.id}", headers=headers)
        states[number.number_value] = detail.json()
    assert states["13811112222"]["reservation_status"] == "UNRESERVED"
    assert states["13811112222"]["customer_name"] is None
    assert states["13811113333"]["reservation_status"] == "PENDING_REVIEW"
    assert states["13811114444"]["reservation_status"] == "RESERVED"

    # Running it again changes nothing.
    resp = await client.post("/api/v1/admin/release-expired", headers=headers)
    assert resp.json()["released_count"] == 0


@pytest.mark.asyncio
async def test_sweep_is_scoped_to_caller(client, campus, db):
    stale = utcnow() - timedelta(hours=1)
    await make_number(
        db, "13911112222", school=campus.south,
        state=ReservationState.PENDING_REVIEW, claimed_at=stale,
    )
    await db.commit()

    resp = await client.post(
        "/api/v1/admin/release-expired", headers=auth_headers(campus.north_admin)
    )
    assert resp.json()["released_count"] == 0

    resp = await client.post(
        "/api/v1/admin/release-expired", headers=auth_headers(campus.south_admin)
    )
    assert resp.json()["released_count"] == 1


@pytest.mark.asyncio
async def test_sweep_uses_claim_age(session_factory, campus):
    async with session_factory() as session:
        service = ReservationService(db=session)
        await service.claim(
            campus.north_number.id,
            ClaimRequest(**DEPOSIT_CLAIM),
        )
        assert await service.sweep_expired(now=utcnow() + timedelta(minutes=29)) == 0
        assert await service.sweep_expired(now=utcnow() + timedelta(minutes=31)) == 1


# ---------------------------------------------------------------------------
# 6. Listing and stats
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_admin_listing_is_scoped(client, campus):
    resp = await client.get("/api/v1/admin/numbers", headers=auth_headers(campus.north_admin))
    values = sorted(item["number_value"] for item in resp.json()["items"])
    assert values == ["13800138001", "13800138002"]

    resp = await client.get("/api/v1/admin/numbers", headers=auth_headers(campus.super_admin))
    assert resp.json()["total"] == 3


@pytest.mark.asyncio
async def test_pending_orders_and_stats(client, campus):
    await claim(client, campus.north_number.id)
    headers = auth_headers(campus.north_admin)

    resp = await client.get("/api/v1/admin/pending-orders", headers=headers)
    assert resp.json()["total"] == 1

    resp = await client.get("/api/v1/admin/stats", headers=headers)
    stats = resp.json()
    assert stats["total"] == 2
    assert stats["pending_review"] == 1
    assert stats["unreserved"] == 1
