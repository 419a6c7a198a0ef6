"""API tests: courts, slots, overview, quotes, reservations, wallets, stats and integrations."""

from datetime import UTC, date, datetime

import pytest
from sqlalchemy import select

from courtdesk.core.database import async_session_factory
from courtdesk.core.dependencies import get_now
from courtdesk.models import ApiKey, Club, Coupon, Court, Reservation, SlotClaim, Wallet, WalletTransaction
from courtdesk.models.coupon import CouponStatus, CouponType
from courtdesk.records import CourtStatus, ReservationStatus

BOOKING_DAY = date(2026, 6, 16)  # the day after the frozen clock in conftest
BASE = "/api/v1/clubs/test-club"


@pytest.fixture
async def seed(client):
    """A club with two courts, a funded wallet, a coupon and provider keys."""
    async with async_session_factory() as db:
        club = Club(name="Test Club", slug="test-club", locale={"currency": "TRY"})
        db.add(club)
        await db.flush()

        main_court = Court(
            club_id=club.id,
            name="Court 1",
            surface="clay",
            sort_order=0,
            available_from="08:00",
            available_until="22:00",
            time_slot_interval=60,
            hourly_rate=100,
            heating_cost=20,
            lighting_cost=10,
            price_schedules=[{"from": "18:00", "until": "22:00", "basePrice": 150, "rolePrices": {"coach": 120}}],
            applied_discounts=[],
            discounts=[{"fromHour": 8, "toHour": 10, "percentage": 20}],
        )
        short_court = Court(
            club_id=club.id,
            name="Court 2",
            surface="hard",
            sort_order=1,
            available_from="09:00",
            available_until="12:00",
            time_slot_interval=90,
            hourly_rate=80,
        )
        closed_court = Court(club_id=club.id, name="Old Court", status=CourtStatus.INACTIVE, sort_order=2)
        db.add_all([main_court, short_court, closed_court])

        db.add(Wallet(club_id=club.id, user_id="u1", balance=500, negative_balance_limit=100))
        db.add(Wallet(club_id=club.id, user_id="blocked", balance=500, is_blocked=True))
        db.add(
            Coupon(
                club_id=club.id,
                code="SUMMER10",
                coupon_type=CouponType.PERCENTAGE,
                value=10,
                status=CouponStatus.ACTIVE,
                valid_from=datetime(2026, 1, 1, tzinfo=UTC),
                valid_until=datetime(2026, 12, 31, tzinfo=UTC),
            )
        )
        db.add_all(
            [
                ApiKey(club_id=club.id, name="Weather", provider="OpenWeather", key="ow-key"),
                ApiKey(club_id=club.id, name="Maps", provider="maps", key="m-key", is_active=False),
            ]
        )
        await db.commit()
        return {"club": club, "court": main_court, "short_court": short_court}


async def book(client, court_id, slots, user_id="u1", **extra):
    body = {"court_id": court_id, "date": BOOKING_DAY.isoformat(), "slots": slots, "user_id": user_id, **extra}
    return await client.post(f"{BASE}/reservations", json=body)


def rules(resp):
    return [v["rule"] for v in resp.json()["detail"]]


# ---------------------------------------------------------------------------
# Basics
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_clock_uses_club_timezone():
    assert get_now(Club(locale={"timezone": "America/New_York"})).tzinfo.key == "America/New_York"
    assert get_now(Club(locale={"currency": "TRY"})).tzinfo.key == "Europe/Istanbul"
    assert get_now(Club(locale=None)).tzinfo.key == "Europe/Istanbul"


@pytest.mark.asyncio
async def test_unknown_club(client, seed):
    resp = await client.get("/api/v1/clubs/nope/courts")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_club_locale_defaults(client, seed):
    resp = await client.get(BASE)
    assert resp.status_code == 200
    locale = resp.json()["locale"]
    assert locale["currency"] == "TRY"
    assert locale["currencySymbol"] == "₺"
    assert locale["timezone"] == "Europe/Istanbul"


@pytest.mark.asyncio
async def test_list_courts_skips_inactive(client, seed):
    resp = await client.get(f"{BASE}/courts")
    assert resp.status_code == 200
    assert [c["name"] for c in resp.json()] == ["Court 1", "Court 2"]


# ---------------------------------------------------------------------------
# Slots and overview
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_slots_priced_and_available(client, seed):
    court_id = seed["court"].id
    resp = await client.get(f"{BASE}/courts/{court_id}/slots?date={BOOKING_DAY}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["court_name"] == "Court 1"
    assert len(body["slots"]) == 14
    assert all(s["slot"]["status"] == "available" for s in body["slots"])

    by_time = {s["slot"]["time"]: s for s in body["slots"]}
    assert by_time["08:00"]["slot"]["discount_percentage"] == 20
    assert by_time["08:00"]["price"]["discounted_price"] == pytest.approx(80)
    assert by_time["08:00"]["price"]["original_price"] == 100
    assert by_time["18:00"]["price"]["base_price"] == 150
    assert body["occupancy"]["total_slots"] == 14


@pytest.mark.asyncio
async def test_slots_role_price(client, seed):
    court_id = seed["court"].id
    resp = await client.get(f"{BASE}/courts/{court_id}/slots?date={BOOKING_DAY}&role_id=coach")
    by_time = {s["slot"]["time"]: s for s in resp.json()["slots"]}
    assert by_time["18:00"]["price"]["base_price"] == 120


@pytest.mark.asyncio
async def test_slots_today_marks_past(client, seed, now):
    court_id = seed["court"].id
    resp = await client.get(f"{BASE}/courts/{court_id}/slots?date={now.date()}")
    statuses = {s["slot"]["time"]: s["slot"]["status"] for s in resp.json()["slots"]}
    assert statuses["11:00"] == "past"
    assert statuses["12:00"] == "available"
    assert sum(1 for s in statuses.values() if s == "past") == 4


@pytest.mark.asyncio
async def test_slots_unknown_court(client, seed):
    resp = await client.get(f"{BASE}/courts/9999/slots?date={BOOKING_DAY}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_corrupt_court_record(client, seed):
    async with async_session_factory() as db:
        broken = Court(club_id=seed["club"].id, name="Broken", time_slot_interval=-30)
        db.add(broken)
        await db.commit()

    resp = await client.get(f"{BASE}/courts/{broken.id}/slots?date={BOOKING_DAY}")
    assert resp.status_code == 422
    assert resp.json()["detail"] == [
        {"rule": "invalid_record", "field": "time_slot_interval", "message": "must be positive, got -30"}
    ]


@pytest.mark.asyncio
async def test_overview_union_grid(client, seed):
    resp = await client.get(f"{BASE}/overview?date={BOOKING_DAY}")
    assert resp.status_code == 200
    body = resp.json()
    assert "10:30" in body["times"]
    assert len(body["times"]) == 15
    assert body["total_slots"] == 16

    rows = {row["court_name"]: {s["time"]: s["status"] for s in row["slots"]} for row in body["courts"]}
    assert rows["Court 1"]["10:30"] == "closed"
    assert rows["Court 2"]["08:00"] == "closed"
    assert rows["Court 2"]["10:30"] == "available"


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_quote(client, seed):
    court_id = seed["court"].id
    resp = await client.post(
        f"{BASE}/courts/{court_id}/quote",
        json={"date": BOOKING_DAY.isoformat(), "slots": ["9:00", "10:00"], "heater": True, "light": True},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["price"]["breakdown"]["court_fee"] == pytest.approx(180)
    assert body["price"]["breakdown"]["discount_amount"] == pytest.approx(20)
    assert body["price"]["total"] == pytest.approx(210)
    assert body["amount_due"] == pytest.approx(210)
    assert body["coupon"] is None


@pytest.mark.asyncio
async def test_quote_with_coupon(client, seed):
    court_id = seed["court"].id
    resp = await client.post(
        f"{BASE}/courts/{court_id}/quote",
        json={"date": BOOKING_DAY.isoformat(), "slots": ["12:00"], "coupon_code": "summer10", "user_id": "u1"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["coupon"]["discount_amount"] == pytest.approx(10)
    assert body["amount_due"] == pytest.approx(90)


@pytest.mark.asyncio
async def test_quote_unknown_coupon(client, seed):
    court_id = seed["court"].id
    resp = await client.post(
        f"{BASE}/courts/{court_id}/quote",
        json={"date": BOOKING_DAY.isoformat(), "slots": ["12:00"], "coupon_code": "NOPE"},
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_quote_malformed_slot(client, seed):
    court_id = seed["court"].id
    resp = await client.post(f"{BASE}/courts/{court_id}/quote", json={"date": BOOKING_DAY.isoformat(), "slots": ["noon"]})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Reservations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_reservation(client, seed):
    court_id = seed["court"].id
    resp = await book(client, court_id, ["10:00", "11:00"], heater=True)
    assert resp.status_code == 201
    body = resp.json()
    assert body["start_time"] == "10:00"
    assert body["end_time"] == "12:00"
    assert body["duration_minutes"] == 120
    assert body["slots"] == ["10:00", "11:00"]
    assert body["status"] == "active"
    assert body["amount_paid"] == pytest.approx(220)
    assert body["discount_applied"] is False

    resp = await client.get(f"{BASE}/wallets/u1")
    assert resp.json()["balance"] == pytest.approx(280)

    resp = await client.get(f"{BASE}/courts/{court_id}/slots?date={BOOKING_DAY}")
    statuses = {s["slot"]["time"]: s["slot"]["status"] for s in resp.json()["slots"]}
    assert statuses["10:00"] == "reserved"
    assert statuses["11:00"] == "reserved"
    assert statuses["12:00"] == "available"
    assert resp.json()["occupancy"]["reserved_count"] == 1

    async with async_session_factory() as db:
        claims = (await db.execute(select(SlotClaim))).scalars().all()
        assert sorted(c.start_time for c in claims) == ["10:00", "11:00"]
        txns = (await db.execute(select(WalletTransaction))).scalars().all()
        assert [t.amount for t in txns] == [pytest.approx(-220)]


@pytest.mark.asyncio
async def test_create_reservation_with_discount(client, seed):
    resp = await book(client, seed["court"].id, ["08:00"])
    assert resp.status_code == 201
    body = resp.json()
    assert body["discount_applied"] is True
    assert body["discount_percentage"] == 20
    assert body["amount_paid"] == pytest.approx(80)
    assert body["original_price"] == pytest.approx(100)


@pytest.mark.asyncio
async def test_double_booking_rejected(client, seed):
    court_id = seed["court"].id
    assert (await book(client, court_id, ["10:00"])).status_code == 201
    resp = await book(client, court_id, ["09:00", "10:00"])
    assert resp.status_code == 422
    assert rules(resp) == ["slot_taken"]


@pytest.mark.asyncio
async def test_slot_claim_conflict(client, seed):
    """A leftover claim blocks the slot even when no live reservation shows it."""
    data = seed
    async with async_session_factory() as db:
        stale = Reservation(
            club_id=data["club"].id,
            court_id=data["court"].id,
            user_id="u2",
            reservation_date=BOOKING_DAY,
            start_time="15:00",
            end_time="16:00",
            duration_minutes=60,
            slots=["15:00"],
            status=ReservationStatus.CANCELLED,
            claims=[SlotClaim(court_id=data["court"].id, claim_date=BOOKING_DAY, start_time="15:00")],
        )
        db.add(stale)
        await db.commit()

    resp = await book(client, data["court"].id, ["15:00"])
    assert resp.status_code == 409

    # Nothing was charged
    resp = await client.get(f"{BASE}/wallets/u1")
    assert resp.json()["balance"] == 500


@pytest.mark.asyncio
async def test_booking_rule_violations(client, seed, now):
    court_id = seed["court"].id

    resp = await book(client, court_id, ["10:00", "12:00"])
    assert rules(resp) == ["slots_not_consecutive"]

    resp = await book(client, court_id, ["10:30"])
    assert rules(resp) == ["slot_not_offered"]

    resp = await client.post(
        f"{BASE}/reservations",
        json={"court_id": court_id, "date": now.date().isoformat(), "slots": ["09:00"], "user_id": "u1"},
    )
    assert rules(resp) == ["past_booking"]


@pytest.mark.asyncio
async def test_booking_unknown_court(client, seed):
    resp = await book(client, 9999, ["10:00"])
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_booking_needs_wallet(client, seed):
    resp = await book(client, seed["court"].id, ["10:00"], user_id="stranger")
    assert resp.status_code == 422
    assert rules(resp) == ["no_wallet"]

    resp = await book(client, seed["court"].id, ["10:00"], user_id="blocked")
    assert rules(resp) == ["wallet_blocked"]


@pytest.mark.asyncio
async def test_negative_balance(client, seed):
    court_id = seed["court"].id
    # Four evening slots at 150 = 600 against a balance of 500
    slots = ["18:00", "19:00", "20:00", "21:00"]

    resp = await book(client, court_id, slots)
    assert resp.status_code == 422
    assert rules(resp) == ["insufficient_balance"]

    resp = await book(client, court_id, slots, allow_negative_balance=True)
    assert resp.status_code == 201
    assert resp.json()["negative_balance_used"] == pytest.approx(100)

    resp = await client.get(f"{BASE}/wallets/u1")
    assert resp.json()["balance"] == pytest.approx(-100)


@pytest.mark.asyncio
async def test_coupon_applied_once_per_user(client, seed):
    court_id = seed["court"].id
    resp = await book(client, court_id, ["14:00"], coupon_code="SUMMER10")
    assert resp.status_code == 201
    body = resp.json()
    assert body["coupon_applied"] is True
    assert body["coupon_code"] == "SUMMER10"
    assert body["coupon_discount_amount"] == pytest.approx(10)
    assert body["amount_paid"] == pytest.approx(90)

    resp = await book(client, court_id, ["15:00"], coupon_code="SUMMER10")
    assert resp.status_code == 422
    assert rules(resp) == ["coupon_already_used"]

    async with async_session_factory() as db:
        coupon = (await db.execute(select(Coupon))).scalar_one()
        assert coupon.current_uses == 1
        assert coupon.used_by_user_ids == ["u1"]


@pytest.mark.asyncio
async def test_cancel_reservation(client, seed):
    court_id = seed["court"].id
    resp = await book(client, court_id, ["10:00", "11:00"])
    reservation_id = resp.json()["id"]

    resp = await client.delete(f"{BASE}/reservations/{reservation_id}")
    assert resp.status_code == 204

    resp = await client.get(f"{BASE}/wallets/u1")
    assert resp.json()["balance"] == pytest.approx(500)

    resp = await client.get(f"{BASE}/courts/{court_id}/slots?date={BOOKING_DAY}")
    by_time = {s["slot"]["time"]: s["slot"] for s in resp.json()["slots"]}
    assert by_time["10:00"]["status"] == "available"
    assert by_time["10:00"]["cancelled_reservation"]["status"] == "cancelled"
    assert resp.json()["occupancy"]["reserved_count"] == 0

    # The slots can be booked again
    resp = await book(client, court_id, ["10:00"])
    assert resp.status_code == 201

    # Cancelling twice is refused
    resp = await client.delete(f"{BASE}/reservations/{reservation_id}")
    assert resp.status_code == 422
    assert rules(resp) == ["not_cancellable"]


@pytest.mark.asyncio
async def test_cancel_started_reservation(client, seed, now):
    async with async_session_factory() as db:
        started = Reservation(
            club_id=seed["club"].id,
            court_id=seed["court"].id,
            user_id="u1",
            reservation_date=now.date(),
            start_time="11:00",
            end_time="12:00",
            duration_minutes=60,
            slots=["11:00"],
            amount_paid=100,
        )
        db.add(started)
        await db.commit()
        reservation_id = started.id

    resp = await client.delete(f"{BASE}/reservations/{reservation_id}")
    assert resp.status_code == 422
    assert rules(resp) == ["cancellation_too_late"]


@pytest.mark.asyncio
async def test_cancel_unknown_reservation(client, seed):
    resp = await client.delete(f"{BASE}/reservations/9999")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_wallet_balance(client, seed):
    resp = await client.get(f"{BASE}/wallets/u1")
    assert resp.status_code == 200
    assert resp.json()["balance"] == 500
    assert resp.json()["currency"] == "TRY"

    resp = await client.get(f"{BASE}/wallets/nobody")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_affordability(client, seed):
    resp = await client.get(f"{BASE}/wallets/u1/affordability?total=550")
    assert resp.json()["result"]["can_afford"] is False
    assert resp.json()["result"]["remaining_balance"] == -50

    resp = await client.get(f"{BASE}/wallets/u1/affordability?total=550&allow_negative=true")
    result = resp.json()["result"]
    assert result["can_afford"] is True
    assert result["use_negative_balance"] is True
    assert result["negative_balance_amount"] == 50


@pytest.mark.asyncio
async def test_top_up_creates_wallet(client, seed):
    resp = await client.post(f"{BASE}/wallets/newbie/top-ups", json={"amount": 250})
    assert resp.status_code == 200
    assert resp.json()["balance"] == 250

    resp = await client.post(f"{BASE}/wallets/newbie/top-ups", json={"amount": 50, "description": "Cash"})
    assert resp.json()["balance"] == 300

    resp = await client.post(f"{BASE}/wallets/newbie/top-ups", json={"amount": 0})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Statistics and integrations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stats(client, seed):
    court_id = seed["court"].id
    await book(client, court_id, ["08:00"])
    joint = await book(client, court_id, ["12:00"], is_training=True, joint_payment=True, joint_amount=50)
    assert joint.json()["joint_payment"] is True
    resp = await book(client, court_id, ["14:00"])
    await client.delete(f"{BASE}/reservations/{resp.json()['id']}")

    resp = await client.get(f"{BASE}/stats?month=2026-06")
    assert resp.status_code == 200
    stats = resp.json()
    assert stats["total"] == 3
    assert stats["active"] == 2
    assert stats["cancelled"] == 1
    assert stats["total_revenue"] == pytest.approx(180)
    assert stats["total_discount"] == pytest.approx(20)
    assert stats["discount_used"] == 1
    assert stats["by_kind"]["training"]["count"] == 1
    assert stats["joint_payments"] == 1
    assert stats["joint_payment_amount"] == pytest.approx(50)
    assert stats["revenue_by_court"][0]["court_name"] == "Court 1"
    assert len(stats["revenue_by_court"]) == 3

    resp = await client.get(f"{BASE}/stats?month=2026-07")
    assert resp.json()["total"] == 0

    resp = await client.get(f"{BASE}/stats")
    assert resp.json()["total"] == 3


@pytest.mark.asyncio
async def test_stats_bad_month(client, seed):
    resp = await client.get(f"{BASE}/stats?month=June")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_integrations(client, seed):
    resp = await client.get(f"{BASE}/integrations")
    assert resp.status_code == 200
    body = resp.json()
    assert body["providers"] == ["openweather"]
    assert body["last_fetched_at"] is not None

    # A key added while the cache is fresh is not seen yet
    async with async_session_factory() as db:
        db.add(ApiKey(club_id=seed["club"].id, name="AI", provider="ai", key="ai-key"))
        await db.commit()

    resp = await client.get(f"{BASE}/integrations")
    assert resp.json()["providers"] == ["openweather"]
