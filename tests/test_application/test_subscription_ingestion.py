"""Tests for subscription ingestion, import/export and the SQL store"""
from datetime import date, datetime, timezone

import pytest

from subtrack.application.subscriptions import (
    DEFAULT_COLOR, DeleteSubscriptionUseCase, ReplaceSubscriptionsUseCase,
    SubscriptionValidationError, UpsertSubscriptionUseCase, build_export_payload,
    get_subscription, load_subscription_snapshot, normalize_imported_subscription,
    normalize_subscription_input, parse_import_payload,
)
from subtrack.domain.date_index import day_number_to_iso, parse_iso_date
from subtrack.infrastructure.db.models import SubscriptionModel

_NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _input(**overrides):
    data = dict(
        name="  Netflix ", price="15,99", currency="usd", cycle="Monthly",
        start_date="2025-01-31", end_date=None, now=_NOW,
    )
    data.update(overrides)
    return normalize_subscription_input(**data)


class TestNormalizeInput:
    def test_normalizes_fields(self):
        sub = _input()
        assert sub.name == "Netflix"
        assert sub.price == pytest.approx(15.99)
        assert sub.currency == "USD"
        assert sub.cycle == "monthly"
        assert day_number_to_iso(sub.start_day) == "2025-01-31"
        assert sub.end_day is None
        assert sub.color == DEFAULT_COLOR
        assert sub.created_at == _NOW
        assert sub.id

    def test_generated_ids_are_unique(self):
        assert _input().id != _input().id

    def test_accepts_date_objects(self):
        sub = _input(start_date=date(2025, 2, 1), end_date=date(2025, 5, 1))
        assert day_number_to_iso(sub.end_day) == "2025-05-01"

    def test_edit_keeps_identity(self):
        original = _input(color="#ff0000")
        edited = _input(name="Netflix 4K", existing=original, now=datetime(2026, 1, 1, tzinfo=timezone.utc))
        assert edited.id == original.id
        assert edited.created_at == _NOW
        assert edited.color == "#ff0000"

    @pytest.mark.parametrize("overrides,message", [
        ({"name": "   "}, "Name"),
        ({"price": ""}, "Price"),
        ({"price": "abc"}, "number"),
        ({"price": "-1"}, ">= 0"),
        ({"price": "inf"}, ">= 0"),
        ({"currency": ""}, "Currency"),
        ({"currency": "US"}, "3-letter"),
        ({"currency": "U$D"}, "3-letter"),
        ({"cycle": "daily"}, "cycle"),
        ({"cycle": ""}, "Cycle"),
        ({"start_date": "2025-02-30"}, "Start date"),
        ({"start_date": "2019-01-01"}, "within"),
        ({"end_date": "2025-13-01"}, "End date"),
        ({"end_date": "2031-01-01"}, "within"),
        ({"end_date": "2025-01-30"}, "before"),
    ])
    def test_rejects(self, overrides, message):
        with pytest.raises(SubscriptionValidationError, match=message):
            _input(**overrides)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            _input(name="")

    def test_zero_price_allowed(self):
        assert _input(price=0).price == 0.0


class TestImport:
    def test_payload_shapes(self):
        record = {"id": "a", "name": "A", "price": 1, "currency": "eur", "cycle": "weekly", "startDate": "2025-01-01"}
        for payload in ([record], {"subscriptions": [record]}, {"data": {"subscriptions": [record]}}):
            subs = parse_import_payload(payload, now=_NOW)
            assert [s.id for s in subs] == ["a"]
            assert subs[0].currency == "EUR"

    def test_unknown_shape(self):
        with pytest.raises(SubscriptionValidationError):
            parse_import_payload({"items": []})

    def test_nothing_valid(self):
        with pytest.raises(SubscriptionValidationError):
            parse_import_payload([{"name": ""}, "junk"])

    def test_invalid_records_dropped(self):
        payload = [
            {"id": "ok", "name": "Ok", "startDate": "2025-01-01"},
            {"id": "no-start", "name": "No start"},
            {"id": "bad-end", "name": "Bad end", "startDate": "2025-02-01", "endDate": "2025-01-01"},
            {"id": "ok", "name": "Duplicate", "startDate": "2025-01-01"},
        ]
        subs = parse_import_payload(payload, now=_NOW)
        assert [s.name for s in subs] == ["Ok"]

    def test_lenient_defaults(self):
        sub = normalize_imported_subscription(
            {"name": "X", "start_date": "2025-01-01", "price": "oops", "currency": "??", "cycle": "daily"},
            now=_NOW,
        )
        assert sub.price == 0.0
        assert sub.currency == "USD"
        assert sub.cycle == "monthly"
        assert sub.id
        assert sub.created_at == _NOW

    def test_created_at_parsed(self):
        sub = normalize_imported_subscription(
            {"name": "X", "startDate": "2025-01-01", "createdAt": "2025-01-02T03:04:05Z"},
        )
        assert sub.created_at == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_export_then_import_keeps_records(self):
        subs = [_input(end_date="2025-06-30", link="https://example.com")]
        payload = build_export_payload(subs, now=_NOW)
        assert payload["version"] == 1
        assert payload["exported_at"] == _NOW.isoformat()
        record = payload["subscriptions"][0]
        assert record["startDate"] == "2025-01-31"
        assert record["endDate"] == "2025-06-30"
        assert parse_import_payload(payload) == subs


class TestStore:
    def test_upsert_and_snapshot_order(self, db_session):
        first = _input(name="First")
        second = _input(name="Second")
        UpsertSubscriptionUseCase(db_session).execute(first)
        UpsertSubscriptionUseCase(db_session).execute(second)

        snapshot = load_subscription_snapshot(db_session)
        assert [s.name for s in snapshot] == ["First", "Second"]
        assert snapshot[0].start_day == parse_iso_date("2025-01-31")

    def test_upsert_updates_in_place(self, db_session):
        sub = _input()
        UpsertSubscriptionUseCase(db_session).execute(sub)
        UpsertSubscriptionUseCase(db_session).execute(_input(name="Renamed", existing=sub, price="20"))

        assert db_session.query(SubscriptionModel).count() == 1
        stored = get_subscription(db_session, sub.id)
        assert stored.name == "Renamed"
        assert stored.price == 20.0

    def test_delete(self, db_session):
        sub = _input()
        UpsertSubscriptionUseCase(db_session).execute(sub)
        DeleteSubscriptionUseCase(db_session).execute(sub.id)
        assert load_subscription_snapshot(db_session) == []

    def test_delete_missing(self, db_session):
        with pytest.raises(SubscriptionValidationError, match="not found"):
            DeleteSubscriptionUseCase(db_session).execute("missing")

    def test_replace(self, db_session):
        UpsertSubscriptionUseCase(db_session).execute(_input(name="Old"))
        new = [_input(name="B"), _input(name="A", end_date="2025-12-31")]
        assert ReplaceSubscriptionsUseCase(db_session).execute(new) == 2

        snapshot = load_subscription_snapshot(db_session)
        assert [s.name for s in snapshot] == ["B", "A"]
        assert day_number_to_iso(snapshot[1].end_day) == "2025-12-31"
