"""
tests/test_conflicts.py — Field Normalization & Comparison
===========================================================
Covers the declarative field tables used by every detector:
- JSON text columns compare equal to decoded chain objects
- Deadlines compare as UTC instants regardless of representation
- diff_fields reports exactly the differing columns
- Conflict.to_dict only carries the identifying keys that are set
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta, timezone
from types import SimpleNamespace

from quorum.sync.conflicts import (
    COMMUNITY_FIELDS,
    QUESTION_FIELDS,
    VOTE_FIELDS,
    Conflict,
    ConflictType,
    EntityType,
    FieldSpec,
    diff_fields,
    json_text,
    json_value,
    repaired_values,
    utc_datetime,
)


class TestNormalizers:
    def test_json_value_parses_text(self):
        assert json_value('{"a": 1}') == {"a": 1}
        assert json_value("[1, 2]") == [1, 2]

    def test_json_value_passes_objects_through(self):
        payload = {"a": [1, 2]}
        assert json_value(payload) is payload

    def test_json_value_keeps_unparseable_text(self):
        assert json_value("not json") == "not json"

    def test_json_text_round_trips_objects(self):
        assert json.loads(json_text({"x": True})) == {"x": True}
        assert json.loads(json_text('["a"]')) == ["a"]

    def test_utc_naive_datetime_is_treated_as_utc(self):
        naive = datetime(2026, 1, 1, 10, 0)
        assert utc_datetime(naive) == datetime(2026, 1, 1, 10, 0, tzinfo=UTC)

    def test_utc_converts_offset_datetime(self):
        plus_two = datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        result = utc_datetime(plus_two)
        assert result.tzinfo == UTC
        assert result.hour == 10

    def test_utc_from_unix_seconds(self):
        assert utc_datetime(0) == datetime(1970, 1, 1, tzinfo=UTC)

    def test_utc_from_iso_string_with_z(self):
        assert utc_datetime("2026-01-01T10:00:00Z") == datetime(2026, 1, 1, 10, tzinfo=UTC)

    def test_utc_leaves_garbage_unchanged(self):
        assert utc_datetime("tomorrow") == "tomorrow"
        assert utc_datetime(None) is None


class TestDiffFields:
    def _question_row(self, **overrides):
        values = dict(
            title="Adopt charter?",
            description="Vote on the charter",
            options=json.dumps(["yes", "no"]),
            deadline=datetime(2026, 11, 1, 12, 0),
            status="active",
        )
        values.update(overrides)
        return SimpleNamespace(**values)

    def _question_chain(self, **overrides):
        values = {
            "title": "Adopt charter?",
            "description": "Vote on the charter",
            "options": ["yes", "no"],
            "deadline": "2026-11-01T12:00:00+00:00",
            "status": "active",
        }
        values.update(overrides)
        return values

    def test_identical_question_has_no_diff(self):
        assert diff_fields(QUESTION_FIELDS, self._question_row(), self._question_chain()) == []

    def test_deadline_unix_seconds_matches_stored_datetime(self):
        chain = self._question_chain(
            deadline=int(datetime(2026, 11, 1, 12, 0, tzinfo=UTC).timestamp())
        )
        assert diff_fields(QUESTION_FIELDS, self._question_row(), chain) == []

    def test_reports_only_changed_fields_in_table_order(self):
        chain = self._question_chain(title="Renamed", status="closed")
        assert diff_fields(QUESTION_FIELDS, self._question_row(), chain) == ["title", "status"]

    def test_option_order_matters(self):
        chain = self._question_chain(options=["no", "yes"])
        assert diff_fields(QUESTION_FIELDS, self._question_row(), chain) == ["options"]

    def test_json_key_order_is_ignored(self):
        row = SimpleNamespace(name="A", description=None, config='{"b": 2, "a": 1}')
        chain = {"name": "A", "description": None, "config": {"a": 1, "b": 2}}
        assert diff_fields(COMMUNITY_FIELDS, row, chain) == []

    def test_absent_chain_key_is_not_compared(self):
        row = SimpleNamespace(vote_data='{"choice": "yes"}', signature="sig")
        assert diff_fields(VOTE_FIELDS, row, {"vote_data": {"choice": "yes"}}) == []

    def test_explicit_null_is_compared(self):
        row = SimpleNamespace(vote_data='{"choice": "yes"}', signature="sig")
        chain = {"vote_data": {"choice": "yes"}, "signature": None}
        assert diff_fields(VOTE_FIELDS, row, chain) == ["signature"]

    def test_boolean_and_integer_are_distinct(self):
        row = SimpleNamespace(name="A", description=None, config='{"public": true}')
        chain = {"name": "A", "description": None, "config": {"public": 1}}
        assert diff_fields(COMMUNITY_FIELDS, row, chain) == ["config"]

    def test_custom_field_table(self):
        specs = (FieldSpec("name", normalize=str.lower),)
        row = SimpleNamespace(name="Alpha")
        assert diff_fields(specs, row, {"name": "ALPHA"}) == []


class TestRepairedValues:
    def test_json_fields_are_serialized_for_storage(self):
        values = repaired_values(VOTE_FIELDS, {"vote_data": {"choice": "no"}, "signature": "s2"})
        assert json.loads(values["vote_data"]) == {"choice": "no"}
        assert values["signature"] == "s2"

    def test_deadline_is_stored_as_utc_datetime(self):
        values = repaired_values(QUESTION_FIELDS, {
            "title": "t", "description": None, "options": [], "status": "active",
            "deadline": "2026-12-01T00:00:00Z",
        })
        assert values["deadline"] == datetime(2026, 12, 1, tzinfo=UTC)

    def test_absent_keys_are_left_alone(self):
        values = repaired_values(QUESTION_FIELDS, {"title": "Renamed"})
        assert values == {"title": "Renamed"}


class TestConflictToDict:
    def test_membership_conflict_keys(self):
        conflict = Conflict(
            type=EntityType.MEMBERSHIP,
            entity_id=7,
            conflict_type=ConflictType.DATA_MISMATCH,
            backend_data={"id": 7},
            blockchain_data={"role": "member"},
            community_on_chain_id="comm-1",
            user_address="W1",
            mismatched_fields=["role"],
        )
        assert conflict.to_dict() == {
            "type": "membership",
            "entity_id": 7,
            "conflict_type": "data_mismatch",
            "community_on_chain_id": "comm-1",
            "user_address": "W1",
            "mismatched_fields": ["role"],
        }

    def test_missing_conflict_omits_unset_keys(self):
        conflict = Conflict(
            type=EntityType.USER,
            entity_id=1,
            conflict_type=ConflictType.MISSING_ON_BLOCKCHAIN,
            backend_data={},
            blockchain_data=None,
            wallet_address="W1",
        )
        data = conflict.to_dict()
        assert data["wallet_address"] == "W1"
        assert "on_chain_id" not in data
        assert "mismatched_fields" not in data
