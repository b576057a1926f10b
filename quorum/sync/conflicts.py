"""
quorum.sync.conflicts — Conflict Descriptors & Field Comparison
================================================================

A :class:`Conflict` describes one backend row that disagrees with the chain.
It is created by a detector, consumed once by the resolver, then dropped.

Per-entity comparison is declarative: each entity lists its compared fields
as :class:`FieldSpec` entries.  One routine, :func:`diff_fields`, walks the
table for every entity type.  A field's ``normalize`` is applied to both the
backend value and the chain value, so JSON text columns are parsed before
they are compared with the already-decoded chain objects.  ``store`` turns a
chain value back into the column representation when the resolver repairs
the row.
"""

from __future__ import annotations

import enum
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


class EntityType(enum.StrEnum):
    """Reconciled entity types, in resolution order."""
    COMMUNITY = "community"
    MEMBERSHIP = "membership"
    QUESTION = "question"
    VOTE = "vote"
    USER = "user"


class ConflictType(enum.StrEnum):
    MISSING_ON_BLOCKCHAIN = "missing_on_blockchain"
    DATA_MISMATCH = "data_mismatch"


# ---------------------------------------------------------------------------
# Normalizers
# ---------------------------------------------------------------------------

def identity(value: Any) -> Any:
    return value


def json_value(value: Any) -> Any:
    """Decode JSON text; anything that is not a string passes through."""
    if isinstance(value, (str, bytes)):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def json_text(value: Any) -> str:
    return json.dumps(json_value(value))


def utc_datetime(value: Any) -> Any:
    """Coerce datetimes, ISO-8601 strings and Unix seconds to aware UTC.

    Naive datetimes are taken to already be UTC (SQLite drops tzinfo).
    Values that cannot be interpreted are returned unchanged so they still
    compare unequal to a real timestamp.
    """
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return value
        return utc_datetime(parsed)
    return value


# ---------------------------------------------------------------------------
# Field tables
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One compared column; the chain record uses the same key."""

    column: str
    normalize: Callable[[Any], Any] = identity
    store: Callable[[Any], Any] = identity


COMMUNITY_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("name"),
    FieldSpec("description"),
    FieldSpec("config", normalize=json_value, store=json_text),
)

MEMBERSHIP_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("role"),
    FieldSpec("status"),
)

QUESTION_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("title"),
    FieldSpec("description"),
    FieldSpec("options", normalize=json_value, store=json_text),
    FieldSpec("deadline", normalize=utc_datetime, store=utc_datetime),
    FieldSpec("status"),
)

VOTE_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("vote_data", normalize=json_value, store=json_text),
    FieldSpec("signature"),
)

FIELDS_BY_ENTITY: dict[EntityType, tuple[FieldSpec, ...]] = {
    EntityType.COMMUNITY: COMMUNITY_FIELDS,
    EntityType.MEMBERSHIP: MEMBERSHIP_FIELDS,
    EntityType.QUESTION: QUESTION_FIELDS,
    EntityType.VOTE: VOTE_FIELDS,
}


def _canonical(value: Any) -> str:
    # JSON text keeps true != 1 and ignores key order
    return json.dumps(value, sort_keys=True, default=str)


def diff_fields(
    specs: tuple[FieldSpec, ...],
    row: Any,
    chain_data: Mapping[str, Any],
) -> list[str]:
    """Return the columns of *row* whose normalized value differs from the chain.

    Keys absent from *chain_data* are not compared; a partial chain record
    only speaks for the fields it carries.
    """
    mismatched: list[str] = []
    for spec in specs:
        if spec.column not in chain_data:
            continue
        backend_value = spec.normalize(getattr(row, spec.column, None))
        chain_value = spec.normalize(chain_data[spec.column])
        if _canonical(backend_value) != _canonical(chain_value):
            mismatched.append(spec.column)
    return mismatched


def repaired_values(
    specs: tuple[FieldSpec, ...],
    chain_data: Mapping[str, Any],
) -> dict[str, Any]:
    """Column → stored value for overwriting a row from *chain_data*.

    Only keys present in *chain_data* are written.
    """
    return {
        spec.column: spec.store(chain_data[spec.column])
        for spec in specs
        if spec.column in chain_data
    }


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Conflict:
    """One backend row that disagrees with its on-chain counterpart.

    Only the identifying keys relevant to ``type`` are set:
    communities and questions carry ``on_chain_id``; memberships carry
    ``community_on_chain_id`` + ``user_address``; votes carry
    ``question_on_chain_id`` + ``user_address``; users carry
    ``wallet_address``.
    """

    type: EntityType
    entity_id: int
    conflict_type: ConflictType
    backend_data: dict
    blockchain_data: Mapping[str, Any] | None
    on_chain_id: str | None = None
    community_on_chain_id: str | None = None
    question_on_chain_id: str | None = None
    user_address: str | None = None
    wallet_address: str | None = None
    mismatched_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "entity_id": self.entity_id,
            "conflict_type": self.conflict_type.value,
        }
        for key in (
            "on_chain_id",
            "community_on_chain_id",
            "question_on_chain_id",
            "user_address",
            "wallet_address",
        ):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.mismatched_fields:
            data["mismatched_fields"] = list(self.mismatched_fields)
        return data
