"""
Dynamic partial updates driven by explicit field-to-column tables.

A partial record only carries the fields a caller explicitly supplied; a
supplied ``None`` is a value to write, an omitted field is left untouched.
Field names are the JSON names used on the wire and are translated through
a fixed :class:`FieldMap`, never by case conversion.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Optional, TypeVar

from sqlalchemy import update
from sqlalchemy.orm import Session

from heirloom.db import utcnow
from heirloom.errors import ValidationError

T = TypeVar("T")

IMMUTABLE_FIELDS = frozenset({"id", "userId", "user_id", "createdAt", "updatedAt"})


@dataclass(frozen=True)
class FieldMap:
    """Total mapping from updatable field name to column attribute of ``row``."""

    row: type
    columns: Mapping[str, str]
    immutable: frozenset = field(default=IMMUTABLE_FIELDS)

    def __post_init__(self):
        table_columns = set(self.row.__table__.columns.keys())
        missing = sorted(c for c in self.columns.values() if c not in table_columns)
        if missing:
            raise RuntimeError(
                f"{self.row.__name__} field map targets unknown columns: {missing}"
            )
        protected = sorted(f for f in self.columns if f in self.immutable)
        if protected:
            raise RuntimeError(
                f"{self.row.__name__} field map exposes immutable fields: {protected}"
            )
        if len(set(self.columns.values())) != len(self.columns):
            raise RuntimeError(f"{self.row.__name__} field map has colliding columns")

    @property
    def fields(self) -> frozenset:
        return frozenset(self.columns)


@dataclass
class UpdateOutcome(Generic[T]):
    """Result of a partial update; ``changed`` is False for an empty partial."""

    record: T
    changed: bool = True


def build_changes(partial: Mapping[str, Any], field_map: FieldMap) -> dict[str, Any]:
    """Translate a partial record into ``{column: value}``; empty means no-op."""
    changes: dict[str, Any] = {}
    unknown = []
    for name, value in partial.items():
        if name in field_map.immutable:
            continue
        column = field_map.columns.get(name)
        if column is None:
            unknown.append(name)
            continue
        changes[column] = value
    if unknown:
        raise ValidationError(
            f"Unknown fields: {', '.join(sorted(unknown))}", details=sorted(unknown)
        )
    return changes


def apply_changes(
    session: Session,
    field_map: FieldMap,
    entity_id: int,
    owner_id: str,
    changes: Mapping[str, Any],
) -> Optional[Any]:
    """
    Apply a non-empty change set as one UPDATE keyed by id and owner.

    Returns the refreshed row, or None when the predicate matched nothing
    (wrong id and wrong owner are indistinguishable).
    """
    if not changes:
        raise ValueError("apply_changes requires at least one change")
    row = field_map.row
    values = {getattr(row, column): value for column, value in changes.items()}
    values[row.updated_at] = utcnow()
    result = session.execute(
        update(row)
        .where(row.id == entity_id, row.user_id == owner_id)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        return None
    return session.get(row, entity_id, populate_existing=True)
