"""
filter_compiler.py — FilterSet → parameterised SQL predicate.

Both the clusters query and the region drill-down (items + count) run the
same WHERE logic. Each of them compiles its own fragment because the
surrounding statements bind different leading parameters ($1..$4 for the
bbox, then limit/offset/boost threshold in the page query). The compiler
therefore takes the first free placeholder index and reports the next one.

Contract
────────
  compiled = compile_filters(filters, start_index=5, now=now)
  compiled.sql         "cond AND cond ..."  (or "TRUE")
  compiled.params      values for $5, $6, ... in order
  compiled.next_index  5 + len(compiled.params)

Placeholders are consumed contiguously: never skipped, never reused across
predicates.

Base visibility
───────────────
Canceled and deleted intents are hidden unless the status filter asks for
exactly those. That rule lives here, in the compiled fragment, so callers
don't duplicate the condition around it.

The compiler does not validate enum values; FilterSet (pydantic) did.

TESTING
────────
    pytest tests/test_filter_compiler.py -v
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from intentmap.models.map import FilterSet, IntentStatus

_HIDE_CANCELED = 'i."canceledAt" IS NULL'
_HIDE_DELETED = 'i."deletedAt" IS NULL'

_VERIFIED_OWNER = (
    'EXISTS (SELECT 1 FROM users u WHERE u.id = i."ownerId" AND u."verifiedAt" IS NOT NULL)'
)


@dataclass
class CompiledFilter:
    conditions: list[str] = field(default_factory=list)
    params: list[Any] = field(default_factory=list)
    next_index: int = 1

    @property
    def sql(self) -> str:
        return " AND ".join(self.conditions) if self.conditions else "TRUE"


class _Builder:
    """Hands out $n placeholders in order while collecting their values."""

    def __init__(self, start_index: int):
        self.conditions: list[str] = []
        self.params: list[Any] = []
        self.index = start_index

    def bind(self, value: Any) -> str:
        placeholder = f"${self.index}"
        self.params.append(value)
        self.index += 1
        return placeholder

    def add(self, condition: str) -> None:
        self.conditions.append(condition)

    def build(self) -> CompiledFilter:
        return CompiledFilter(conditions=self.conditions, params=self.params, next_index=self.index)


def compile_filters(
    filters: Optional[FilterSet],
    start_index: int,
    now: datetime,
) -> CompiledFilter:
    """Compile `filters` into a fragment whose placeholders start at `start_index`."""
    f = filters or FilterSet()
    b = _Builder(start_index)
    status = f.status

    # ── Base visibility + status ────────────────────────────────────────────
    if status == IntentStatus.CANCELED:
        b.add('i."canceledAt" IS NOT NULL')
    elif status == IntentStatus.DELETED:
        b.add('i."deletedAt" IS NOT NULL')
    else:
        b.add(_HIDE_CANCELED)
        b.add(_HIDE_DELETED)

    if status == IntentStatus.UPCOMING:
        b.add(f'i."startAt" > {b.bind(now)}::timestamptz')
    elif status == IntentStatus.ONGOING:
        p = b.bind(now)
        b.add(f'i."startAt" <= {p}::timestamptz AND i."endAt" > {p}::timestamptz')
    elif status == IntentStatus.PAST:
        b.add(f'i."endAt" < {b.bind(now)}::timestamptz')

    # ── Explicit date range (only without a time status) ────────────────────
    if status is None or status == IntentStatus.ANY:
        if f.start_iso is not None:
            b.add(f'i."startAt" >= {b.bind(f.start_iso)}::timestamptz')
        if f.end_iso is not None:
            b.add(f'i."endAt" <= {b.bind(f.end_iso)}::timestamptz')

    # ── Owner verification ──────────────────────────────────────────────────
    if f.verified_only:
        b.add(_VERIFIED_OWNER)

    # ── Category / tag membership (any slug matches) ────────────────────────
    if f.category_slugs:
        b.add(
            'EXISTS (SELECT 1 FROM "_CategoryToIntent" ci '
            'JOIN categories c ON c.id = ci."A" '
            f'WHERE ci."B" = i.id AND c.slug = ANY({b.bind(list(f.category_slugs))}::text[]))'
        )
    if f.tag_slugs:
        b.add(
            'EXISTS (SELECT 1 FROM "_IntentToTag" it '
            'JOIN tags t ON t.id = it."B" '
            f'WHERE it."A" = i.id AND t.slug = ANY({b.bind(list(f.tag_slugs))}::text[]))'
        )

    # ── Enum columns ────────────────────────────────────────────────────────
    if f.levels:
        b.add(f'i.levels && {b.bind([lv.value for lv in f.levels])}::"Level"[]')
    if f.kinds:
        b.add(f'i."meetingKind" = ANY({b.bind([k.value for k in f.kinds])}::"MeetingKind"[])')
    if f.join_modes:
        b.add(f'i."joinMode" = ANY({b.bind([m.value for m in f.join_modes])}::"JoinMode"[])')

    return b.build()
