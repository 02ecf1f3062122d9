from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class RoleSpec:
    candidates: Tuple[str, ...]
    index_hint: Optional[int] = None


# Position hints follow the column layout of the checkout platform export.
ROLE_SPECS: Dict[str, RoleSpec] = {
    "date": RoleSpec(("data", "data da venda", "date", "sale date"), 1),
    "product": RoleSpec(("produto", "nome do produto", "product"), 7),
    "revenue": RoleSpec(("valor", "valor da venda", "venda", "revenue", "amount"), 11),
    "campaign": RoleSpec(("utm_campaign", "campanha", "campaign"), 29),
    "term": RoleSpec(("utm_term", "termo", "term"), 30),
}


@dataclass(frozen=True)
class ColumnRoles:
    date: Optional[str] = None
    product: Optional[str] = None
    revenue: Optional[str] = None
    campaign: Optional[str] = None
    term: Optional[str] = None

    def categorical_filter_columns(self) -> List[str]:
        return [c for c in (self.product, self.campaign, self.term) if c]

    def unresolved(self) -> List[str]:
        return [role for role in ROLE_SPECS if getattr(self, role) is None]


def find_header(headers: Sequence[str], candidates: Iterable[str], index_hint: Optional[int] = None) -> Optional[str]:
    """Return the header playing a role, or None when the dataset has no such column.

    Priority: the header at ``index_hint`` (when present and non-empty), then
    the first header equal to a candidate, then the first header containing a
    candidate. Comparisons are case-insensitive and follow header order.
    """
    if index_hint is not None and 0 <= index_hint < len(headers) and headers[index_hint]:
        return headers[index_hint]
    keys = [str(k).lower() for k in candidates]
    for h in headers:
        if str(h).lower() in keys:
            return h
    for h in headers:
        h_low = str(h).lower()
        if any(k in h_low for k in keys):
            return h
    return None


@lru_cache(maxsize=16)
def _resolve_roles_cached(headers: Tuple[str, ...], position_hints: bool) -> ColumnRoles:
    resolved = {
        role: find_header(headers, spec.candidates, spec.index_hint if position_hints else None)
        for role, spec in ROLE_SPECS.items()
    }
    return ColumnRoles(**resolved)


def resolve_roles(headers: Sequence[str], *, position_hints: bool = True) -> ColumnRoles:
    return _resolve_roles_cached(tuple(headers), bool(position_hints))
