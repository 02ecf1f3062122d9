from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Optional


@dataclass(frozen=True)
class Investments:
    """Ad spend typed in by the user.

    ``manual`` feeds the headline KPIs; ``by_cluster`` is keyed by cluster key.
    A cluster without an entry is pending, which is not the same as an
    explicit 0. Clearing filters never resets this state.
    """

    manual: float = 0.0
    by_cluster: Dict[str, float] = field(default_factory=dict)

    def for_cluster(self, key: str) -> Optional[float]:
        return self.by_cluster.get(key)


def _as_amount(value: object) -> float:
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if out != out or out in (float("inf"), float("-inf")):
        return 0.0
    return out


def set_manual_investment(investments: Investments, amount: object) -> Investments:
    return replace(investments, manual=_as_amount(amount))


def set_cluster_investment(investments: Investments, key: str, amount: object) -> Investments:
    by_cluster = dict(investments.by_cluster)
    if amount is None or amount == "":
        by_cluster.pop(key, None)
    else:
        by_cluster[key] = _as_amount(amount)
    return replace(investments, by_cluster=by_cluster)


def normalize_investments(raw: Optional[dict]) -> Investments:
    raw = raw or {}
    by_cluster = {str(k): _as_amount(v) for k, v in (raw.get("by_cluster") or {}).items() if v is not None}
    return Investments(manual=_as_amount(raw.get("manual", 0.0)), by_cluster=by_cluster)
