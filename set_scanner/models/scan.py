"""
Scan parameters: the caller-supplied knobs of one scan cycle.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from set_scanner.config import ScanConfig

RiskLevel = Literal["low", "medium", "high"]


class ScanParams(BaseModel):
    """Filters applied to one scan cycle.

    Attributes:
        scan_date: Informational only.
        market: Universe identifier (``"SET"``, ``"SET100"``, ``"mai"``).
        budget: Account size in baht; used by position sizing only.
        risk_level: ``"low"`` keeps low-volatility names only, ``"medium"``
            drops high-volatility names, ``"high"`` keeps everything.
        min_volume: Minimum traded value (volume × price, baht).
        min_dividend_yield: Minimum dividend yield (percent).
        sniper_mode: Use the stricter four-gate signal filter.
    """

    model_config = ConfigDict(frozen=True)

    scan_date: Optional[date] = None
    market: str = "SET100"
    budget: float = Field(default=100_000.0, ge=0.0)
    risk_level: RiskLevel = "medium"
    min_volume: float = Field(default=0.0, ge=0.0)
    min_dividend_yield: float = Field(default=0.0, ge=0.0)
    sniper_mode: bool = False

    @classmethod
    def from_config(cls, scan: "ScanConfig", **overrides) -> "ScanParams":
        """Build params from the ``[scan]`` config section plus non-None overrides."""
        values = {
            "market": scan.market,
            "budget": scan.budget,
            "risk_level": scan.risk_level,
            "min_volume": scan.min_volume,
            "min_dividend_yield": scan.min_dividend_yield,
            "sniper_mode": scan.sniper_mode,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
