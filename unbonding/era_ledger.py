"""Sliding window of per-era stake statistics.

The ledger tracks exactly ``bonding_duration`` contiguous eras ending at the
current era. Each era stores the exogenous lowest-third stake and the total
principal whose unbonding started in that era. Thresholds are derived on
read, never stored.

Lookups for eras outside the window follow one explicit policy: an absent era
counts as zero stake and zero unbonding ("nothing happened").
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterator

import pandas as pd

from .config import NetworkParameters
from .errors import InvalidAdvanceError, InvalidAmountError, OutOfWindowError

LOGGER = logging.getLogger(__name__)

WINDOW_COLUMNS = [
    "era",
    "lowest_third_stake",
    "total_unbond_in_era",
    "threshold",
    "utilization_pct",
    "is_current",
]


@dataclass(frozen=True)
class EraRecord:
    era: int
    lowest_third_stake: float
    total_unbond_in_era: float = 0


class EraLedger:
    """Ordered era -> EraRecord mapping covering the active window."""

    def __init__(
        self,
        params: NetworkParameters,
        current_era: int,
        default_lowest_third: float,
    ) -> None:
        if default_lowest_third < 0:
            raise ValueError(
                f"lowest_third_stake must be non-negative, got {default_lowest_third}"
            )
        self._params = params
        self._current_era = current_era
        self._records: dict[int, EraRecord] = {
            era: EraRecord(era=era, lowest_third_stake=default_lowest_third)
            for era in range(params.window_floor(current_era), current_era + 1)
        }

    @property
    def params(self) -> NetworkParameters:
        return self._params

    @property
    def current_era(self) -> int:
        return self._current_era

    @property
    def floor_era(self) -> int:
        return self._params.window_floor(self._current_era)

    def __contains__(self, era: object) -> bool:
        return era in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EraRecord]:
        return iter(self.records())

    @property
    def eras(self) -> list[int]:
        return sorted(self._records)

    def records(self) -> tuple[EraRecord, ...]:
        """Snapshot of the window, oldest era first."""
        return tuple(self._records[era] for era in sorted(self._records))

    def record(self, era: int) -> EraRecord | None:
        return self._records.get(era)

    def total_unbond_in(self, era: int) -> float:
        record = self._records.get(era)
        return record.total_unbond_in_era if record is not None else 0

    def lowest_third_in(self, era: int) -> float:
        record = self._records.get(era)
        return record.lowest_third_stake if record is not None else 0

    def threshold_for(self, era: int) -> float:
        """Maximum unbonding the era's lowest-third stake can absorb (0 if untracked)."""
        return self._params.max_unlock_fraction * self.lowest_third_in(era)

    def record_unbond(self, era: int, delta: float) -> float:
        """Add ``delta`` (possibly negative) to the era's unbonding total, floored at 0."""
        if not math.isfinite(delta):
            raise InvalidAmountError(f"Unbonding delta must be finite, got {delta}")
        record = self._records.get(era)
        if record is None:
            raise OutOfWindowError(
                f"Era {era} is outside the tracked window [{self.floor_era}, {self._current_era}]"
            )
        updated = max(0, record.total_unbond_in_era + delta)
        self._records[era] = replace(record, total_unbond_in_era=updated)
        LOGGER.debug("Era %s unbonding total %s -> %s", era, record.total_unbond_in_era, updated)
        return updated

    def set_lowest_third(self, era: int, value: float) -> None:
        """Overwrite the exogenous lowest-third stake of one tracked era."""
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"lowest_third_stake must be finite and non-negative, got {value}")
        record = self._records.get(era)
        if record is None:
            raise OutOfWindowError(
                f"Era {era} is outside the tracked window [{self.floor_era}, {self._current_era}]"
            )
        self._records[era] = replace(record, lowest_third_stake=value)

    def set_lowest_third_all(self, value: float) -> None:
        """Apply one lowest-third stake to every era in the window."""
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"lowest_third_stake must be finite and non-negative, got {value}")
        for era in self.eras:
            self.set_lowest_third(era, value)

    def reconfigure(self, params: NetworkParameters, default_lowest_third: float) -> list[int]:
        """Swap parameters, re-windowing to the new bonding duration if it changed."""
        self._params = params
        return self.shift_to(self._current_era, default_lowest_third)

    def shift_to(self, new_current: int, default_lowest_third: float) -> list[int]:
        """Re-window to end at ``new_current``, returning the evicted era indices.

        Records for eras still inside the new window are kept as they are;
        eras entering it are seeded with ``default_lowest_third``.
        """
        floor = self._params.window_floor(new_current)
        evicted = [era for era in sorted(self._records) if era < floor or era > new_current]
        self._records = {
            era: self._records.get(era)
            or EraRecord(era=era, lowest_third_stake=default_lowest_third)
            for era in range(floor, new_current + 1)
        }
        self._current_era = new_current
        return evicted

    def to_frame(self) -> pd.DataFrame:
        """Tabular view of the window, newest era first."""
        rows = []
        for record in reversed(self.records()):
            threshold = self.threshold_for(record.era)
            rows.append(
                {
                    "era": record.era,
                    "lowest_third_stake": record.lowest_third_stake,
                    "total_unbond_in_era": record.total_unbond_in_era,
                    "threshold": threshold,
                    "utilization_pct": (
                        record.total_unbond_in_era / threshold * 100 if threshold else None
                    ),
                    "is_current": record.era == self._current_era,
                }
            )
        return pd.DataFrame(rows, columns=WINDOW_COLUMNS)


def advance_window(ledger: EraLedger, by_n_eras: int, default_lowest_third: float) -> list[int]:
    """Shift the window forward, returning the evicted era indices.

    Eras still inside the new window keep their records unchanged; eras that
    enter it are seeded with zero unbonding and ``default_lowest_third``.
    """
    if by_n_eras <= 0:
        raise InvalidAdvanceError(f"Eras to advance must be positive, got {by_n_eras}")
    if default_lowest_third < 0:
        raise ValueError(
            f"lowest_third_stake must be non-negative, got {default_lowest_third}"
        )
    new_current = ledger.current_era + by_n_eras
    evicted = ledger.shift_to(new_current, default_lowest_third)
    LOGGER.debug(
        "Advanced window by %s eras to era %s (evicted %s eras)",
        by_n_eras,
        new_current,
        len(evicted),
    )
    return evicted
