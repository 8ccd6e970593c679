"""Configuration helpers for the era-based unbonding queue simulator."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

from dotenv import load_dotenv

from . import queue_constants as const

load_dotenv()

LOGGER = logging.getLogger(__name__)

OUT_DIR = Path("out")

BONDING_DURATION_ENV = "UNBONDING_BONDING_DURATION"
MIN_UNBONDING_ERAS_ENV = "UNBONDING_MIN_UNBONDING_ERAS"
MIN_SLASHABLE_SHARE_ENV = "UNBONDING_MIN_SLASHABLE_SHARE"
ERAS_PER_DAY_ENV = "UNBONDING_ERAS_PER_DAY"
TOTAL_STAKE_ENV = "UNBONDING_TOTAL_STAKE"
LOWEST_THIRD_RATIO_ENV = "UNBONDING_LOWEST_THIRD_RATIO"

T = TypeVar("T", int, float)


@dataclass(frozen=True)
class NetworkParameters:
    """Immutable network settings shared by every component of a session.

    Attributes:
        bonding_duration: Window length in eras
        min_unbonding_eras: Mandatory wait before any withdrawal
        min_slashable_share: Fraction of lowest-third stake that must stay locked
        eras_per_day: Display-only conversion factor (eras -> days)
    """

    bonding_duration: int = const.DEFAULT_BONDING_DURATION
    min_unbonding_eras: int = const.DEFAULT_MIN_UNBONDING_ERAS
    min_slashable_share: float = const.DEFAULT_MIN_SLASHABLE_SHARE
    eras_per_day: float = const.DEFAULT_ERAS_PER_DAY

    def __post_init__(self) -> None:
        if self.bonding_duration < 1:
            raise ValueError(f"bonding_duration must be >= 1, got {self.bonding_duration}")
        if self.min_unbonding_eras < 0:
            raise ValueError(
                f"min_unbonding_eras must be non-negative, got {self.min_unbonding_eras}"
            )
        if self.min_unbonding_eras > self.bonding_duration:
            raise ValueError(
                "min_unbonding_eras must be <= bonding_duration, "
                f"got {self.min_unbonding_eras} > {self.bonding_duration}"
            )
        if not 0 < self.min_slashable_share < 1:
            raise ValueError(
                f"min_slashable_share must be in (0, 1), got {self.min_slashable_share}"
            )
        if not self.eras_per_day > 0:
            raise ValueError(f"eras_per_day must be positive, got {self.eras_per_day}")

    @property
    def max_unlock_fraction(self) -> float:
        """Fraction of an era's lowest-third stake that may unlock."""
        return 1 - self.min_slashable_share

    def window_floor(self, current_era: int) -> int:
        """Oldest era index tracked when ``current_era`` is the newest."""
        return current_era - (self.bonding_duration - 1)


@dataclass(frozen=True)
class StakeInputs:
    """Exogenous stake estimate used to seed every era's lowest-third stake."""

    total_stake_estimate: float = const.DEFAULT_TOTAL_STAKE_ESTIMATE
    lowest_third_ratio: float = const.DEFAULT_LOWEST_THIRD_RATIO

    def __post_init__(self) -> None:
        if not self.total_stake_estimate >= 0:
            raise ValueError(
                f"total_stake_estimate must be non-negative, got {self.total_stake_estimate}"
            )
        if not const.MIN_LOWEST_THIRD_RATIO <= self.lowest_third_ratio <= const.MAX_LOWEST_THIRD_RATIO:
            raise ValueError(
                f"lowest_third_ratio must be in [{const.MIN_LOWEST_THIRD_RATIO}, "
                f"{const.MAX_LOWEST_THIRD_RATIO}], got {self.lowest_third_ratio}"
            )

    @property
    def lowest_third_stake(self) -> float:
        return self.lowest_third_ratio * self.total_stake_estimate


def _env_number(name: str, cast: Callable[[str], T], default: T) -> T:
    env_value = os.getenv(name)
    if env_value:
        try:
            return cast(env_value)
        except ValueError:
            LOGGER.warning("Ignoring invalid %s=%r; using default %s", name, env_value, default)
    return default


def load_network_parameters() -> NetworkParameters:
    """Build NetworkParameters from environment overrides (and a local .env)."""
    return NetworkParameters(
        bonding_duration=_env_number(BONDING_DURATION_ENV, int, const.DEFAULT_BONDING_DURATION),
        min_unbonding_eras=_env_number(
            MIN_UNBONDING_ERAS_ENV, int, const.DEFAULT_MIN_UNBONDING_ERAS
        ),
        min_slashable_share=_env_number(
            MIN_SLASHABLE_SHARE_ENV, float, const.DEFAULT_MIN_SLASHABLE_SHARE
        ),
        eras_per_day=_env_number(ERAS_PER_DAY_ENV, float, const.DEFAULT_ERAS_PER_DAY),
    )


def load_stake_inputs() -> StakeInputs:
    """Build StakeInputs from environment overrides (and a local .env)."""
    return StakeInputs(
        total_stake_estimate=_env_number(
            TOTAL_STAKE_ENV, float, float(const.DEFAULT_TOTAL_STAKE_ESTIMATE)
        ),
        lowest_third_ratio=_env_number(
            LOWEST_THIRD_RATIO_ENV, float, const.DEFAULT_LOWEST_THIRD_RATIO
        ),
    )
