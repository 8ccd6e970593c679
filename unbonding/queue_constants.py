"""Unbonding Queue Protocol and Economic Constants.

This module centralizes the reference values used across the unbonding queue
simulator. Each constant includes documentation of its source and rationale.
"""

from __future__ import annotations

# =============================================================================
# Protocol Constants
# =============================================================================

# Length of the tracked era window, and the legacy fixed unbonding period
# Source: Polkadot staking pallet (BondingDuration = 28 eras)
DEFAULT_BONDING_DURATION = 28

# Mandatory wait before any withdrawal, in eras
# Source: unbonding queue proposal lower bound (2 days at 1 era/day)
DEFAULT_MIN_UNBONDING_ERAS = 2

# Fraction of lowest-third stake that must remain slashable
# Source: unbonding queue proposal (MIN_SLASHABLE_SHARE = 0.5)
# Note: (1 - share) of the lowest-third stake may unlock per era
DEFAULT_MIN_SLASHABLE_SHARE = 0.5

# Eras per calendar day, used only when converting eras to days for display
# Source: ~1 era per day on Polkadot, ~4 eras per day on Kusama
DEFAULT_ERAS_PER_DAY = 1.0


# =============================================================================
# Economic Assumptions
# =============================================================================

# Default total stake estimate (native units)
# Source: Conservative estimate of staked DOT
DEFAULT_TOTAL_STAKE_ESTIMATE = 800_000_000

# Share of total stake backing the lowest third of the active validator set
# Source: Empirical value quoted in the unbonding queue proposal
DEFAULT_LOWEST_THIRD_RATIO = 0.287

# Resulting per-era lowest-third stake (800M * 0.287)
DEFAULT_LOWEST_THIRD_STAKE = 229_600_000


# =============================================================================
# Session Defaults
# =============================================================================

# Era the simulation starts at: the newest era of a freshly seeded window
SESSION_START_ERA = DEFAULT_BONDING_DURATION - 1


# =============================================================================
# Data Validation Bounds
# =============================================================================

# Lowest-third ratio bounds (fraction of total stake)
MIN_LOWEST_THIRD_RATIO = 0.0
MAX_LOWEST_THIRD_RATIO = 1.0
