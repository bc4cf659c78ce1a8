"""Regional land allocator shared by land-based technologies.

Key Concepts:
- One leaf per (land type, product); forestry leaves look ahead by their rotation
- Calibrated land is used as given and calibrates the leaf's logit share weight
- Remaining land is shared among uncalibrated leaves and unmanaged land in
  proportion to weight * rate ** logit_exponent
- Yields follow the last calibrated observed yield grown by productivity change
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Tuple

from ..config.schema import LandAllocatorConfig
from ..engine.modeltime import Modeltime

logger = logging.getLogger(__name__)

UNMANAGED_LAND = "UnmanagedLand"


@dataclass
class LandLeaf:
    """Land use by one product on one land type."""
    land_type: str
    product: str
    rotation_steps: int = 0
    share_weight: float = 1.0
    cal_land: Dict[int, float] = field(default_factory=dict)
    cal_observed_yield: Dict[int, float] = field(default_factory=dict)
    yields: Dict[int, float] = field(default_factory=dict)
    intrinsic_rate: Dict[int, float] = field(default_factory=dict)
    ag_prod_change: Dict[int, float] = field(default_factory=dict)
    land_allocation: Dict[int, float] = field(default_factory=dict)

    def target_index(self, period: int) -> int:
        """Index of the land a decision in ``period`` allocates."""
        return period + self.rotation_steps


class LandAllocator:
    """Land pool of one region."""

    def __init__(self, region: str, config: LandAllocatorConfig, modeltime: Modeltime):
        """
        Initialize allocator.

        Args:
            region: Region name
            config: Total land, logit exponent and observed rates
            modeltime: Model time
        """
        self.region = region
        self.total_land = config.total_land
        self.logit_exponent = config.logit_exponent
        self.observed_rates = dict(config.observed_rates)
        self.modeltime = modeltime
        self.unmanaged_weight = 1.0
        self.unmanaged_land: Dict[int, float] = {}
        self._leaves: Dict[Tuple[str, str], LandLeaf] = {}

    def add_land_usage(self, land_type: str, product: str, rotation_steps: int = 0) -> LandLeaf:
        """Register a product on a land type; repeated calls return the existing leaf."""
        key = (land_type, product)
        leaf = self._leaves.get(key)
        if leaf is None:
            leaf = LandLeaf(land_type=land_type, product=product, rotation_steps=rotation_steps)
            self._leaves[key] = leaf
            logger.debug("Added land usage %s on %s in %s (rotation steps %d)",
                         product, land_type, self.region, rotation_steps)
        return leaf

    def get_leaf(self, land_type: str, product: str) -> LandLeaf:
        """
        Look up a leaf.

        Raises:
            KeyError: If no land usage was registered for the pair
        """
        try:
            return self._leaves[(land_type, product)]
        except KeyError:
            raise KeyError(f"No land usage for {product} on {land_type} in {self.region}") from None

    # Calibration
    # ------------------------------------------------------------------
    def set_cal_land_allocation(self, land_type: str, product: str, value: float, index: int, period: int):
        """Set calibrated land for ``index``, as known in ``period``."""
        leaf = self.get_leaf(land_type, product)
        leaf.cal_land[index] = value
        leaf.land_allocation[index] = value

    def set_cal_observed_yield(self, land_type: str, product: str, value: float, period: int):
        self.get_leaf(land_type, product).cal_observed_yield[period] = value

    def get_cal_ave_observed_rate(self, land_type: str, period: int) -> float:
        """Observed rental rate of a land type."""
        return self.observed_rates.get(land_type, self.observed_rates.get(UNMANAGED_LAND, 1.0))

    def apply_ag_prod_change(self, land_type: str, product: str, rate: float, period: int):
        """Annual yield growth applied from ``period`` onward."""
        self.get_leaf(land_type, product).ag_prod_change[period] = rate

    # Per-period calculation
    # ------------------------------------------------------------------
    def set_intrinsic_rate(self, land_type: str, product: str, profit_rate: float, period: int):
        """
        Set the land rental rate a product earns.

        Args:
            land_type: Land type
            product: Product name
            profit_rate: Profit per unit output, already clamped at zero
            period: Model period of the decision
        """
        leaf = self.get_leaf(land_type, product)
        leaf.intrinsic_rate[period] = profit_rate * self.get_yield(land_type, product, leaf.target_index(period))

    def calc_land_allocation(self, period: int):
        """
        Allocate land for every leaf's target index.

        Calibrated leaves take their calibrated land and recalibrate their
        share weight. The rest share what is left with unmanaged land.
        """
        rho = self.logit_exponent
        calibrated = []
        free = []
        for leaf in self._leaves.values():
            target = leaf.target_index(period)
            if target in leaf.cal_land:
                calibrated.append(leaf)
            else:
                free.append(leaf)

        used = 0.0
        for leaf in calibrated:
            land = leaf.cal_land[leaf.target_index(period)]
            leaf.land_allocation[leaf.target_index(period)] = land
            used += land
            rate = leaf.intrinsic_rate.get(period, 0.0)
            if rate > 0:
                leaf.share_weight = (land / self.total_land) / rate ** rho

        available = max(self.total_land - used, 0.0)
        unmanaged_rate = self.get_cal_ave_observed_rate(UNMANAGED_LAND, period)
        if not free:
            self.unmanaged_weight = (available / self.total_land) / unmanaged_rate ** rho
            self.unmanaged_land[period] = available
            return

        terms = [leaf.share_weight * leaf.intrinsic_rate.get(period, 0.0) ** rho for leaf in free]
        unmanaged_term = self.unmanaged_weight * unmanaged_rate ** rho
        denominator = sum(terms) + unmanaged_term
        for leaf, term in zip(free, terms):
            share = term / denominator if denominator > 0 else 0.0
            leaf.land_allocation[leaf.target_index(period)] = available * share
        self.unmanaged_land[period] = available * (unmanaged_term / denominator if denominator > 0 else 1.0)

    def calc_yield(self, land_type: str, product: str, harvest_period: int, period: int):
        """Fix the yield land allocated in ``period`` will have at ``harvest_period``."""
        leaf = self.get_leaf(land_type, product)
        leaf.yields[harvest_period] = self._trend_yield(leaf, harvest_period)

    def get_yield(self, land_type: str, product: str, period: int) -> float:
        leaf = self.get_leaf(land_type, product)
        if period in leaf.yields:
            return leaf.yields[period]
        return self._trend_yield(leaf, period)

    def get_land_allocation(self, land_type: str, product: str, period: int) -> float:
        """Land allocated at an index period; zero when nothing was allocated."""
        return self.get_leaf(land_type, product).land_allocation.get(period, 0.0)

    def _trend_yield(self, leaf: LandLeaf, period: int) -> float:
        if not leaf.cal_observed_yield:
            return 0.0
        known = [index for index in leaf.cal_observed_yield if index <= period]
        base_index = max(known) if known else min(leaf.cal_observed_yield)
        value = leaf.cal_observed_yield[base_index]
        for index in range(base_index + 1, period + 1):
            value *= (1.0 + self._ag_prod_change_at(leaf, index)) ** self._timestep(index)
        return value

    @staticmethod
    def _ag_prod_change_at(leaf: LandLeaf, index: int) -> float:
        """Most recent productivity change applied at or before ``index``."""
        applied = [period for period in leaf.ag_prod_change if period <= index]
        return leaf.ag_prod_change[max(applied)] if applied else 0.0

    def _timestep(self, index: int) -> int:
        # Indices past the final period reuse the last timestep
        if index < self.modeltime.max_period:
            return self.modeltime.timestep(index)
        return self.modeltime.timestep(self.modeltime.max_period - 1)

    def to_records(self, period: int):
        """Land allocation by leaf at an index period, for reporting."""
        records = [
            {
                'period': period,
                'land_type': leaf.land_type,
                'product': leaf.product,
                'land': leaf.land_allocation.get(period, 0.0),
                'yield': self.get_yield(leaf.land_type, leaf.product, period),
            }
            for leaf in self._leaves.values()
        ]
        return records
