"""Tests for the regional land allocator."""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from techeq.config.schema import LandAllocatorConfig
from techeq.engine.modeltime import Modeltime
from techeq.land.allocator import LandAllocator


def make_allocator():
    modeltime = Modeltime([1975, 1990, 2005, 2020])
    return LandAllocator("USA", LandAllocatorConfig(total_land=1000.0), modeltime)


def calibrated_crop():
    """Crop with 100 units of calibrated land and yield 4 in period 0."""
    allocator = make_allocator()
    allocator.add_land_usage("Cropland", "Corn")
    allocator.set_cal_land_allocation("Cropland", "Corn", 100.0, 0, 0)
    allocator.set_cal_observed_yield("Cropland", "Corn", 4.0, 0)
    allocator.set_intrinsic_rate("Cropland", "Corn", 2.0, 0)
    allocator.calc_land_allocation(0)
    return allocator


class TestLandUsage:
    """Leaf registration and lookups."""

    def test_add_land_usage_returns_existing_leaf(self):
        allocator = make_allocator()
        leaf = allocator.add_land_usage("Forestland", "Forest", 2)
        assert allocator.add_land_usage("Forestland", "Forest", 5) is leaf
        assert leaf.rotation_steps == 2

    def test_unknown_leaf_raises(self):
        with pytest.raises(KeyError):
            make_allocator().get_yield("Cropland", "Wheat", 0)

    def test_unallocated_land_is_zero(self):
        allocator = make_allocator()
        allocator.add_land_usage("Cropland", "Corn")
        assert allocator.get_land_allocation("Cropland", "Corn", 3) == 0.0


class TestCalibration:
    """Calibrated land is used as given and calibrates share weights."""

    def test_calibrated_land_used_as_is(self):
        allocator = calibrated_crop()
        assert allocator.get_land_allocation("Cropland", "Corn", 0) == 100.0
        assert allocator.unmanaged_land[0] == pytest.approx(900.0)

    def test_intrinsic_rate_uses_yield(self):
        allocator = calibrated_crop()
        leaf = allocator.get_leaf("Cropland", "Corn")
        assert leaf.intrinsic_rate[0] == pytest.approx(8.0)

    def test_same_rate_reproduces_calibrated_land(self):
        allocator = calibrated_crop()
        allocator.set_intrinsic_rate("Cropland", "Corn", 2.0, 1)
        allocator.calc_land_allocation(1)
        assert allocator.get_land_allocation("Cropland", "Corn", 1) == pytest.approx(100.0)

    def test_higher_rate_gets_more_land(self):
        allocator = calibrated_crop()
        allocator.set_intrinsic_rate("Cropland", "Corn", 3.0, 1)
        allocator.calc_land_allocation(1)
        land = allocator.get_land_allocation("Cropland", "Corn", 1)
        assert land > 100.0
        assert land + allocator.unmanaged_land[1] == pytest.approx(1000.0)

    def test_zero_rate_gets_no_land(self):
        allocator = calibrated_crop()
        allocator.set_intrinsic_rate("Cropland", "Corn", 0.0, 1)
        allocator.calc_land_allocation(1)
        assert allocator.get_land_allocation("Cropland", "Corn", 1) == 0.0


class TestYield:
    """Yield trends from the last calibrated observation."""

    def test_trend_without_productivity_change(self):
        allocator = calibrated_crop()
        assert allocator.get_yield("Cropland", "Corn", 2) == pytest.approx(4.0)

    def test_trend_with_productivity_change(self):
        allocator = calibrated_crop()
        allocator.apply_ag_prod_change("Cropland", "Corn", 0.01, 1)
        assert allocator.get_yield("Cropland", "Corn", 1) == pytest.approx(4.0 * 1.01 ** 15)
        assert allocator.get_yield("Cropland", "Corn", 2) == pytest.approx(4.0 * 1.01 ** 30)

    def test_calc_yield_fixes_value(self):
        allocator = calibrated_crop()
        allocator.calc_yield("Cropland", "Corn", 2, 0)
        allocator.apply_ag_prod_change("Cropland", "Corn", 0.05, 1)
        assert allocator.get_yield("Cropland", "Corn", 2) == pytest.approx(4.0)

    def test_no_observation_gives_zero_yield(self):
        allocator = make_allocator()
        allocator.add_land_usage("Cropland", "Corn")
        assert allocator.get_yield("Cropland", "Corn", 1) == 0.0
