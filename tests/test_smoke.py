"""Smoke tests for core techeq modules.

These tests verify basic functionality without deep validation.
Run these first to catch obvious breakage.
"""

import json
import os
import sys

import pandas as pd
import pytest
from pydantic import ValidationError

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from techeq.cli import main
from techeq.config.loader import config_from_dict, load_config
from techeq.config.schema import Config
from techeq.reporting.export import export_csv, export_json
from techeq.simulation.scenario import Scenario
from techeq.validation.sanity_checks import SanityChecker, validate_scenario_results


def minimal_config_dict():
    return {
        'modeltime': {'years': [2000, 2010, 2020]},
        'world': {
            'regions': [{
                'name': 'R',
                'sectors': [{
                    'name': 'Steel',
                    'technologies': [{'name': 'Mill', 'base_output': 10.0}],
                }],
                'demands': [{'good': 'Steel', 'base_quantity': 10.0, 'price_elasticity': -1.0}],
            }],
        },
    }


class TestConfigLoading:
    """Smoke tests for configuration loading."""

    def test_load_default_config(self):
        """Config loads without errors."""
        config = load_config()
        assert config is not None
        assert isinstance(config, Config)

    def test_config_has_required_sections(self):
        """Config contains all expected sections."""
        config = load_config()
        assert hasattr(config, 'modeltime')
        assert hasattr(config, 'solver')
        assert hasattr(config, 'configuration')
        assert hasattr(config, 'world')
        assert config.world.regions[0].name == "USA"

    def test_config_hash_is_deterministic(self):
        """Same config produces same hash."""
        config1 = load_config()
        config2 = load_config()
        assert config1.compute_hash() == config2.compute_hash()

    def test_calibration_yield_alias(self):
        config = load_config()
        forest = [s for s in config.world.regions[0].sectors if s.name == "Forest"][0]
        point = forest.technologies[0].calibration[1975]
        assert point.yield_ == 5.0
        assert point.future_production == 330.0

    def test_forest_sector_requires_rotation(self):
        data = minimal_config_dict()
        data['world']['regions'][0]['sectors'][0]['type'] = 'forest'
        with pytest.raises(ValidationError):
            config_from_dict(data)

    def test_land_technology_requires_land_type(self):
        data = minimal_config_dict()
        data['world']['regions'][0]['sectors'][0]['technologies'][0]['type'] = 'food'
        with pytest.raises(ValidationError):
            config_from_dict(data)

    def test_years_must_increase(self):
        data = minimal_config_dict()
        data['modeltime']['years'] = [2000, 2020, 2010]
        with pytest.raises(ValidationError):
            config_from_dict(data)

    def test_forest_calibrated_without_cal_price_rejected(self):
        data = load_config().to_dict()
        forest = [s for s in data['world']['regions'][0]['sectors'] if s['name'] == "Forest"][0]
        forest['cal_prices'] = {1975: 10.0}
        with pytest.raises(ValidationError, match=r"Forest is calibrated in \[1990\]"):
            config_from_dict(data)

    def test_negative_ghg_tax_rejected(self):
        data = minimal_config_dict()
        data['world']['regions'][0]['ghg_taxes'] = {'CO2': {2000: -1.0}}
        with pytest.raises(ValidationError):
            config_from_dict(data)

    def test_taxed_gas_cannot_share_sector_name(self):
        data = minimal_config_dict()
        data['world']['regions'][0]['ghg_taxes'] = {'Steel': {2000: 1.0}}
        with pytest.raises(ValidationError):
            config_from_dict(data)


class TestSanityChecks:
    """Configuration sanity checks."""

    def test_default_config_has_no_errors(self):
        warnings = SanityChecker(load_config()).check_config_inputs()
        assert [w for w in warnings if w.severity == "error"] == []

    def test_demand_without_supplier_is_error(self):
        data = minimal_config_dict()
        data['world']['regions'][0]['demands'].append({'good': 'Cement', 'base_quantity': 1.0})
        warnings = SanityChecker(config_from_dict(data)).check_config_inputs()
        assert any(w.severity == "error" and "Cement" in w.message for w in warnings)


class TestScenarioRun:
    """End-to-end runs."""

    def test_minimal_scenario_solves(self, tmp_path):
        """Supply 10p against demand 10/p clears at p = 1."""
        config = config_from_dict(minimal_config_dict())
        result = Scenario.from_config(config, output_dir=str(tmp_path)).run()
        assert result.all_periods_solved
        prices = result.market_frame()['price']
        assert list(prices) == pytest.approx([1.0, 1.0, 1.0], rel=1e-2)

    def test_default_scenario_solves(self, tmp_path):
        config = load_config()
        result = Scenario.from_config(config, output_dir=str(tmp_path)).run()

        assert result.all_periods_solved
        assert result.config_hash == config.compute_hash()
        assert len(result.solver_history) == 6
        assert set(result.emissions_totals) == {"CO2", "N2O"}
        assert os.path.exists(os.path.join(str(tmp_path), "debug.xml"))
        assert os.path.exists(os.path.join(str(tmp_path), "emissions.csv"))

        frame = result.market_frame()
        assert set(frame['good']) == {"Fertilizer", "Corn", "Forest", "FutureForest"}
        assert (frame['price'] >= 0).all()

        errors = [w for w in validate_scenario_results(config, result) if w.severity == "error"]
        assert errors == []

    def test_default_calibration_period_prices(self, tmp_path):
        """Calibrated supply meets demand at the calibration price in the first period."""
        result = Scenario.from_config(load_config(), output_dir=str(tmp_path)).run()
        frame = result.market_frame()
        first = frame[frame['period'] == 0].set_index('good')
        assert first.loc['Corn', 'price'] == pytest.approx(3.0, rel=1e-2)
        assert first.loc['Forest', 'price'] == pytest.approx(10.0, rel=1e-2)

    def test_emissions_quantity_curves(self, tmp_path):
        config = load_config()
        scenario = Scenario.from_config(config, output_dir=str(tmp_path))
        result = scenario.run()

        curves = scenario.get_emissions_quantity_curves("CO2")
        assert list(curves) == ["USA"]
        co2 = curves["USA"]
        assert list(co2.index) == config.modeltime.years
        assert co2.to_dict() == pytest.approx(result.emissions_totals["CO2"])
        assert (co2 > 0).all()
        assert scenario.get_emissions_price_curves("CO2") == {}

    def test_ghg_tax_sets_emissions_price_curve(self, tmp_path):
        data = load_config().to_dict()
        data['world']['regions'][0]['ghg_taxes'] = {'CO2': {1975: 0.2, 2020: 0.4}}
        scenario = Scenario.from_config(config_from_dict(data), output_dir=str(tmp_path))
        result = scenario.run()

        prices = scenario.get_emissions_price_curves("CO2")["USA"]
        assert list(prices) == pytest.approx([0.2, 0.2, 0.2, 0.4, 0.4, 0.4])
        frame = result.market_frame()
        co2 = frame[frame['good'] == "CO2"].set_index('period')
        assert co2['demand'].tolist() == pytest.approx(
            [result.emissions_totals["CO2"][year] for year in scenario.modeltime.years]
        )

    def test_export(self, tmp_path):
        config = config_from_dict(minimal_config_dict())
        result = Scenario.from_config(config, output_dir=str(tmp_path)).run()

        csv_path = os.path.join(str(tmp_path), "markets.csv")
        json_path = os.path.join(str(tmp_path), "results.json")
        export_csv(result, csv_path)
        export_json(result, config, json_path)

        assert os.path.exists(csv_path)
        with open(json_path) as f:
            data = json.load(f)
        assert data['all_periods_solved'] is True
        assert data['config_hash'] == config.compute_hash()


class TestCli:
    """Console entry point."""

    def test_cli_runs_default_scenario(self, tmp_path, capsys):
        code = main(["--output-dir", str(tmp_path), "--log-level", "WARNING", "--export-json"])
        assert code == 0
        assert "All model periods solved correctly." in capsys.readouterr().out
        assert os.path.exists(os.path.join(str(tmp_path), "markets.csv"))
        assert os.path.exists(os.path.join(str(tmp_path), "results.json"))
        summary = pd.read_csv(os.path.join(str(tmp_path), "summary.csv"))
        assert {"Corn", "Forest", "Fertilizer"} <= set(summary["sector"])

    def test_dependency_outputs(self, tmp_path):
        config = load_config()
        config.configuration.bools['PrintSectorDependencies'] = True
        config.configuration.bools['PrintDependencyGraphs'] = True

        Scenario.from_config(config, output_dir=str(tmp_path)).run()

        deps = pd.read_csv(os.path.join(str(tmp_path), "sector_dependencies.csv"))
        assert list(deps['sector']) == ['Corn']
        assert list(deps['depends_on']) == ['Fertilizer']
        with open(os.path.join(str(tmp_path), "graph_0.dot")) as f:
            assert '"USA:Fertilizer" -> "USA:Corn"' in f.read()
