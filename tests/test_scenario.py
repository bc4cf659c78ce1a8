"""Tests for the scenario run loop."""

import os
import sys

import pandas as pd
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from techeq.config.configuration import Configuration
from techeq.engine.modeltime import Modeltime
from techeq.simulation.climate import FunctionClimateModel
from techeq.simulation.scenario import (
    Scenario,
    ScenarioNotCompletedError,
    ScenarioState,
    ScenarioStructureError,
)


class RecordingWorld:
    """World stand-in that records the calls the run loop makes."""

    def __init__(self, events):
        self.events = events
        self.seen_supply = {}
        self.seen_price = {}
        self.graph_paths = []
        self.fail_calc_period = None

    def complete_init(self, context):
        self.events.append(("complete_init", None))

    def init_calc(self, period, context):
        self.events.append(("init_calc", period))
        self.seen_supply[period] = context.marketplace.get_supply("A", "R", period)
        self.seen_price[period] = context.marketplace.get_price("A", "R", period)

    def calc(self, period, context):
        self.events.append(("calc", period))
        if period == self.fail_calc_period:
            raise RuntimeError(f"calc failed in period {period}")

    def update_summary(self, period):
        self.events.append(("update_summary", period))

    def emiss_ind(self, period):
        self.events.append(("emiss_ind", period))

    def to_debug_xml(self, period, writer):
        self.events.append(("to_debug_xml", period))
        writer.element("period", period)

    def calculate_emissions_totals(self):
        self.events.append(("calculate_emissions_totals", None))
        return {"CO2": {2000: 1.0, 2005: 2.0, 2010: 3.0, 2015: 4.0}}

    def summary_records(self):
        return []

    def print_graphs(self, path, period):
        self.events.append(("print_graphs", period))
        self.graph_paths.append(os.path.basename(path))

    def print_sector_dependencies(self, path):
        self.events.append(("print_sector_dependencies", None))


class StubSolver:
    """Solver stand-in failing on chosen periods."""

    def __init__(self, events, marketplace=None, fail_periods=(), solved_price=None):
        self.events = events
        self.marketplace = marketplace
        self.fail_periods = set(fail_periods)
        self.solved_price = solved_price
        self.history = []

    def solve(self, period):
        self.events.append(("solve", period))
        if self.solved_price is not None:
            self.marketplace.set_price("A", "R", self.solved_price, period)
        return period not in self.fail_periods


def make_scenario(tmp_path, fail_periods=(), configuration=None, climate_model=None):
    events = []
    modeltime = Modeltime([2000, 2005, 2010, 2015])
    scenario = Scenario(
        modeltime=modeltime,
        world=RecordingWorld(events),
        configuration=configuration,
        climate_model=climate_model,
        output_dir=str(tmp_path),
    )
    scenario.marketplace.create_market("A", "R", initial_price=2.0)
    scenario.solver = StubSolver(events, scenario.marketplace, fail_periods, solved_price=7.0)
    return scenario, events


class TestRunLoop:
    """Per-period ordering and failure isolation."""

    def test_failed_period_recorded_and_run_continues(self, tmp_path):
        scenario, events = make_scenario(tmp_path, fail_periods=[2])

        result = scenario.run()

        assert result.unsolved_periods == [2]
        assert not result.all_periods_solved
        assert ("calc", 3) in events
        assert ("solve", 3) in events
        assert result.summary_message() == "The following model periods did not solve: 2"
        assert scenario.state == ScenarioState.COMPLETED

    def test_all_periods_solved(self, tmp_path):
        scenario, _ = make_scenario(tmp_path)
        result = scenario.run()
        assert result.all_periods_solved
        assert result.summary_message() == "All model periods solved correctly."

    def test_period_step_order(self, tmp_path):
        scenario, events = make_scenario(tmp_path)
        scenario.run()

        period_one = [name for name, period in events if period == 1]
        assert period_one == ["init_calc", "calc", "solve", "update_summary", "emiss_ind", "to_debug_xml"]
        assert events[-1] == ("calculate_emissions_totals", None)

    def test_reset_and_carry_forward_before_init_calc(self, tmp_path):
        scenario, _ = make_scenario(tmp_path)
        scenario.marketplace.add_to_supply("A", "R", 5.0, 1)

        scenario.run()

        world = scenario.world
        assert world.seen_supply[1] == 0.0
        assert world.seen_price[0] == 2.0
        # Period 1 starts from period 0's solved price
        assert world.seen_price[1] == 7.0
        assert scenario.marketplace.get_market("A", "R", 1).stored_price == 7.0

    def test_market_history_recorded(self, tmp_path):
        scenario, _ = make_scenario(tmp_path)
        result = scenario.run()
        frame = result.market_frame()
        assert list(frame['period']) == [0, 1, 2, 3]
        assert list(frame['price']) == [7.0, 7.0, 7.0, 7.0]


class TestStructure:
    """Missing structure is fatal before any period work."""

    def test_missing_world_raises(self, tmp_path):
        scenario = Scenario(modeltime=Modeltime([2000, 2005]), output_dir=str(tmp_path))
        with pytest.raises(ScenarioStructureError):
            scenario.run()
        assert scenario.state == ScenarioState.NOT_STARTED
        assert not os.path.exists(os.path.join(str(tmp_path), "debug.xml"))

    def test_missing_modeltime_raises(self, tmp_path):
        with pytest.raises(ScenarioStructureError):
            Scenario(world=RecordingWorld([]), output_dir=str(tmp_path)).run()


class TestOutputs:
    """Debug, dependency and climate outputs."""

    def test_debug_document_written(self, tmp_path):
        scenario, _ = make_scenario(tmp_path)
        scenario.run()
        with open(os.path.join(str(tmp_path), "debug.xml")) as f:
            text = f.read()
        assert text.startswith('<scenario name="reference">')
        assert text.rstrip().endswith("</scenario>")
        assert text.count("<period>") == 4

    def test_filename_ending_inserted(self, tmp_path):
        scenario, _ = make_scenario(tmp_path)
        scenario.run("_high")
        assert os.path.exists(os.path.join(str(tmp_path), "debug_high.xml"))
        assert os.path.exists(os.path.join(str(tmp_path), "emissions_high.csv"))

    def test_debug_write_failure_does_not_abort(self, tmp_path, caplog):
        configuration = Configuration(files={"xmlDebugFileName": "missing_dir/debug.xml"})
        scenario, events = make_scenario(tmp_path, configuration=configuration)

        result = scenario.run()

        assert result.all_periods_solved
        assert ("solve", 3) in events
        assert "Could not open" in caplog.text

    def test_dependency_outputs_when_enabled(self, tmp_path):
        configuration = Configuration(bools={"PrintSectorDependencies": True, "PrintDependencyGraphs": True})
        scenario, events = make_scenario(tmp_path, configuration=configuration)
        scenario.run()
        assert ("print_sector_dependencies", None) in events
        assert [p for name, p in events if name == "print_graphs"] == [0, 1, 2, 3]

    def test_climate_artifact_written_before_climate_model(self, tmp_path):
        seen = {}

        def climate(path):
            seen['exists'] = os.path.exists(path)
            seen['frame'] = pd.read_csv(path, index_col='gas')
            return "ok"

        model = FunctionClimateModel(climate)
        scenario, _ = make_scenario(tmp_path, climate_model=model)
        scenario.run()

        assert seen['exists']
        assert model.result == "ok"
        assert seen['frame'].loc['CO2', '2015'] == 4.0

    def test_graph_files_named_by_period(self, tmp_path):
        configuration = Configuration(
            bools={"PrintDependencyGraphs": True},
            files={"dependencyGraphName": "deps"},
        )
        scenario, _ = make_scenario(tmp_path, configuration=configuration)
        scenario.run("_high")
        assert scenario.world.graph_paths == ["deps_0_high.dot", "deps_1_high.dot",
                                              "deps_2_high.dot", "deps_3_high.dot"]

    def test_graph_file_name_default(self, tmp_path):
        configuration = Configuration(bools={"PrintDependencyGraphs": True})
        scenario, _ = make_scenario(tmp_path, configuration=configuration)
        scenario.run()
        assert scenario.world.graph_paths[0] == "graph_0.dot"


class TestFailure:
    """Exceptions raised inside the period loop."""

    def test_exception_marks_run_failed_and_closes_debug_file(self, tmp_path):
        scenario, events = make_scenario(tmp_path)
        scenario.world.fail_calc_period = 1

        with pytest.raises(RuntimeError, match="period 1"):
            scenario.run()

        assert scenario.state == ScenarioState.FAILED
        assert ("solve", 1) not in events
        with open(os.path.join(str(tmp_path), "debug.xml")) as f:
            text = f.read()
        assert text.startswith('<scenario name="reference">')
        assert text.count("<period>") == 1

    def test_curves_require_completed_run(self, tmp_path):
        scenario, _ = make_scenario(tmp_path)
        with pytest.raises(ScenarioNotCompletedError):
            scenario.get_emissions_quantity_curves("CO2")

        scenario.world.fail_calc_period = 0
        with pytest.raises(RuntimeError):
            scenario.run()
        with pytest.raises(ScenarioNotCompletedError):
            scenario.get_emissions_price_curves("CO2")
