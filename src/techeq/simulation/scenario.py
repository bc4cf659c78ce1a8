"""Scenario - the time-stepped run loop.

Key Concepts:
- Each period is reset, carried forward, calculated and solved independently
- A period that fails to solve is recorded and the run moves on
- Debug, dependency and climate outputs are best-effort: write failures are
  logged and the run continues
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, TextIO

import pandas as pd

from ..config.configuration import Configuration
from ..config.schema import Config
from ..engine.context import CalcContext
from ..engine.marketplace import Marketplace
from ..engine.modeltime import Modeltime
from ..engine.solver import BisectionNRSolver, SolverResult
from ..reporting.debug_xml import XMLDebugWriter
from ..world.world import World
from .climate import ClimateModel, NullClimateModel

logger = logging.getLogger(__name__)


class ScenarioState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ScenarioStructureError(RuntimeError):
    """Raised when a scenario is run without the structure it needs."""


class ScenarioNotCompletedError(RuntimeError):
    """Raised when run results are requested before a run completed."""


@dataclass
class ScenarioResult:
    """Outcome of a scenario run."""
    name: str
    config_hash: str
    unsolved_periods: List[int]
    market_history: List[dict] = field(default_factory=list)
    summaries: List[dict] = field(default_factory=list)
    emissions_totals: Dict[str, Dict[int, float]] = field(default_factory=dict)
    solver_history: List[SolverResult] = field(default_factory=list)

    @property
    def all_periods_solved(self) -> bool:
        return not self.unsolved_periods

    def summary_message(self) -> str:
        if self.all_periods_solved:
            return "All model periods solved correctly."
        return "The following model periods did not solve: " + ", ".join(str(p) for p in self.unsolved_periods)

    def market_frame(self) -> pd.DataFrame:
        """Market prices, supplies and demands by period."""
        return pd.DataFrame(self.market_history, columns=['period', 'good', 'region', 'price', 'supply', 'demand'])

    def summary_frame(self) -> pd.DataFrame:
        """Sector output, land input and emissions by period."""
        return pd.DataFrame(self.summaries)


class Scenario:
    """Owns model time, marketplace, world and solver, and runs the period loop."""

    def __init__(
        self,
        modeltime: Optional[Modeltime] = None,
        world: Optional[World] = None,
        marketplace: Optional[Marketplace] = None,
        solver=None,
        configuration: Optional[Configuration] = None,
        climate_model: Optional[ClimateModel] = None,
        name: str = "reference",
        output_dir: str = ".",
        config_hash: str = ""
    ):
        """
        Initialize scenario.

        Args:
            modeltime: Model time
            world: World to calculate
            marketplace: Marketplace of the run
            solver: Object with ``solve(period) -> bool``; a BisectionNRSolver
                over the world is built when omitted
            configuration: Run flags and output file names
            climate_model: Post-run emissions consumer
            name: Scenario name
            output_dir: Directory receiving debug, graph and climate files
            config_hash: Hash of the configuration the scenario was built from
        """
        self.modeltime = modeltime
        self.world = world
        self.marketplace = marketplace
        if self.marketplace is None and modeltime is not None:
            self.marketplace = Marketplace(modeltime.max_period)
        self.configuration = configuration or Configuration()
        self.climate_model = climate_model or NullClimateModel()
        self.name = name
        self.output_dir = output_dir
        self.config_hash = config_hash
        self.solver = solver
        if self.solver is None and self.marketplace is not None:
            self.solver = BisectionNRSolver(self.marketplace, self._calc)
        self.state = ScenarioState.NOT_STARTED
        self.unsolved_periods: List[int] = []

    @classmethod
    def from_config(
        cls,
        config: Config,
        output_dir: str = ".",
        climate_model: Optional[ClimateModel] = None
    ) -> 'Scenario':
        """
        Build a ready-to-run scenario from a validated configuration.

        Args:
            config: Scenario configuration
            output_dir: Directory receiving output files
            climate_model: Post-run emissions consumer

        Returns:
            Scenario with markets registered and calibration pushed
        """
        modeltime = Modeltime.from_config(config.modeltime)
        marketplace = Marketplace(modeltime.max_period)
        world = World(config.world, modeltime)
        scenario = cls(
            modeltime=modeltime,
            world=world,
            marketplace=marketplace,
            configuration=Configuration.from_settings(config.configuration),
            climate_model=climate_model,
            name=config.name,
            output_dir=output_dir,
            config_hash=config.compute_hash(),
        )
        scenario.solver = BisectionNRSolver(marketplace, scenario._calc, config.solver)
        scenario.complete_init()
        return scenario

    @property
    def context(self) -> CalcContext:
        return CalcContext(modeltime=self.modeltime, marketplace=self.marketplace)

    def complete_init(self):
        self.check_structure()
        self.world.complete_init(self.context)

    def check_structure(self):
        """
        Raises:
            ScenarioStructureError: If model time, world, marketplace or solver is missing
        """
        missing = [
            part for part, value in (
                ("modeltime", self.modeltime),
                ("world", self.world),
                ("marketplace", self.marketplace),
                ("solver", self.solver),
            )
            if value is None
        ]
        if missing:
            raise ScenarioStructureError(f"Scenario '{self.name}' is missing: {', '.join(missing)}")

    def _calc(self, period: int):
        self.world.calc(period, self.context)

    def run(self, filename_ending: str = "") -> ScenarioResult:
        """
        Run every model period.

        Args:
            filename_ending: Suffix inserted before the extension of output files

        Returns:
            Scenario result with the unsolved periods in ascending order

        Raises:
            ScenarioStructureError: If the scenario lacks model time or a world
        """
        self.check_structure()
        self.state = ScenarioState.RUNNING
        self.unsolved_periods = []
        context = self.context
        market_history: List[dict] = []
        logger.info("Running scenario %s over %d periods", self.name, self.modeltime.max_period)

        debug_name = self._output_path(self.configuration.get_file("xmlDebugFileName", "debug.xml"),
                                       filename_ending)
        debug_stream = self._open_output(debug_name)
        writer = XMLDebugWriter(debug_stream) if debug_stream is not None else None
        try:
            if self.configuration.get_bool("PrintSectorDependencies"):
                path = self._output_path(self.configuration.get_file("dependencyFileName", "sector_dependencies.csv"),
                                         filename_ending)
                self._write_output(path, self.world.print_sector_dependencies, path)

            self.marketplace.init_prices()
            writer = self._write_debug(writer, debug_name, lambda w: w.open_tag("scenario", name=self.name))

            for period in range(self.modeltime.max_period):
                logger.info("Period %d (%d)", period, self.modeltime.per_to_yr(period))
                self.marketplace.reset_period(period)
                self.marketplace.carry_forward(period)
                self.world.init_calc(period, context)
                self.world.calc(period, context)
                if not self.solver.solve(period):
                    self.unsolved_periods.append(period)
                self.world.update_summary(period)
                self.world.emiss_ind(period)
                market_history.extend(self.marketplace.to_records(period))

                writer = self._write_debug(writer, debug_name,
                                           lambda w, p=period: self.world.to_debug_xml(p, w))
                if self.configuration.get_bool("PrintDependencyGraphs"):
                    graph_name = f"{self.configuration.get_file('dependencyGraphName', 'graph')}_{period}.dot"
                    path = self._output_path(graph_name, filename_ending)
                    self._write_output(path, self.world.print_graphs, path, period)

            self._write_debug(writer, debug_name, lambda w: w.close_tag("scenario"))
        except Exception:
            self.state = ScenarioState.FAILED
            logger.error("Scenario %s failed in period loop", self.name)
            raise
        finally:
            if debug_stream is not None:
                debug_stream.close()

        totals = self.world.calculate_emissions_totals()
        artifact = self._write_climate_artifact(totals, filename_ending)
        if artifact is not None:
            self.climate_model.run(artifact)

        self.state = ScenarioState.COMPLETED
        result = ScenarioResult(
            name=self.name,
            config_hash=self.config_hash,
            unsolved_periods=list(self.unsolved_periods),
            market_history=market_history,
            summaries=self.world.summary_records(),
            emissions_totals=totals,
            solver_history=list(getattr(self.solver, 'history', [])),
        )
        if result.all_periods_solved:
            logger.info(result.summary_message())
        else:
            logger.warning(result.summary_message())
        return result

    def _require_completed(self):
        if self.state != ScenarioState.COMPLETED:
            raise ScenarioNotCompletedError(f"Scenario '{self.name}' has not completed a run")

    def get_emissions_quantity_curves(self, gas: str) -> Dict[str, pd.Series]:
        """
        Emissions of a gas by year, one series per region.

        Raises:
            ScenarioNotCompletedError: If the scenario has not been run
        """
        self._require_completed()
        return self.world.get_emissions_quantity_curves(gas)

    def get_emissions_price_curves(self, gas: str) -> Dict[str, pd.Series]:
        """
        Price of a gas by year, one series per region with a market for the gas.

        Raises:
            ScenarioNotCompletedError: If the scenario has not been run
        """
        self._require_completed()
        return self.world.get_emissions_price_curves(gas, self.marketplace)

    # Output helpers
    # ------------------------------------------------------------------
    def _output_path(self, file_name: str, filename_ending: str) -> str:
        root, ext = os.path.splitext(file_name)
        return os.path.join(self.output_dir, f"{root}{filename_ending}{ext}")

    def _open_output(self, path: str) -> Optional[TextIO]:
        try:
            return open(path, 'w')
        except OSError as e:
            logger.error("Could not open %s for writing: %s", path, e)
            return None

    def _write_debug(
        self,
        writer: Optional[XMLDebugWriter],
        path: str,
        write: Callable[[XMLDebugWriter], None]
    ) -> Optional[XMLDebugWriter]:
        """Run a debug write; on failure log it and stop writing debug output."""
        if writer is None:
            return None
        try:
            write(writer)
        except OSError as e:
            logger.error("Failed writing debug output to %s: %s", path, e)
            return None
        return writer

    def _write_output(self, path: str, write: Callable, *args):
        try:
            write(*args)
        except OSError as e:
            logger.error("Could not write %s: %s", path, e)

    def _write_climate_artifact(self, totals: Dict[str, Dict[int, float]], filename_ending: str) -> Optional[str]:
        """Write total emissions by gas and year; returns the path, or None if writing failed."""
        path = self._output_path(self.configuration.get_file("climateFileName", "emissions.csv"), filename_ending)
        years = list(self.modeltime.years)
        df = pd.DataFrame(
            [[totals[gas].get(year, 0.0) for year in years] for gas in totals],
            index=pd.Index(list(totals), name='gas'),
            columns=years,
        )
        try:
            df.to_csv(path)
        except OSError as e:
            logger.error("Could not write climate input %s: %s", path, e)
            return None
        return path
