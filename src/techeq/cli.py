"""Command line entry point: run a scenario and report which periods solved."""

import argparse
import logging
import os
import sys

from .config.loader import load_config
from .reporting.export import export_csv, export_json, export_summary_csv
from .simulation.scenario import Scenario
from .validation.sanity_checks import SanityChecker, validate_scenario_results


def main(argv=None) -> int:
    p = argparse.ArgumentParser(prog="techeq-run", description="Run a techeq market equilibrium scenario")
    p.add_argument("config", nargs="?", default=None, help="Scenario YAML (defaults to the packaged scenario)")
    p.add_argument("--output-dir", default=".", help="Directory for debug, graph and result files")
    p.add_argument("--ending", default="", help="Suffix inserted into output file names")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    p.add_argument("--export-json", action="store_true", help="Also write results.json")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    logger = logging.getLogger("techeq")

    config = load_config(args.config)
    for warning in SanityChecker(config).check_config_inputs():
        log = logger.error if warning.severity == "error" else logger.warning
        log("%s: %s", warning.category, warning.message)

    os.makedirs(args.output_dir, exist_ok=True)
    scenario = Scenario.from_config(config, output_dir=args.output_dir)
    result = scenario.run(args.ending)

    export_csv(result, os.path.join(args.output_dir, f"markets{args.ending}.csv"))
    export_summary_csv(result, os.path.join(args.output_dir, f"summary{args.ending}.csv"))
    if args.export_json:
        export_json(result, config, os.path.join(args.output_dir, f"results{args.ending}.json"))

    for warning in validate_scenario_results(config, result):
        if warning.category in ("convergence", "nan", "bounds"):
            logger.warning("%s: %s", warning.category, warning.message)

    print(result.summary_message())
    return 0 if result.all_periods_solved else 1


if __name__ == "__main__":
    sys.exit(main())
