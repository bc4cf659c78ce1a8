"""Export functionality for CSV and JSON."""

import json
from dataclasses import asdict

from ..config.schema import Config
from ..simulation.scenario import ScenarioResult


def export_csv(result: ScenarioResult, filepath: str):
    """Export market prices, supplies and demands by period to CSV."""
    df = result.market_frame()
    df.to_csv(filepath, index=False)


def export_summary_csv(result: ScenarioResult, filepath: str):
    """Export sector summaries by period to CSV."""
    df = result.summary_frame()
    df.to_csv(filepath, index=False)


def export_json(result: ScenarioResult, config: Config, filepath: str):
    """Export configuration, solve status and results to JSON."""
    export_data = {
        'config': config.to_dict(),
        'config_hash': result.config_hash,
        'all_periods_solved': result.all_periods_solved,
        'unsolved_periods': result.unsolved_periods,
        'solver_history': [asdict(solve) for solve in result.solver_history],
        'markets': result.market_history,
        'summaries': result.summaries,
        'emissions_totals': {
            gas: {str(year): value for year, value in by_year.items()}
            for gas, by_year in result.emissions_totals.items()
        },
    }

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2)
