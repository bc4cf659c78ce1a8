"""Model time: mapping between model periods and calendar years."""

from typing import List, Optional

from ..config.schema import ModeltimeConfig


class Modeltime:
    """Ordered model years, one per period.

    The timestep of period ``p`` is the number of years since the previous
    period; period 0 uses the step to period 1.
    """

    def __init__(self, years: List[int], final_calibration_year: Optional[int] = None):
        if len(years) < 2:
            raise ValueError("Modeltime needs at least two years")
        self.years = list(years)
        self.final_calibration_year = (
            final_calibration_year if final_calibration_year is not None else self.years[0]
        )

    @classmethod
    def from_config(cls, config: ModeltimeConfig) -> 'Modeltime':
        return cls(config.years, config.final_calibration_year)

    @property
    def max_period(self) -> int:
        """Number of model periods."""
        return len(self.years)

    @property
    def start_year(self) -> int:
        return self.years[0]

    @property
    def end_year(self) -> int:
        return self.years[-1]

    def per_to_yr(self, period: int) -> int:
        """Year of a model period."""
        return self.years[period]

    def yr_to_per(self, year: int) -> int:
        """
        Period of a model year.

        Raises:
            ValueError: If the year is not a model year
        """
        try:
            return self.years.index(year)
        except ValueError:
            raise ValueError(f"{year} is not a model year") from None

    def timestep(self, period: int) -> int:
        """Years covered by a period."""
        if period == 0:
            return self.years[1] - self.years[0]
        return self.years[period] - self.years[period - 1]

    def is_calibration_period(self, period: int) -> bool:
        return self.years[period] <= self.final_calibration_year
