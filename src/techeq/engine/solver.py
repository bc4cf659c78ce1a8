"""Bisection / Newton-Raphson solver - clear every solvable market of a period.

Key Concepts:
- Each World evaluation ("trial") computes supply and demand for all markets at once
- Bracketing phase scales prices until excess demand changes sign in every unsolved market
- Refinement phase takes Newton steps on a finite-difference Jacobian; a market whose
  step leaves a bracket measured at the current prices of the other markets bisects instead
- A bound measured before other markets moved may no longer hold the root, so steps
  are accepted when they reduce excess demand, with damped Newton steps as fallback
- Trials are capped, so non-convergence is a result, never an exception
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from ..config.schema import SolverSettings
from .market import Market
from .marketplace import Marketplace

logger = logging.getLogger(__name__)


@dataclass
class SolverResult:
    """Outcome of solving one period."""
    period: int
    converged: bool
    trials: int
    iterations: int
    max_relative_excess: float
    unsolved_markets: List[str] = field(default_factory=list)


@dataclass
class PriceBrackets:
    """Per-market price bounds and the trial prices each bound was measured at.

    ``lower`` has positive excess demand, ``upper`` negative. NaN marks a
    missing bound.
    """
    lower: np.ndarray
    upper: np.ndarray
    lower_at: np.ndarray
    upper_at: np.ndarray

    @classmethod
    def empty(cls, n: int) -> 'PriceBrackets':
        return cls(
            lower=np.full(n, np.nan),
            upper=np.full(n, np.nan),
            lower_at=np.full((n, n), np.nan),
            upper_at=np.full((n, n), np.nan),
        )

    def set_lower(self, i: int, price: float, prices: np.ndarray):
        self.lower[i] = price
        self.lower_at[i] = prices

    def set_upper(self, i: int, price: float, prices: np.ndarray):
        self.upper[i] = price
        self.upper_at[i] = prices

    def drop(self, indices):
        self.lower[indices] = np.nan
        self.upper[indices] = np.nan

    def missing(self) -> np.ndarray:
        return np.isnan(self.lower) | np.isnan(self.upper)

    def midpoints(self) -> np.ndarray:
        return 0.5 * (self.lower + self.upper)

    def is_current(self, i: int, prices: np.ndarray) -> bool:
        """True if no other market's price changed since both bounds of market ``i`` were measured."""
        others = np.arange(len(prices)) != i
        return (np.array_equal(self.lower_at[i, others], prices[others])
                and np.array_equal(self.upper_at[i, others], prices[others]))


class BisectionNRSolver:
    """Market-clearing solver combining bracketing, bisection and Newton-Raphson.

    Markets are always visited in marketplace registration order, so two
    solves from the same starting prices with the same calc function
    produce the same sequence of trials.
    """

    def __init__(
        self,
        marketplace: Marketplace,
        calc: Callable[[int], None],
        settings: Optional[SolverSettings] = None
    ):
        """
        Initialize solver.

        Args:
            marketplace: Marketplace holding the markets to clear
            calc: World calculation for a period; fills market supplies and demands
            settings: Tolerances and trial budget
        """
        self.marketplace = marketplace
        self.calc = calc
        self.settings = settings or SolverSettings()
        self.history: List[SolverResult] = []
        self._trials = 0
        self._last_prices = np.zeros(0)
        self._last_excess = np.zeros(0)

    def solve(self, period: int) -> bool:
        """
        Clear all solvable markets of a period.

        On return the marketplace holds the prices, supplies and demands of
        the last trial, whether or not the period converged.

        Args:
            period: Model period

        Returns:
            True if every solvable market is within tolerance
        """
        settings = self.settings
        markets = self.marketplace.get_solvable_markets(period)
        self._trials = 0
        if not markets:
            return self._record(period, True, 0, markets, np.zeros(0))

        prices = np.maximum(np.array([market.price for market in markets], dtype=float), settings.min_price)
        brackets = PriceBrackets.empty(len(markets))

        excess = self._evaluate(period, markets, prices)
        solved = self._market_converged(markets, excess)
        iterations = 0

        while not solved.all() and self._trials < settings.max_trials:
            iterations += 1
            self._update_brackets(prices, excess, brackets)
            unbracketed = ~solved & brackets.missing()
            if unbracketed.any():
                prices = self._expand_brackets(prices, brackets, unbracketed)
                excess = self._evaluate(period, markets, prices)
            else:
                prices, excess = self._refine(period, markets, prices, excess, brackets)
            solved = self._market_converged(markets, excess)

        return self._record(period, bool(solved.all()), iterations, markets, excess)

    def _evaluate(self, period: int, markets: List[Market], prices: np.ndarray) -> np.ndarray:
        """Run one trial at the given prices and return excess demand per market."""
        for market, price in zip(markets, prices):
            market.price = float(price)
        self.marketplace.null_supplies(period)
        self.marketplace.null_demands(period)
        self.calc(period)
        self._trials += 1
        excess = np.array([market.excess_demand for market in markets], dtype=float)
        self._last_prices = prices.copy()
        self._last_excess = excess
        logger.debug("Period %d trial %d: max |excess| %.6g", period, self._trials,
                     float(np.max(np.abs(excess))))
        return excess

    def _market_converged(self, markets: List[Market], excess: np.ndarray) -> np.ndarray:
        scale = np.array([max(abs(m.demand), abs(m.supply)) for m in markets], dtype=float)
        abs_excess = np.abs(excess)
        return (abs_excess <= self.settings.absolute_tolerance) | (abs_excess <= self.settings.tolerance * scale)

    def _excess_scale(self, markets: List[Market]) -> np.ndarray:
        floor = self.settings.absolute_tolerance / self.settings.tolerance
        return np.array([max(abs(m.demand), abs(m.supply), floor) for m in markets], dtype=float)

    @staticmethod
    def _merit(excess: np.ndarray, scale: np.ndarray) -> float:
        return float(np.sum((excess / scale) ** 2))

    def _update_brackets(self, prices: np.ndarray, excess: np.ndarray, brackets: PriceBrackets):
        """Tighten bounds from the sign of excess demand; drop bounds the new trial contradicts."""
        for i, price in enumerate(prices):
            # A bound within this margin of the price no longer separates it from the root
            margin = self.settings.min_bracket_width * max(abs(price), self.settings.min_price)
            if excess[i] > 0:
                brackets.set_lower(i, price, prices)
                if brackets.upper[i] <= price + margin:
                    brackets.upper[i] = np.nan
            elif excess[i] < 0:
                brackets.set_upper(i, price, prices)
                if brackets.lower[i] >= price - margin:
                    brackets.lower[i] = np.nan
            else:
                brackets.set_lower(i, price, prices)
                brackets.set_upper(i, price, prices)

    def _expand_brackets(
        self,
        prices: np.ndarray,
        brackets: PriceBrackets,
        unbracketed: np.ndarray
    ) -> np.ndarray:
        settings = self.settings
        new_prices = prices.copy()
        for i in np.flatnonzero(unbracketed):
            if np.isnan(brackets.upper[i]):
                # Excess demand: raise the price
                new_prices[i] = max(prices[i], settings.min_price) * settings.bracket_factor
            else:
                candidate = prices[i] / settings.bracket_factor
                if candidate < settings.min_price:
                    brackets.set_lower(i, 0.0, prices)
                    new_prices[i] = 0.5 * brackets.upper[i]
                else:
                    new_prices[i] = candidate
        return new_prices

    def _refine(
        self,
        period: int,
        markets: List[Market],
        prices: np.ndarray,
        excess: np.ndarray,
        brackets: PriceBrackets
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        One refinement step over the unsolved markets.

        Candidates are tried in order until one lowers the scaled excess
        demand norm: the guarded Newton step, damped Newton steps, then plain
        bisection. Bisection is accepted without that test when every bracket
        was measured at the current prices of the other markets.

        Returns:
            Prices and excess demand of the trial left in the marketplace
        """
        settings = self.settings
        active = np.flatnonzero(~self._market_converged(markets, excess))
        scale = self._excess_scale(markets)
        merit = self._merit(excess, scale)
        current = all(brackets.is_current(i, prices) for i in active)

        bisection = prices.copy()
        bisection[active] = brackets.midpoints()[active]

        # Jacobian columns plus the step itself must fit in the trial budget
        if self._trials + len(active) + 1 > settings.max_trials:
            return bisection, self._evaluate(period, markets, bisection)

        jacobian = self._jacobian(period, markets, prices, excess, active)
        try:
            step = np.linalg.solve(jacobian, -excess[active])
        except np.linalg.LinAlgError:
            logger.debug("Period %d: singular Jacobian, bisecting", period)
            step = None

        candidates = []
        if step is not None and np.isfinite(step).all():
            newton = prices.copy()
            newton[active] += step
            guarded = newton.copy()
            for k, i in enumerate(active):
                outside = not brackets.lower[i] < newton[i] < brackets.upper[i]
                if abs(jacobian[k, k]) < settings.min_derivative or (outside and brackets.is_current(i, prices)):
                    guarded[i] = bisection[i]
            candidates.append(guarded)
            for damping in 0.5 ** np.arange(settings.max_line_search + 1):
                damped = self._keep_positive(prices, prices + damping * (newton - prices))
                if not any(np.array_equal(damped, c) for c in candidates):
                    candidates.append(damped)

        if current:
            # Bounds are valid: bisection always shrinks them
            for candidate in candidates:
                if self._trials >= settings.max_trials:
                    break
                candidate_excess = self._evaluate(period, markets, candidate)
                if self._improves(markets, candidate_excess, scale, merit):
                    return candidate, candidate_excess
            if self._trials >= settings.max_trials:
                return self._last_prices, self._last_excess
            return bisection, self._evaluate(period, markets, bisection)

        if not any(np.array_equal(bisection, c) for c in candidates):
            candidates.append(bisection)
        for candidate in candidates:
            if self._trials >= settings.max_trials:
                break
            candidate_excess = self._evaluate(period, markets, candidate)
            if self._improves(markets, candidate_excess, scale, merit):
                return candidate, candidate_excess

        logger.debug("Period %d: no step reduced excess demand, bracketing %d markets again",
                     period, len(active))
        brackets.drop(active)
        if self._trials >= settings.max_trials:
            return self._last_prices, self._last_excess
        return prices, self._evaluate(period, markets, prices)

    def _improves(self, markets: List[Market], excess: np.ndarray, scale: np.ndarray, merit: float) -> bool:
        return bool(self._market_converged(markets, excess).all()) or self._merit(excess, scale) < merit

    def _keep_positive(self, prices: np.ndarray, candidate: np.ndarray) -> np.ndarray:
        """Replace prices a step would push below ``min_price`` by a bracketing move toward zero."""
        return np.where(candidate < self.settings.min_price, prices / self.settings.bracket_factor, candidate)

    def _jacobian(
        self,
        period: int,
        markets: List[Market],
        prices: np.ndarray,
        excess: np.ndarray,
        active: np.ndarray
    ) -> np.ndarray:
        """Forward-difference derivatives of excess demand with respect to price."""
        jacobian = np.zeros((len(active), len(active)))
        for k, j in enumerate(active):
            delta = self.settings.derivative_step * max(abs(prices[j]), self.settings.min_price)
            perturbed = prices.copy()
            perturbed[j] += delta
            perturbed_excess = self._evaluate(period, markets, perturbed)
            jacobian[:, k] = (perturbed_excess[active] - excess[active]) / delta
        return jacobian

    def _record(
        self,
        period: int,
        converged: bool,
        iterations: int,
        markets: List[Market],
        excess: np.ndarray
    ) -> bool:
        relative = [
            abs(excess[i]) / max(abs(m.demand), abs(m.supply), self.settings.absolute_tolerance, 1e-12)
            for i, m in enumerate(markets)
        ]
        solved = self._market_converged(markets, excess)
        for market, ok in zip(markets, solved):
            market.solved = bool(ok)
        unsolved = [m.name for m, ok in zip(markets, solved) if not ok]
        result = SolverResult(
            period=period,
            converged=converged,
            trials=self._trials,
            iterations=iterations,
            max_relative_excess=float(max(relative)) if relative else 0.0,
            unsolved_markets=unsolved,
        )
        self.history.append(result)
        if converged:
            logger.info("Period %d solved in %d trials", period, self._trials)
        else:
            logger.warning(
                "Period %d did not solve after %d trials; unsolved markets: %s",
                period, self._trials, ", ".join(unsolved)
            )
        return converged
