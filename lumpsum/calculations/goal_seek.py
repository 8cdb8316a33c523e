"""
Goal Seek

Back-solves one input cell so that a computed result reaches a target,
replacing Excel's Goal Seek for the first-year payout.

Two strategies share one interface:

* SecantGoalSeek samples the residual at the seed and at seed + 100 and
  takes a single linear correction. The residual is affine in the draw
  (every euro drawn compounds by the same factor) plus the rounding of the
  interest column. That rounding also enters the sampled slope, so the
  miss grows with the distance from seed to root; secant_error_bound gives
  the worst case. Iterating to a tolerance is available but off by default.
* StepCascadeGoalSeek walks the input with fixed step sizes picked from the
  distance to the target until the rounded result equals the rounded
  target. Slower; kept as an alternative.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

SLOPE_EPSILON = 1e-15
DEFAULT_SAMPLE_STEP = 100.0
DEFAULT_MAX_ITERATIONS = 50
BISECTION_MIN_WIDTH = 1e-9

# (distance above which the step applies, step size), checked top to bottom
CASCADE_STEPS: Tuple[Tuple[float, float], ...] = (
    (20000, 10000),
    (10000, 5000),
    (1000, 500),
    (100, 50),
    (10, 5),
    (5, 1),
    (2, 1),
    (1, 0.5),
    (0.5, 0.1),
)
CASCADE_MIN_STEP = 0.01


class GoalSeekState(str, Enum):
    SEEDED = "seeded"
    SAMPLED_X0 = "sampled_x0"
    SAMPLED_X1 = "sampled_x1"
    CORRECTED = "corrected"
    FINAL = "final"


@dataclass
class GoalSeekProblem:
    """
    What to solve.

    Attributes:
        evaluate: Writes a candidate input, recomputes, returns the result
        seed: Starting input value
        target: Desired result value
        estimate: Optional first guess computed from the seeded workbook
        cap: Optional ceiling the result must not end above
    """

    evaluate: Callable[[float], float]
    seed: float
    target: float
    estimate: Optional[Callable[[], float]] = None
    cap: Optional[float] = None

    def residual(self, value: float) -> float:
        return self.evaluate(value) - self.target


@dataclass
class GoalSeekResult:
    """Outcome of a goal seek run."""

    value: float
    residual: float
    iterations: int = 0
    samples: List[Tuple[float, float]] = field(default_factory=list)
    states: List[GoalSeekState] = field(default_factory=list)

    @property
    def state(self) -> GoalSeekState:
        return self.states[-1] if self.states else GoalSeekState.SEEDED


class GoalSeekStrategy:
    """Interface shared by the goal seek strategies."""

    name = ""

    def solve(self, problem: GoalSeekProblem) -> GoalSeekResult:
        raise NotImplementedError


def _secant_step(
    x0: float, f0: float, x1: float, f1: float
) -> Optional[float]:
    """Root of the line through two samples, or None when the line is flat."""
    if abs(x1 - x0) <= SLOPE_EPSILON:
        return None
    slope = (f1 - f0) / (x1 - x0)
    if abs(slope) < SLOPE_EPSILON:
        return None
    return x0 - f0 / slope


def secant_error_bound(
    noise: float,
    slope: float,
    distance: float,
    sample_step: float = DEFAULT_SAMPLE_STEP,
) -> float:
    """
    Worst-case |residual| after one secant correction.

    Holds when the result is an affine function of the input plus an error
    term bounded by noise, as the running total is under cent rounding.
    With true slope A, sampled slope s = A + (e1 - e0) / h and d the
    distance from the seed to the affine root, the corrected residual is
    A / s * (d * (e1 - e0) / h - e0) + e_c.

    Args:
        noise: Bound on the error term
        slope: Slope of the affine part
        distance: |seed - root| of the affine part
        sample_step: Distance between the two samples

    Returns:
        The bound, or inf when the sampled slope could be flat
    """
    sampled = abs(slope) - 2 * noise / sample_step
    if sampled <= 0:
        return math.inf
    return abs(slope) / sampled * noise * (2 * distance / sample_step + 1) + noise


def _closest(samples: List[Tuple[float, float]]) -> Tuple[float, float]:
    return min(samples, key=lambda sample: abs(sample[1]))


class SecantGoalSeek(GoalSeekStrategy):
    """
    Two samples, one linear correction.

    With iterate=True further secant steps are taken while they improve the
    residual; after that the root is bisected inside a sign-change bracket
    until |residual| <= tolerance. The result only increases with the input,
    so the bracket always holds the best reachable input.
    """

    name = "secant"

    def __init__(
        self,
        sample_step: float = DEFAULT_SAMPLE_STEP,
        iterate: bool = False,
        tolerance: float = 0.01,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ):
        self.sample_step = sample_step
        self.iterate = iterate
        self.tolerance = tolerance
        self.max_iterations = max_iterations

    def solve(self, problem: GoalSeekProblem) -> GoalSeekResult:
        result = GoalSeekResult(value=problem.seed, residual=0.0)
        result.states.append(GoalSeekState.SEEDED)

        x0 = problem.seed
        f0 = problem.residual(x0)
        result.samples.append((x0, f0))
        result.states.append(GoalSeekState.SAMPLED_X0)

        x1 = x0 + self.sample_step
        f1 = problem.residual(x1)
        result.samples.append((x1, f1))
        result.states.append(GoalSeekState.SAMPLED_X1)

        corrected = _secant_step(x0, f0, x1, f1)
        if corrected is None:
            logger.info(f"Goal seek slope is flat, keeping seed {x0}")
            corrected = x0

        value = corrected
        residual = problem.residual(value)
        result.samples.append((value, residual))
        result.states.append(GoalSeekState.CORRECTED)
        result.iterations = 1

        if self.iterate and abs(residual) > self.tolerance:
            slope = None if corrected == x0 else (f1 - f0) / (x1 - x0)
            value, residual = self._refine(problem, result, slope)

        result.value = value
        result.residual = residual
        result.states.append(GoalSeekState.FINAL)
        logger.debug(
            f"Secant goal seek: x0={x0} f0={f0} x1={x1} f1={f1} "
            f"final={value} residual={residual} iterations={result.iterations}"
        )
        return result

    def _sample(self, problem: GoalSeekProblem, result: GoalSeekResult, x: float) -> float:
        residual = problem.residual(x)
        result.samples.append((x, residual))
        result.states.append(GoalSeekState.CORRECTED)
        result.iterations += 1
        return residual

    def _refine(
        self,
        problem: GoalSeekProblem,
        result: GoalSeekResult,
        slope: Optional[float],
    ) -> Tuple[float, float]:
        previous, current = result.samples[-2], result.samples[-1]
        while (
            abs(current[1]) > self.tolerance
            and result.iterations < self.max_iterations
        ):
            step = _secant_step(previous[0], previous[1], current[0], current[1])
            if step is None:
                break
            candidate = (step, self._sample(problem, result, step))
            # Rounding noise dominates once steps stop improving
            if abs(candidate[1]) >= abs(current[1]):
                break
            previous, current = current, candidate

        best = _closest(result.samples)
        if abs(best[1]) <= self.tolerance or not slope:
            return best
        return self._bisect(problem, result, slope)

    def _bisect(
        self, problem: GoalSeekProblem, result: GoalSeekResult, slope: float
    ) -> Tuple[float, float]:
        best = _closest(result.samples)
        below = [sample for sample in result.samples if sample[1] < 0]
        above = [sample for sample in result.samples if sample[1] > 0]

        # Widen from the best sample until the residual changes sign
        step = abs(best[1] / slope)
        while not (below and above) and result.iterations < self.max_iterations:
            step *= 2
            x = best[0] - math.copysign(step, best[1] / slope)
            residual = self._sample(problem, result, x)
            if abs(residual) <= self.tolerance:
                return x, residual
            (below if residual < 0 else above).append((x, residual))

        if not (below and above):
            return _closest(result.samples)

        low = max(below, key=lambda sample: sample[1])
        high = min(above, key=lambda sample: sample[1])
        while (
            result.iterations < self.max_iterations
            and abs(high[0] - low[0]) > BISECTION_MIN_WIDTH
        ):
            mid = (low[0] + high[0]) / 2
            residual = self._sample(problem, result, mid)
            if abs(residual) <= self.tolerance:
                return mid, residual
            if residual < 0:
                low = (mid, residual)
            else:
                high = (mid, residual)

        return _closest(result.samples)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def cascade_step(distance: float) -> float:
    """Step size for a given absolute distance to the target."""
    for threshold, step in CASCADE_STEPS:
        if distance > threshold:
            return step
    return CASCADE_MIN_STEP


class StepCascadeGoalSeek(GoalSeekStrategy):
    """Adaptive fixed-step search on the rounded result."""

    name = "step_cascade"

    def __init__(self, max_iterations: int = 200, cap_iterations: int = 500):
        self.max_iterations = max_iterations
        self.cap_iterations = cap_iterations

    def solve(self, problem: GoalSeekProblem) -> GoalSeekResult:
        result = GoalSeekResult(value=problem.seed, residual=0.0)
        result.states.append(GoalSeekState.SEEDED)

        goal = _round_half_up(problem.target)
        value = problem.seed
        current = problem.evaluate(value)
        result.samples.append((value, current - problem.target))

        iteration = 0
        while _round_half_up(current) != goal and iteration <= self.max_iterations:
            if iteration == 0 and problem.estimate is not None:
                value = problem.estimate()
            else:
                diff = _round_half_up(current) - goal
                step = cascade_step(abs(diff))
                value = value - step if diff > 0 else value + step

            current = problem.evaluate(value)
            result.samples.append((value, current - problem.target))
            result.states.append(GoalSeekState.CORRECTED)
            iteration += 1

        if problem.cap is not None and _round_half_up(current) > problem.cap:
            logger.info(f"Result {current} above cap {problem.cap}, stepping down")
            for _ in range(self.cap_iterations):
                diff = _round_half_up(current) - problem.cap
                if abs(diff) < 1:
                    break
                step = cascade_step(abs(diff))
                value = value - step if diff > 0 else value + step
                current = problem.evaluate(value)
                result.samples.append((value, current - problem.target))
                result.states.append(GoalSeekState.CORRECTED)
                iteration += 1

        if _round_half_up(current) != goal:
            logger.warning(
                f"Step cascade stopped after {iteration} steps at {current} "
                f"(target {problem.target})"
            )

        result.value = value
        result.residual = current - problem.target
        result.iterations = iteration
        result.states.append(GoalSeekState.FINAL)
        return result


def build_strategy(
    name: str = "secant",
    sample_step: float = DEFAULT_SAMPLE_STEP,
    iterate: bool = False,
    tolerance: float = 0.01,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> GoalSeekStrategy:
    """Create a strategy by its configured name."""
    if name == SecantGoalSeek.name:
        return SecantGoalSeek(
            sample_step=sample_step,
            iterate=iterate,
            tolerance=tolerance,
            max_iterations=max_iterations,
        )
    if name == StepCascadeGoalSeek.name:
        return StepCascadeGoalSeek()
    raise ValueError(f"Unknown goal seek strategy: {name!r}")
