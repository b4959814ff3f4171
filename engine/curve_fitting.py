"""
Curve Fitting: Regression primitives for threshold and profile analysis.

Based on:
- Ordinary least squares (linear and cubic polynomial)
- Cheng et al. (1992). Perpendicular distance from a baseline (D-max)

These are the numerical building blocks used by the lactate threshold
extractor, the critical velocity analyzer and the load-velocity profiler.
All functions are deterministic and side-effect free.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any, Sequence, Tuple, Union
import numpy as np
from scipy.optimize import minimize_scalar


Point = Tuple[float, float]
ArrayLike = Union[float, np.ndarray]


@dataclass(frozen=True)
class LinearFit:
    """Result of an ordinary least squares line fit: y = slope * x + intercept."""
    slope: float
    intercept: float
    r_squared: float

    def predict(self, x: ArrayLike) -> ArrayLike:
        return self.slope * np.asarray(x, dtype=float) + self.intercept

    def solve_for_x(self, y: float) -> Optional[float]:
        """Invert the line. Returns None for a flat line."""
        if self.slope == 0:
            return None
        return (y - self.intercept) / self.slope

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'slope': self.slope,
            'intercept': self.intercept,
            'r_squared': self.r_squared,
        }


@dataclass(frozen=True)
class CubicFit:
    """
    Cubic polynomial y = a*x^3 + b*x^2 + c*x + d.

    r_squared is the coefficient of determination over the fitted points.
    """
    a: float
    b: float
    c: float
    d: float
    r_squared: float = 0.0

    @property
    def coefficients(self) -> Tuple[float, float, float, float]:
        return (self.a, self.b, self.c, self.d)

    def evaluate(self, x: ArrayLike) -> ArrayLike:
        """Evaluate the polynomial at x (scalar or array)."""
        return np.polyval(self.coefficients, np.asarray(x, dtype=float))

    def derivative(self, x: ArrayLike) -> ArrayLike:
        """First derivative dy/dx at x."""
        x = np.asarray(x, dtype=float)
        return 3 * self.a * x ** 2 + 2 * self.b * x + self.c

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {'a': self.a, 'b': self.b, 'c': self.c, 'd': self.d}


def _split_points(points: Sequence[Point]) -> Tuple[np.ndarray, np.ndarray]:
    if len(points) == 0:
        return np.array([]), np.array([])
    arr = np.asarray(points, dtype=float)
    return arr[:, 0], arr[:, 1]


def calculate_r_squared(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """
    Calculate the coefficient of determination.

    Formula:
        R² = 1 - SS_res / SS_tot

    When the observed values have no variance, a perfect prediction
    returns 1.0 and any residual returns 0.0.

    Args:
        actual: Observed values
        predicted: Model predictions for the same points

    Returns:
        R² value
    """
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)

    ss_res = float(np.sum((actual - predicted) ** 2))
    ss_tot = float(np.sum((actual - np.mean(actual)) ** 2))

    if ss_tot == 0:
        return 1.0 if ss_res < 1e-12 else 0.0

    return 1.0 - ss_res / ss_tot


def linear_regression(points: Sequence[Point]) -> LinearFit:
    """
    Ordinary least squares line through (x, y) points.

    Fewer than 2 points, or points that all share the same x, give a
    degenerate zero fit instead of raising. Callers that need a real fit
    must check cardinality themselves.

    Args:
        points: Sequence of (x, y) pairs

    Returns:
        LinearFit with slope, intercept and r_squared
    """
    if len(points) < 2:
        return LinearFit(slope=0.0, intercept=0.0, r_squared=0.0)

    x, y = _split_points(points)
    x_mean = np.mean(x)
    y_mean = np.mean(y)

    ss_xx = float(np.sum((x - x_mean) ** 2))
    if ss_xx == 0:
        return LinearFit(slope=0.0, intercept=0.0, r_squared=0.0)

    slope = float(np.sum((x - x_mean) * (y - y_mean)) / ss_xx)
    intercept = float(y_mean - slope * x_mean)
    r_squared = calculate_r_squared(y, slope * x + intercept)

    return LinearFit(slope=slope, intercept=intercept, r_squared=r_squared)


def polynomial_regression_3(points: Sequence[Point]) -> CubicFit:
    """
    Cubic least squares fit.

    Args:
        points: Sequence of (x, y) pairs, at least 4 with distinct x

    Returns:
        CubicFit with coefficients a, b, c, d and r_squared

    Raises:
        ValueError: If fewer than 4 points are supplied
    """
    if len(points) < 4:
        raise ValueError(
            f"Cubic fit needs at least 4 points, got {len(points)}"
        )

    x, y = _split_points(points)
    a, b, c, d = np.polyfit(x, y, 3)
    fit = CubicFit(a=float(a), b=float(b), c=float(c), d=float(d))

    r_squared = calculate_r_squared(y, fit.evaluate(x))
    return CubicFit(a=fit.a, b=fit.b, c=fit.c, d=fit.d, r_squared=r_squared)


def perpendicular_distance(
    fit: CubicFit,
    x: ArrayLike,
    baseline_slope: float,
    baseline_intercept: float
) -> ArrayLike:
    """
    Perpendicular distance between the curve at x and a baseline line.

    Formula:
        distance = |f(x) - (m*x + b)| / sqrt(1 + m^2)
    """
    x = np.asarray(x, dtype=float)
    offset = fit.evaluate(x) - (baseline_slope * x + baseline_intercept)
    return np.abs(offset) / np.sqrt(1.0 + baseline_slope ** 2)


def find_max_perpendicular_distance(
    fit: CubicFit,
    x_start: float,
    x_end: float,
    n_points: int = 1000,
    baseline: Optional[Tuple[float, float]] = None
) -> Tuple[float, float]:
    """
    Locate the x where the curve deviates most from a baseline.

    The search samples n_points strictly inside (x_start, x_end), takes the
    best grid point, then refines it with a bounded scalar search over the
    neighbouring grid cells. The result therefore never sits on an end point.

    Args:
        fit: Fitted cubic
        x_start: Lower bound of the search interval
        x_end: Upper bound of the search interval
        n_points: Number of grid samples
        baseline: (slope, intercept) of the reference line; defaults to the
            chord between the curve values at x_start and x_end

    Returns:
        Tuple of (x at maximum distance, maximum distance)
    """
    if x_end <= x_start:
        raise ValueError(f"Search interval is empty: [{x_start}, {x_end}]")

    if baseline is None:
        y_start = float(fit.evaluate(x_start))
        y_end = float(fit.evaluate(x_end))
        slope = (y_end - y_start) / (x_end - x_start)
        baseline = (slope, y_start - slope * x_start)

    m, b = baseline
    grid = np.linspace(x_start, x_end, n_points + 2)[1:-1]
    distances = perpendicular_distance(fit, grid, m, b)

    best = int(np.argmax(distances))
    best_x = float(grid[best])
    best_distance = float(distances[best])

    low = grid[max(best - 1, 0)]
    high = grid[min(best + 1, len(grid) - 1)]
    if high > low:
        result = minimize_scalar(
            lambda x: -float(perpendicular_distance(fit, x, m, b)),
            bounds=(low, high),
            method='bounded'
        )
        if result.success and -result.fun > best_distance:
            best_x = float(result.x)
            best_distance = float(-result.fun)

    return best_x, best_distance


def interpolate_linear(x: float, xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Linear interpolation of y at x, clamped to the end values.

    Args:
        x: Query point
        xs: Known x values (any order)
        ys: Known y values

    Returns:
        Interpolated y
    """
    if len(xs) != len(ys):
        raise ValueError(f"Length mismatch: {len(xs)} x values, {len(ys)} y values")
    if len(xs) == 0:
        raise ValueError("Cannot interpolate without data")

    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    order = np.argsort(xs)
    return float(np.interp(x, xs[order], ys[order]))


if __name__ == '__main__':
    print("Curve Fitting Examples")
    print("=" * 50)

    line = linear_regression([(60, 1.2), (80, 0.95), (100, 0.7), (120, 0.45)])
    print(f"\nLinear: slope={line.slope:.4f}, intercept={line.intercept:.3f}, "
          f"R²={line.r_squared:.4f}")

    stages = [(10, 1.1), (11, 1.2), (12, 1.4), (13, 1.9), (14, 2.8), (15, 4.4), (16, 7.0)]
    cubic = polynomial_regression_3(stages)
    print(f"\nCubic: a={cubic.a:.4f}, b={cubic.b:.4f}, c={cubic.c:.4f}, "
          f"d={cubic.d:.4f}, R²={cubic.r_squared:.4f}")

    x, dist = find_max_perpendicular_distance(cubic, 10, 16)
    print(f"Max distance from chord at x={x:.2f} (distance={dist:.3f})")
