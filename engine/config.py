"""
Engine Parameters: Tunable constants shared by every component.

Based on:
- Cheng et al. (1992). D-max lactate threshold method
- Bishop et al. (1998). Modified D-max
- Gonzalez-Badillo & Sanchez-Medina (2010). Load-velocity relationship
- Casado et al. (2022). Norwegian double-threshold prerequisites

All thresholds used by the fitting, validation and planning code are
collected here so that a single parameter set can be validated, serialized
and passed explicitly into any computation.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, Tuple


# Single epsilon for every invariant check (percentage sums, R² bounds)
FLOAT_TOLERANCE = 1e-2


@dataclass
class EngineParams:
    """
    Tunable parameters for the Training Science Engine.

    Percentages are expressed as decimals (e.g., 0.20 = 20%) unless the
    field name says otherwise.
    """

    # ═══════════════════════════════════════════════════════════════════════════
    # TOLERANCE
    # ═══════════════════════════════════════════════════════════════════════════

    float_tolerance: float = FLOAT_TOLERANCE

    # ═══════════════════════════════════════════════════════════════════════════
    # D-MAX LACTATE ANALYSIS
    # ═══════════════════════════════════════════════════════════════════════════
    # A cubic needs at least 4 stages; below the fallback R² the curve shape
    # is not trusted and the fixed 4 mmol/L method is used instead.

    dmax_min_stages: int = 4
    dmax_grid_points: int = 1000
    dmax_fallback_r_squared: float = 0.90
    dmax_high_r_squared: float = 0.95
    dmax_fallback_lactate: float = 4.0      # mmol/L (OBLA)
    dmax_lt1_rise: float = 0.4              # mmol/L above baseline
    max_lactate_drop: float = 0.2           # mmol/L tolerated between stages
    dmax_low_relative_distance: float = 0.05
    dmax_high_relative_distance: float = 0.10

    # ═══════════════════════════════════════════════════════════════════════════
    # LOAD-VELOCITY PROFILE
    # ═══════════════════════════════════════════════════════════════════════════

    lv_min_loads: int = 3
    lv_min_r_squared: float = 0.8
    lv_min_range_fraction: float = 0.20     # Tested range vs. estimated 1RM
    e1rm_velocities: Tuple[float, ...] = (0.30, 0.20, 0.15)  # m/s

    # ═══════════════════════════════════════════════════════════════════════════
    # FIELD TESTS
    # ═══════════════════════════════════════════════════════════════════════════

    cv_good_r_squared: float = 0.95
    cv_max_time_ratio: float = 0.8         # Shortest/longest trial duration
    hr_series_mismatch_bpm: float = 3.0

    # ═══════════════════════════════════════════════════════════════════════════
    # METHODOLOGY ELIGIBILITY
    # ═══════════════════════════════════════════════════════════════════════════

    norwegian_min_training_years: int = 2
    norwegian_min_weekly_km: float = 60.0
    singles_min_training_years: int = 1
    singles_min_weekly_km: float = 40.0
    trailing_window_days: int = 28

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'EngineParams':
        """Create parameters from dictionary."""
        d = dict(d)
        if 'e1rm_velocities' in d:
            d['e1rm_velocities'] = tuple(d['e1rm_velocities'])
        return cls(**d)

    def validate(self) -> Tuple[bool, str]:
        """Validate parameter constraints."""
        issues = []

        if not (0 < self.float_tolerance < 1):
            issues.append("float_tolerance must be in (0, 1)")

        if self.dmax_min_stages < 4:
            issues.append("A cubic fit needs dmax_min_stages >= 4")

        if self.dmax_grid_points < 10:
            issues.append("dmax_grid_points must be >= 10")

        if not (0 < self.dmax_fallback_r_squared <= self.dmax_high_r_squared <= 1):
            issues.append("D-max R²: 0 < fallback <= high <= 1")

        if not (0 <= self.dmax_low_relative_distance <= self.dmax_high_relative_distance):
            issues.append("D-max relative distance: 0 <= low <= high")

        if self.lv_min_loads < 2:
            issues.append("lv_min_loads must be >= 2")

        if not (0 < self.lv_min_r_squared <= 1):
            issues.append("lv_min_r_squared must be in (0, 1]")

        if not self.e1rm_velocities or any(v <= 0 for v in self.e1rm_velocities):
            issues.append("e1rm_velocities must be positive")

        if not (0 < self.cv_max_time_ratio < 1):
            issues.append("cv_max_time_ratio must be in (0, 1)")

        if self.norwegian_min_weekly_km <= 0 or self.trailing_window_days < 7:
            issues.append("Eligibility: weekly km > 0 and window >= 7 days")

        for name, (low, high) in PARAM_BOUNDS.items():
            value = getattr(self, name)
            if not (low <= value <= high):
                issues.append(f"{name}={value} outside [{low}, {high}]")

        if issues:
            return False, "; ".join(issues)
        return True, "Valid"


# Bounds used when parameters are tuned or loaded from user input
PARAM_BOUNDS = {
    'dmax_fallback_r_squared': (0.80, 0.95),
    'dmax_high_r_squared': (0.90, 0.99),
    'dmax_lt1_rise': (0.2, 1.0),
    'lv_min_r_squared': (0.7, 0.95),
    'lv_min_range_fraction': (0.10, 0.40),
    'cv_good_r_squared': (0.90, 0.99),
    'norwegian_min_weekly_km': (40.0, 80.0),
}
