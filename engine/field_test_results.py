"""
Field Test Results: Shared output types for the protocol analyzers.

Every analyzer returns a FieldTestResult carrying threshold estimates, a
confidence grade and a validation summary. Input contract violations are
raised as FieldTestValidationError before any analysis runs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List

from .confidence import ConfidenceLevel


class FieldTestType(Enum):
    """Supported field test protocols."""
    THIRTY_MIN_TT = "THIRTY_MIN_TT"           # 30-minute solo time trial
    HR_DRIFT = "HR_DRIFT"                     # Steady run, cardiac drift
    CRITICAL_VELOCITY = "CRITICAL_VELOCITY"   # 2-4 maximal trials
    TWENTY_MIN_TT = "TWENTY_MIN_TT"           # 20-minute time trial
    RACE_BASED = "RACE_BASED"                 # Recent race result


class FieldTestValidationError(ValueError):
    """Raised when a field test submission violates its input schema."""

    def __init__(self, test_type: FieldTestType, errors: List[str]):
        self.test_type = test_type
        self.errors = list(errors)
        super().__init__(f"Invalid {test_type.value} input: " + "; ".join(self.errors))


@dataclass
class ValidationSummary:
    """Outcome of physiological and consistency checks."""
    valid: bool = True
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def warn(self, message: str):
        self.warnings.append(message)

    def fail(self, message: str):
        self.errors.append(message)
        self.valid = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'valid': self.valid,
            'warnings': list(self.warnings),
            'errors': list(self.errors),
        }


@dataclass(frozen=True)
class ThresholdEstimate:
    """Estimated threshold expressed as running pace and heart rate."""
    pace_sec_per_km: float
    heart_rate: Optional[int] = None

    @property
    def speed_kmh(self) -> float:
        return 3600.0 / self.pace_sec_per_km

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'pace_sec_per_km': round(self.pace_sec_per_km, 1),
            'pace': format_pace(self.pace_sec_per_km),
            'speed_kmh': round(self.speed_kmh, 2),
            'heart_rate': self.heart_rate,
        }


@dataclass
class FieldTestResult:
    """
    Complete analysis of one field test.

    Results with valid=False must not be used to update training zones.
    assumed_fields lists inputs that were synthesized by default filling.
    """
    test_type: FieldTestType
    confidence: ConfidenceLevel
    validation: ValidationSummary
    lt1: Optional[ThresholdEstimate] = None
    lt2: Optional[ThresholdEstimate] = None
    recommendations: List[str] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    assumed_fields: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.validation.valid

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the external response shape."""
        return {
            'test_type': self.test_type.value,
            'thresholds': {
                'lt1': self.lt1.to_dict() if self.lt1 else None,
                'lt2': self.lt2.to_dict() if self.lt2 else None,
            },
            'confidence': self.confidence.value,
            'validation': self.validation.to_dict(),
            'recommendations': list(self.recommendations),
            'metrics': dict(self.metrics),
            'assumed_fields': list(self.assumed_fields),
        }


def format_pace(sec_per_km: float) -> str:
    """Format seconds per km as m:ss/km."""
    total = int(round(sec_per_km))
    return f"{total // 60}:{total % 60:02d}/km"
