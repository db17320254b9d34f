from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from errors import InvalidInputError, UndefinedMetricError


@dataclass(frozen=True)
class RegressionMetrics:
    r2: float
    rmse: float
    mae: float
    r2_defined: bool = True

    def require_r2(self) -> float:
        if not self.r2_defined:
            raise UndefinedMetricError("R^2 is undefined when the actual values are constant")
        return self.r2

    def to_dict(self) -> dict:
        return {
            "r2": None if not self.r2_defined else self.r2,
            "rmse": self.rmse,
            "mae": self.mae,
            "r2_defined": self.r2_defined,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RegressionMetrics":
        defined = bool(data.get("r2_defined", data.get("r2") is not None))
        return cls(
            r2=float(data["r2"]) if defined else float("nan"),
            rmse=float(data["rmse"]),
            mae=float(data["mae"]),
            r2_defined=defined,
        )


def compute_metrics(actual, predicted) -> RegressionMetrics:
    """R^2, RMSE and MAE. R^2 of a constant `actual` is reported as NaN with r2_defined=False."""
    actual = np.asarray(actual, dtype=np.float64).ravel()
    predicted = np.asarray(predicted, dtype=np.float64).ravel()
    if actual.size == 0 or predicted.size == 0:
        raise InvalidInputError("metrics need at least one value")
    if actual.size != predicted.size:
        raise InvalidInputError(
            f"actual has {actual.size} values but predicted has {predicted.size}"
        )

    residuals = actual - predicted
    ss_res = float(np.sum(residuals ** 2))
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    rmse = float(np.sqrt(ss_res / actual.size))
    mae = float(np.mean(np.abs(residuals)))

    if np.all(actual == actual[0]):
        return RegressionMetrics(r2=float("nan"), rmse=rmse, mae=mae, r2_defined=False)
    return RegressionMetrics(r2=1.0 - ss_res / ss_tot, rmse=rmse, mae=mae)
