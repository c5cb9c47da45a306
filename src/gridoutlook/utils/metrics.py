"""
Utilities: goodness-of-fit metrics for the trend regressions.

All functions accept numpy arrays or lists and return Python floats.
"""
import numpy as np


def r2_score(y_true, y_pred) -> float:
    """Coefficient of determination (R²).

    R² = 1 - SS_res / SS_tot

    A constant series has SS_tot = 0 and is reported as 0, not NaN.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if y_true.size == 0:
        return 0.0
    ss_res = np.sum((y_true - y_pred) ** 2)
    ss_tot = np.sum((y_true - np.mean(y_true)) ** 2)
    if ss_tot == 0:
        return 0.0
    return float(1.0 - ss_res / ss_tot)

