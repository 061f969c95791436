# -*- coding: utf-8 -*-
"""
psychometric/pse.py  •  PSE pipeline

Point of Subjective Equality: the X at which the fitted P(Y=1) equals 0.5,

    pse = -a / b

defined only for a valid fit whose |b| exceeds a numerical floor. Otherwise
pse is NaN and `pse_defined` is False; the marker travels with the row so an
undefined PSE is never mistaken for a number downstream.
"""
from __future__ import annotations

import math
import warnings
from dataclasses import dataclass

from psychometric.errors import UndefinedPSEWarning
from psychometric.fit_logistic import FitResult, unit_label

PSE_FLOOR = 1e-12

PSE_OK = "ok"
PSE_UNDEFINED_SLOPE = "undefined_slope"
PSE_NO_FIT = "no_fit"


@dataclass(frozen=True)
class PSEResult:
    fit: FitResult
    pse: float
    pse_status: str

    @property
    def pse_defined(self) -> bool:
        return self.pse_status == PSE_OK

    @property
    def unit(self):
        return self.fit.unit

    @property
    def intercept(self) -> float:
        return self.fit.intercept

    @property
    def slope(self) -> float:
        return self.fit.slope

    @property
    def slope_p_value(self) -> float:
        return self.fit.slope_p_value


def compute_pse(fit: FitResult, floor: float = PSE_FLOOR) -> PSEResult:
    if not fit.valid:
        # already flagged by the fitter
        return PSEResult(fit=fit, pse=float("nan"), pse_status=PSE_NO_FIT)

    if not abs(fit.slope) > float(floor):
        warnings.warn(
            f"{unit_label(fit.unit)}: slope {fit.slope:.3g} within {float(floor):g} of zero, PSE undefined.",
            UndefinedPSEWarning,
            stacklevel=2,
        )
        return PSEResult(fit=fit, pse=float("nan"), pse_status=PSE_UNDEFINED_SLOPE)

    pse = -fit.intercept / fit.slope
    if not math.isfinite(pse):
        warnings.warn(f"{unit_label(fit.unit)}: non-finite PSE ({pse}).", UndefinedPSEWarning, stacklevel=2)
        return PSEResult(fit=fit, pse=float("nan"), pse_status=PSE_UNDEFINED_SLOPE)

    return PSEResult(fit=fit, pse=float(pse), pse_status=PSE_OK)
