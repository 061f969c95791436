# -*- coding: utf-8 -*-
"""
psychometric/errors.py  •  PSE pipeline

Error / warning taxonomy.

Only structural input problems are fatal (InvalidInputError). Everything that
concerns a single row or a single (ID, Condition) unit is reported through the
standard `warnings` machinery and recovered locally, so one bad participant
never aborts a run. Callers can escalate with
`warnings.simplefilter("error", PSEWarning)`.
"""
from __future__ import annotations


class InvalidInputError(ValueError):
    """Required column absent, empty table, or no valid trial left."""


class PSEWarning(UserWarning):
    """Base class of all recoverable pipeline warnings."""


class InvalidRecordWarning(PSEWarning):
    """Trial rows excluded during validation."""


class NonIdentifiableGroupWarning(PSEWarning):
    """Unit with < 2 distinct X levels or no variation in Y; fit skipped."""


class FitConvergenceWarning(PSEWarning):
    """IRLS did not converge, diverged (separation) or hit a singular system."""


class UndefinedPSEWarning(PSEWarning):
    """Slope within the numerical floor of zero; PSE left undefined."""
