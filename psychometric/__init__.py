"""Logistic fits and Points of Subjective Equality per participant and condition."""
from psychometric.aggregate import GroupCell, aggregate_group, aggregate_individual, cells_by_unit, cells_to_frame
from psychometric.errors import (
    FitConvergenceWarning,
    InvalidInputError,
    InvalidRecordWarning,
    NonIdentifiableGroupWarning,
    PSEWarning,
    UndefinedPSEWarning,
)
from psychometric.fit_logistic import FitResult, fit_cells
from psychometric.pipeline import PSEAnalysis, PipelineSummary, analyse_dataset, run_pipeline
from psychometric.pse import PSEResult, compute_pse
from psychometric.results import build_result_table, summarise_pse
from psychometric.trials import TrialDataset, TrialRecord

__version__ = "0.1.0"
