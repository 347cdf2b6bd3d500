"""
listing_scraper Core Module
Provides identifier classification, request budgeting, browser camouflage and
failure classification shared by the acquisition pipeline.
"""

from .admission import AdmissionController, AdmissionDecision, DenialReason, RequestBudgetState
from .camouflage import ActionKind, CamouflageProvider
from .context import AcquisitionContext
from .failure_classifier import FailureType, FetchError
from .identifiers import Identifier, IdentifierKind, Rejection, classify

__all__ = [
    "AcquisitionContext",
    "ActionKind",
    "AdmissionController",
    "AdmissionDecision",
    "CamouflageProvider",
    "DenialReason",
    "FailureType",
    "FetchError",
    "Identifier",
    "IdentifierKind",
    "Rejection",
    "RequestBudgetState",
    "classify",
]
