"""Pydantic schemas for step patches and API endpoints.

API request/response models live in hireflow.schemas.onboarding and are
imported from there directly; they depend on the service layer, which
itself imports the step patches below.
"""

from hireflow.schemas.steps import (
    ApplicationPage1Patch,
    ApplicationPage2Patch,
    ApplicationPage3Patch,
    ApplicationPage4Patch,
    ApplicationPage5Patch,
    CarriersEdgeTrainingPatch,
    DrugTestPatch,
    DriveTestPatch,
    FlatbedTrainingPatch,
    PoliciesConsentsPatch,
    PrequalificationsPatch,
    StepPatch,
)

__all__ = [
    "StepPatch",
    # Prequalifications and application form
    "PrequalificationsPatch",
    "ApplicationPage1Patch",
    "ApplicationPage2Patch",
    "ApplicationPage3Patch",
    "ApplicationPage4Patch",
    "ApplicationPage5Patch",
    # Policies, appraisal, and training
    "PoliciesConsentsPatch",
    "DriveTestPatch",
    "CarriersEdgeTrainingPatch",
    "DrugTestPatch",
    "FlatbedTrainingPatch",
]
