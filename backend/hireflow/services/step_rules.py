"""Per-step rules: which record and section a step writes, its patch model,
its file fields, and when it stops being editable.

The table is built once and injected into the orchestrator. It is the only
place that knows the shape of each step; the orchestrator itself is
step-agnostic apart from the business outcomes it applies.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import cast

from hireflow.core.errors import ValidationError
from hireflow.repositories.base import SectionSchemas
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
    LicenseType,
    PoliciesConsentsPatch,
    PrequalificationsPatch,
    StepPatch,
)
from hireflow.services.employment_history import (
    summarize_issues,
    validate_employment_history,
)
from hireflow.services.file_fields import AssetSlot, FileFieldMap
from hireflow.services.onboarding_types import RecordKind
from hireflow.services.progress_gate import StepId
from hireflow.storage.keys import StorageFolder, allowed_mime_types

PatchCheck = Callable[[StepPatch], None]


@dataclass(frozen=True)
class StepRule:
    """How one step is stored and validated.

    Attributes:
        step: Step this rule applies to.
        kind: Record the step writes to.
        section: Section of record.data the step owns.
        patch_model: Accepted patch type.
        file_fields: File paths inside the section -> upload folder.
        locked_at: Once the session reaches this step, the step can no
            longer be edited. None means editable until completion.
        checks: Business checks on the parsed patch, run before any write.
    """

    step: StepId
    kind: RecordKind
    section: str
    patch_model: type[StepPatch]
    file_fields: FileFieldMap = field(default_factory=dict)
    locked_at: StepId | None = None
    checks: tuple[PatchCheck, ...] = ()


# =============================================================================
# Business checks
# =============================================================================


def check_first_license(patch: StepPatch) -> None:
    """The first license must be AZ and carry both photos."""
    first = cast(ApplicationPage1Patch, patch).licenses[0]
    if first.license_type != LicenseType.AZ:
        raise ValidationError(
            message="First license must be of type AZ",
            details=[{"field": "licenses.0.license_type", "error": "AZ_REQUIRED"}],
        )
    missing = [
        name for name in ("front_photo", "back_photo") if getattr(first, name) is None
    ]
    if missing:
        raise ValidationError(
            message="First license must include front and back photos",
            details=[
                {"field": f"licenses.0.{name}", "error": "REQUIRED"} for name in missing
            ],
        )


def check_employment_history(patch: StepPatch) -> None:
    """Run the interval policy over the submitted employment entries."""
    employments = cast(ApplicationPage2Patch, patch).employments
    issues = validate_employment_history(employments)
    if issues:
        raise ValidationError(
            message=summarize_issues(issues),
            details=[issue.to_detail() for issue in issues],
        )


def check_file_types(slots: Sequence[AssetSlot]) -> None:
    """Every referenced file must have a MIME type its folder accepts.

    Raises:
        ValidationError: Listing every offending field.
    """
    bad = [
        slot
        for slot in slots
        if slot.asset.mime_type.lower() not in allowed_mime_types(slot.folder)
    ]
    if bad:
        raise ValidationError(
            message="One or more files have a type that is not allowed",
            details=[
                {
                    "field": ".".join(str(part) for part in slot.location),
                    "error": "MIME_NOT_ALLOWED",
                    "allowed": sorted(allowed_mime_types(slot.folder)),
                }
                for slot in bad
            ],
        )


# =============================================================================
# Rule table
# =============================================================================

_APPLICATION_LOCK = StepId.DRIVE_TEST

STEP_RULES: tuple[StepRule, ...] = (
    StepRule(
        step=StepId.PREQUALIFICATIONS,
        kind=RecordKind.PRE_QUALIFICATION,
        section="answers",
        patch_model=PrequalificationsPatch,
        locked_at=_APPLICATION_LOCK,
    ),
    StepRule(
        step=StepId.APPLICATION_PAGE_1,
        kind=RecordKind.APPLICATION_FORM,
        section="page1",
        patch_model=ApplicationPage1Patch,
        file_fields={
            "sin_photo": StorageFolder.SIN_PHOTOS,
            "licenses[].front_photo": StorageFolder.LICENSES,
            "licenses[].back_photo": StorageFolder.LICENSES,
        },
        locked_at=_APPLICATION_LOCK,
        checks=(check_first_license,),
    ),
    StepRule(
        step=StepId.APPLICATION_PAGE_2,
        kind=RecordKind.APPLICATION_FORM,
        section="page2",
        patch_model=ApplicationPage2Patch,
        locked_at=_APPLICATION_LOCK,
        checks=(check_employment_history,),
    ),
    StepRule(
        step=StepId.APPLICATION_PAGE_3,
        kind=RecordKind.APPLICATION_FORM,
        section="page3",
        patch_model=ApplicationPage3Patch,
        locked_at=_APPLICATION_LOCK,
    ),
    StepRule(
        step=StepId.APPLICATION_PAGE_4,
        kind=RecordKind.APPLICATION_FORM,
        section="page4",
        patch_model=ApplicationPage4Patch,
        file_fields={
            "hst_photos[]": StorageFolder.HST_PHOTOS,
            "incorporation_photos[]": StorageFolder.INCORPORATION_PHOTOS,
            "banking_info_photos[]": StorageFolder.BANKING_INFO_PHOTOS,
            "health_card_photos[]": StorageFolder.HEALTH_CARD_PHOTOS,
            "medical_cert_photos[]": StorageFolder.MEDICAL_CERT_PHOTOS,
            "passport_photos[]": StorageFolder.PASSPORT_PHOTOS,
            "us_visa_photos[]": StorageFolder.US_VISA_PHOTOS,
            "pr_citizenship_photos[]": StorageFolder.PR_CITIZENSHIP_PHOTOS,
            "fast_card.front_photo": StorageFolder.FAST_CARD_PHOTOS,
            "fast_card.back_photo": StorageFolder.FAST_CARD_PHOTOS,
        },
        locked_at=_APPLICATION_LOCK,
    ),
    StepRule(
        step=StepId.APPLICATION_PAGE_5,
        kind=RecordKind.APPLICATION_FORM,
        section="page5",
        patch_model=ApplicationPage5Patch,
        locked_at=_APPLICATION_LOCK,
    ),
    StepRule(
        step=StepId.POLICIES_CONSENTS,
        kind=RecordKind.POLICIES_CONSENTS,
        section="consents",
        patch_model=PoliciesConsentsPatch,
        file_fields={"signature": StorageFolder.SIGNATURES},
        locked_at=_APPLICATION_LOCK,
    ),
    StepRule(
        step=StepId.DRIVE_TEST,
        kind=RecordKind.DRIVE_TEST,
        section="assessment",
        patch_model=DriveTestPatch,
        file_fields={
            "pre_trip.supervisor_signature": StorageFolder.SIGNATURES,
            "on_road.supervisor_signature": StorageFolder.SIGNATURES,
        },
        locked_at=StepId.CARRIERS_EDGE_TRAINING,
    ),
    StepRule(
        step=StepId.CARRIERS_EDGE_TRAINING,
        kind=RecordKind.CARRIERS_EDGE_TRAINING,
        section="training",
        patch_model=CarriersEdgeTrainingPatch,
        file_fields={"certificates[]": StorageFolder.CARRIERS_EDGE_CERTIFICATES},
        locked_at=StepId.DRUG_TEST,
    ),
    StepRule(
        step=StepId.DRUG_TEST,
        kind=RecordKind.DRUG_TEST,
        section="results",
        patch_model=DrugTestPatch,
        file_fields={"documents[]": StorageFolder.DRUG_TEST_DOCS},
        locked_at=StepId.FLATBED_TRAINING,
    ),
    StepRule(
        step=StepId.FLATBED_TRAINING,
        kind=RecordKind.FLATBED_TRAINING,
        section="training",
        patch_model=FlatbedTrainingPatch,
        file_fields={"certificates[]": StorageFolder.FLATBED_TRAINING_CERTIFICATES},
    ),
)


class StepRules:
    """Lookup over a rule table.

    Args:
        rules: One rule per StepId.

    Raises:
        ValueError: If a step has no rule or more than one.
    """

    def __init__(self, rules: Sequence[StepRule] = STEP_RULES) -> None:
        by_step: dict[StepId, StepRule] = {}
        for rule in rules:
            if rule.step in by_step:
                raise ValueError(f"Duplicate rule for step {rule.step.value}")
            by_step[rule.step] = rule
        missing = set(StepId) - set(by_step)
        if missing:
            names = ", ".join(sorted(step.value for step in missing))
            raise ValueError(f"No rule for steps: {names}")
        self._by_step: Mapping[StepId, StepRule] = by_step

    def __getitem__(self, step: StepId) -> StepRule:
        return self._by_step[step]

    def section_schemas(self) -> SectionSchemas:
        """(record kind, section) -> patch model, for the record stores."""
        return {
            (rule.kind, rule.section): rule.patch_model
            for rule in self._by_step.values()
        }


def default_section_schemas() -> SectionSchemas:
    """Section schemas of the default rule table."""
    return StepRules().section_schemas()
