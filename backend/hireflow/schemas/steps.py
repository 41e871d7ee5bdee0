"""Per-step patch schemas.

Each step accepts exactly one patch model enumerating the fields that step
may touch. Unknown fields are rejected (extra="forbid"); a patch is never
merged field-by-field into stored data. The validated patch replaces its
section of the step record wholesale.

The same models are registered as section schemas with the record stores,
so a stored section is re-checked with the model that produced it.

File fields are FileAsset values. Whether a FileAsset's MIME type is
allowed for its field is a step rule (see step_rules.py), not a schema
concern, because the allow-list belongs to the upload folder.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hireflow.services.employment_history import EmploymentEntry
from hireflow.storage.base import FileAsset


class StepPatch(BaseModel):
    """Base class for step patches."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# Prequalifications
# =============================================================================


class DriverType(str, Enum):
    COMPANY = "Company"
    OWNER_OPERATOR = "Owner Operator"
    OWNER_DRIVER = "Owner Driver"


class HaulPreference(str, Enum):
    SHORT_HAUL = "Short Haul"
    LONG_HAUL = "Long Haul"


class TeamStatus(str, Enum):
    TEAM = "Team"
    SINGLE = "Single"


class StatusInCanada(str, Enum):
    PR = "PR"
    CITIZENSHIP = "Citizenship"
    WORK_PERMIT = "Work Permit"


class PrequalificationsPatch(StepPatch):
    """Eligibility answers and driving preferences."""

    over_23_local: bool
    over_25_cross_border: bool
    can_drive_manual: bool
    experience_driving_tractor_trailer: bool
    fault_accident_in_3_years: bool
    zero_points_on_abstract: bool
    no_unpardoned_criminal_record: bool
    legal_right_to_work_canada: bool
    can_cross_border_usa: bool | None = None
    has_fast_card: bool | None = None
    eligible_for_fast_card: bool | None = None
    status_in_canada: StatusInCanada | None = None
    driver_type: DriverType
    haul_preference: HaulPreference
    team_status: TeamStatus
    prefer_local_driving: bool
    prefer_switching: bool
    flatbed_experience: bool


# =============================================================================
# Application form
# =============================================================================


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class LicenseType(str, Enum):
    AZ = "AZ"
    DZ = "DZ"
    OTHER = "Other"


class LicenseEntry(StepPatch):
    license_number: str = Field(min_length=1, max_length=200)
    license_state_or_province: str = Field(min_length=1, max_length=100)
    license_type: LicenseType
    license_expiry: date
    front_photo: FileAsset | None = None
    back_photo: FileAsset | None = None


class AddressEntry(StepPatch):
    address: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state_or_province: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    from_date: date
    to_date: date


class ApplicationPage1Patch(StepPatch):
    """Personal details, licenses, and address history.

    identity_number is write-only: it is never stored in the section. The
    orchestrator derives the session's protected identity from it and drops
    it from the patch before the record is written.
    """

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    identity_number: str | None = Field(default=None, max_length=20)
    identity_issue_date: date
    identity_expiry_date: date | None = None
    sin_photo: FileAsset
    gender: Gender
    dob: date
    phone_home: str | None = Field(default=None, max_length=30)
    phone_cell: str = Field(min_length=1, max_length=30)
    can_provide_proof_of_age: bool
    email: str = Field(min_length=3, max_length=254)
    emergency_contact_name: str = Field(min_length=1, max_length=100)
    emergency_contact_phone: str = Field(min_length=1, max_length=30)
    birth_city: str = Field(min_length=1, max_length=100)
    birth_country: str = Field(min_length=1, max_length=100)
    birth_state_or_province: str = Field(min_length=1, max_length=100)
    licenses: list[LicenseEntry] = Field(min_length=1, max_length=10)
    addresses: list[AddressEntry] = Field(min_length=1, max_length=20)


class ApplicationPage2Patch(StepPatch):
    """Employment history.

    Entries are lenient on purpose; the interval validator reports missing
    fields together with their entry index.
    """

    employments: list[EmploymentEntry] = Field(default_factory=list, max_length=20)
    worked_with_company_before: bool | None = None
    reason_for_leaving_company: str | None = Field(default=None, max_length=1000)
    currently_employed: bool | None = None
    referral_source: str | None = Field(default=None, max_length=200)


class AccidentEntry(StepPatch):
    accident_date: date | None = None
    nature_of_accident: str | None = Field(default=None, max_length=500)
    fatalities: int | None = Field(default=None, ge=0)
    injuries: int | None = Field(default=None, ge=0)


class ConvictionEntry(StepPatch):
    conviction_date: date | None = None
    location: str | None = Field(default=None, max_length=200)
    charge: str | None = Field(default=None, max_length=200)
    penalty: str | None = Field(default=None, max_length=200)


class Education(StepPatch):
    grade_school: int = Field(default=0, ge=0, le=12)
    college: int = Field(default=0, ge=0, le=4)
    post_graduate: int = Field(default=0, ge=0, le=4)


class DailyHours(StepPatch):
    day: int = Field(ge=1, le=14)
    hours: float = Field(ge=0, le=24)


class CanadianHoursOfService(StepPatch):
    day_one_date: date
    daily_hours: list[DailyHours] = Field(min_length=14, max_length=14)


class ApplicationPage3Patch(StepPatch):
    """Accident and conviction history, education, hours of service."""

    has_accident_history: bool
    has_traffic_convictions: bool
    accident_history: list[AccidentEntry] = Field(default_factory=list, max_length=10)
    traffic_convictions: list[ConvictionEntry] = Field(
        default_factory=list, max_length=10
    )
    education: Education
    canadian_hours_of_service: CanadianHoursOfService


class CriminalRecordEntry(StepPatch):
    offense: str = Field(min_length=1, max_length=200)
    date_of_sentence: date
    court_location: str = Field(min_length=1, max_length=200)


class FastCard(StepPatch):
    fast_card_number: str = Field(min_length=1, max_length=50)
    fast_card_expiry: date
    front_photo: FileAsset
    back_photo: FileAsset


class PassportType(str, Enum):
    CANADIAN = "canadian"
    OTHERS = "others"


class WorkAuthorizationType(str, Enum):
    LOCAL = "local"
    CROSS_BORDER = "cross_border"


class TruckDetails(StepPatch):
    vin: str = Field(default="", max_length=50)
    make: str = Field(default="", max_length=50)
    model: str = Field(default="", max_length=50)
    year: str = Field(default="", max_length=10)
    province: str = Field(default="", max_length=50)
    truck_unit_number: str = Field(default="", max_length=50)
    plate_number: str = Field(default="", max_length=50)


class ApplicationPage4Patch(StepPatch):
    """Background, identity documents, and business documents.

    fast_card set to null clears the card and drops its photos.
    """

    has_criminal_records: bool = False
    criminal_records: list[CriminalRecordEntry] = Field(
        default_factory=list, max_length=10
    )
    hst_number: str | None = Field(default=None, max_length=50)
    business_name: str | None = Field(default=None, max_length=200)
    hst_photos: list[FileAsset] = Field(default_factory=list, max_length=2)
    incorporation_photos: list[FileAsset] = Field(default_factory=list, max_length=10)
    banking_info_photos: list[FileAsset] = Field(default_factory=list, max_length=2)
    health_card_photos: list[FileAsset] = Field(default_factory=list, max_length=2)
    medical_cert_photos: list[FileAsset] = Field(default_factory=list, max_length=2)
    passport_type: PassportType | None = None
    work_authorization_type: WorkAuthorizationType | None = None
    passport_photos: list[FileAsset] = Field(default_factory=list, max_length=2)
    us_visa_photos: list[FileAsset] = Field(default_factory=list, max_length=2)
    pr_citizenship_photos: list[FileAsset] = Field(default_factory=list, max_length=2)
    fast_card: FastCard | None = None
    denied_license_or_permit: bool
    suspended_or_revoked: bool
    suspension_notes: str | None = Field(default=None, max_length=1000)
    tested_positive_or_refused: bool
    completed_dot_requirements: bool
    has_accidental_insurance: bool
    truck_details: TruckDetails | None = None

    @model_validator(mode="after")
    def check_criminal_records(self) -> "ApplicationPage4Patch":
        if self.has_criminal_records and not self.criminal_records:
            raise ValueError("criminal_records is required when has_criminal_records is true")
        return self


class ApplicationPage5Patch(StepPatch):
    """Competency questionnaire answers (question id -> answer id)."""

    answers: dict[str, str] = Field(min_length=1, max_length=100)


# =============================================================================
# Policies, appraisal, and training
# =============================================================================


class PoliciesConsentsPatch(StepPatch):
    signature: FileAsset
    send_policies_by_email: bool = False


class OverallAssessment(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    CONDITIONAL_PASS = "conditional_pass"


class ExpectedStandard(str, Enum):
    NOT_SATISFACTORY = "not_satisfactory"
    FAIR = "fair"
    SATISFACTORY = "satisfactory"
    VERY_GOOD = "very_good"


class AssessmentItem(StepPatch):
    key: str = Field(min_length=1, max_length=100)
    label: str = Field(min_length=1, max_length=200)
    checked: bool = False


class AssessmentSection(StepPatch):
    key: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=200)
    items: list[AssessmentItem] = Field(default_factory=list, max_length=50)


class Assessment(StepPatch):
    sections: dict[str, AssessmentSection] = Field(default_factory=dict, max_length=20)
    supervisor_name: str = Field(min_length=1, max_length=100)
    expected_standard: ExpectedStandard
    overall_assessment: OverallAssessment
    comments: str | None = Field(default=None, max_length=2000)
    supervisor_signature: FileAsset


class DriveTestPatch(StepPatch):
    """Pre-trip and on-road assessments, filled in by the supervisor.

    A "fail" in either assessment terminates the session.
    """

    pre_trip: Assessment
    on_road: Assessment
    needs_flatbed_training: bool = False


class CarriersEdgeTrainingPatch(StepPatch):
    certificates: list[FileAsset] = Field(min_length=1, max_length=5)
    completed: bool = True


class DrugTestPatch(StepPatch):
    documents: list[FileAsset] = Field(min_length=1, max_length=5)


class FlatbedTrainingPatch(StepPatch):
    certificates: list[FileAsset] = Field(default_factory=list, max_length=5)
    completed: bool = True
