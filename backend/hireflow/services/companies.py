"""Hiring companies and the per-company rules onboarding depends on."""

from dataclasses import dataclass
from enum import Enum


class ApplicationType(str, Enum):
    """Company-specific application flavour chosen at start."""

    FLATBED = "FLAT_BED"
    DRY_VAN = "DRY_VAN"


@dataclass(frozen=True)
class Company:
    """A hiring company.

    Attributes:
        id: Stable company identifier (stored on sessions).
        name: Display name.
        country_code: "CA" or "US".
        has_flatbed: Operates flatbed trailers.
        has_dry_van: Operates dry van trailers.
    """

    id: str
    name: str
    country_code: str
    has_flatbed: bool
    has_dry_van: bool


COMPANIES: tuple[Company, ...] = (
    Company("ssp-ca", "SSP Truckline Inc", "CA", has_flatbed=True, has_dry_van=True),
    Company("ssp-us", "SSP Trucklines Inc", "US", has_flatbed=True, has_dry_van=True),
    Company("fellowtrans", "FellowsTrans Inc", "CA", has_flatbed=True, has_dry_van=False),
    Company("webfreight", "Web Freight Inc", "CA", has_flatbed=True, has_dry_van=False),
    Company(
        "nesh", "New England Steel Haulers Inc", "CA", has_flatbed=True, has_dry_van=False
    ),
)

_BY_ID = {company.id: company for company in COMPANIES}


def get_company(company_id: str) -> Company | None:
    """Look up a company by id."""
    return _BY_ID.get(company_id)


def can_have_flatbed_training(
    company_id: str, application_type: str | None = None
) -> bool:
    """Whether flatbed training is possible at all for an applicant.

    Ignores the applicant's own experience. A dry van application at a
    company that runs dry vans never gets flatbed training.
    """
    company = get_company(company_id)
    if company is None or not company.has_flatbed:
        return False
    return not (application_type == ApplicationType.DRY_VAN.value and company.has_dry_van)
