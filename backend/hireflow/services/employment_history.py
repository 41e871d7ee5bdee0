"""Employment history interval validation.

Validity is a property of the whole set of entries, not of any one entry.
Rules, applied in this order:

1. Count: 1 to 5 entries. On failure nothing else runs.
2. Per entry: required fields present, dates parseable, from < to.
   On any failure the set-level rules are skipped.
3. Overlap and gap, over entries sorted by start date, most recent first:
   - overlap when current.from < next.to
   - a gap of 30+ days needs gap_explanation_before on the later entry
4. Coverage: sum of inclusive day spans.
   730..760 pass, 3650+ pass, anything else fails. The hole between
   2 years + 30 days and 10 years is a business rule, not a bug.

Issues are returned as values, never raised. The caller decides how to
surface them (see summarize_issues and IntervalIssue.to_detail).
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

MAX_EMPLOYMENT_ENTRIES = 5
GAP_EXPLANATION_DAYS = 30

DAYS_2_YEARS = 730
DAYS_2_YEARS_GRACE = 760
DAYS_10_YEARS = 3650

# Average month length used to express day totals in months
_DAYS_PER_MONTH = 30.44


class EmploymentEntry(BaseModel):
    """One employment history entry as submitted.

    Fields are deliberately lenient (optional, dates as raw strings) so that
    missing or malformed values reach the validator and are reported with
    the entry index instead of failing request parsing.
    """

    model_config = ConfigDict(extra="forbid")

    employer_name: str | None = Field(default=None, max_length=200)
    supervisor_name: str | None = Field(default=None, max_length=200)
    address: str | None = Field(default=None, max_length=300)
    postal_code: str | None = Field(default=None, max_length=20)
    city: str | None = Field(default=None, max_length=100)
    state_or_province: str | None = Field(default=None, max_length=100)
    phone1: str | None = Field(default=None, max_length=30)
    phone2: str | None = Field(default=None, max_length=30)
    email: str | None = Field(default=None, max_length=254)
    position_held: str | None = Field(default=None, max_length=200)
    from_date: date | str | None = None
    to_date: date | str | None = None
    salary: str | None = Field(default=None, max_length=100)
    reason_for_leaving: str | None = Field(default=None, max_length=1000)
    subject_to_fmcsr: bool | None = None
    safety_sensitive_function: bool | None = None
    gap_explanation_before: str | None = Field(default=None, max_length=2000)


# =============================================================================
# Issue Types
# =============================================================================


@dataclass(frozen=True)
class IntervalIssue:
    """A single validation failure.

    Attributes:
        kind: "count", "required", "date", "overlap", "gap", or "coverage".
        message: User-facing message.
        index: Entry index (input order for entry checks, sorted order for
            overlap and gap).
        field: Offending field, for entry checks.
    """

    kind: str
    message: str
    index: int | None = None
    field: str | None = None

    def to_detail(self) -> dict:
        """Serialize for an error envelope's details list."""
        detail: dict = {"type": self.kind, "message": self.message}
        if self.index is not None:
            detail["index"] = self.index
        if self.field is not None:
            detail["field"] = self.field
        return detail


@dataclass(frozen=True)
class CountError(IntervalIssue):
    """Too few or too many entries."""


@dataclass(frozen=True)
class EntryError(IntervalIssue):
    """A single entry is incomplete or has bad dates."""


@dataclass(frozen=True)
class OverlapError(IntervalIssue):
    """Two adjacent entries (sorted, most recent first) overlap."""


@dataclass(frozen=True)
class GapError(IntervalIssue):
    """A gap of 30+ days has no explanation."""


@dataclass(frozen=True)
class CoverageError(IntervalIssue):
    """Total covered days fall outside the accepted ranges.

    Attributes:
        total_days: Sum of inclusive day spans.
        months_provided: Total expressed in months (short histories only).
        months_short: Months missing to reach 2 years (short histories only).
    """

    total_days: int = 0
    months_provided: int | None = None
    months_short: int | None = None

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["total_days"] = self.total_days
        if self.months_provided is not None:
            detail["months_provided"] = self.months_provided
            detail["months_short"] = self.months_short
        return detail


# =============================================================================
# Helpers
# =============================================================================

_REQUIRED_TEXT_FIELDS: tuple[tuple[str, str], ...] = (
    ("employer_name", "Employer name is required"),
    ("supervisor_name", "Supervisor name is required"),
    ("address", "Address is required"),
    ("postal_code", "Postal code is required"),
    ("city", "City is required"),
    ("state_or_province", "State/Province is required"),
    ("phone1", "Primary phone number is required"),
    ("email", "Email is required"),
    ("position_held", "Position held is required"),
)


def _parse_date(value: date | str | None) -> date | None:
    """Coerce a submitted date to a date, or None if unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


@dataclass(frozen=True)
class _Period:
    """Parsed date range of a valid entry."""

    start: date
    end: date
    label: str
    gap_explanation: str | None


def _check_entry(entry: EmploymentEntry, index: int) -> EntryError | _Period:
    """Return the first problem with one entry, or its parsed period."""
    for field, message in _REQUIRED_TEXT_FIELDS:
        if _is_blank(getattr(entry, field)):
            return EntryError("required", message, index=index, field=field)

    if entry.from_date is None or (
        isinstance(entry.from_date, str) and not entry.from_date.strip()
    ):
        return EntryError("required", "Start date is required", index=index, field="from_date")
    if entry.to_date is None or (
        isinstance(entry.to_date, str) and not entry.to_date.strip()
    ):
        return EntryError("required", "End date is required", index=index, field="to_date")
    if _is_blank(entry.salary):
        return EntryError("required", "Salary is required", index=index, field="salary")
    if _is_blank(entry.reason_for_leaving):
        return EntryError(
            "required", "Reason for leaving is required", index=index, field="reason_for_leaving"
        )
    if entry.subject_to_fmcsr is None:
        return EntryError(
            "required",
            "Please specify if you were subject to FMCSR",
            index=index,
            field="subject_to_fmcsr",
        )
    if entry.safety_sensitive_function is None:
        return EntryError(
            "required",
            "Please specify if your job was safety sensitive",
            index=index,
            field="safety_sensitive_function",
        )

    start = _parse_date(entry.from_date)
    end = _parse_date(entry.to_date)
    if start is None or end is None:
        return EntryError(
            "date",
            "Invalid date format",
            index=index,
            field="from_date" if start is None else "to_date",
        )
    if start >= end:
        return EntryError(
            "date", "Start date must be before end date", index=index, field="from_date"
        )
    return _Period(
        start=start,
        end=end,
        label=entry.employer_name or "",
        gap_explanation=entry.gap_explanation_before,
    )


def _check_overlaps_and_gaps(periods: list[_Period]) -> IntervalIssue | None:
    for i in range(len(periods) - 1):
        current = periods[i]
        older = periods[i + 1]

        if current.start < older.end:
            return OverlapError(
                "overlap",
                f"Job at {current.label} overlaps with job at {older.label}",
                index=i,
            )

        gap_days = (current.start - older.end).days
        if gap_days >= GAP_EXPLANATION_DAYS and _is_blank(current.gap_explanation):
            return GapError(
                "gap",
                f"Missing gap explanation before employment at {current.label}",
                index=i,
                field="gap_explanation_before",
            )
    return None


def _total_covered_days(periods: Sequence[_Period]) -> int:
    """Sum of inclusive day spans."""
    return sum((period.end - period.start).days + 1 for period in periods)


def _check_coverage(total_days: int) -> CoverageError | None:
    if DAYS_2_YEARS <= total_days <= DAYS_2_YEARS_GRACE:
        return None
    if total_days >= DAYS_10_YEARS:
        return None
    if total_days > DAYS_2_YEARS_GRACE:
        return CoverageError(
            "coverage",
            "If experience is over 2 years + 30 days, a full 10 years of "
            "history must be entered.",
            total_days=total_days,
        )
    months = round(total_days / _DAYS_PER_MONTH)
    months_short = max(1, round((DAYS_2_YEARS - total_days) / _DAYS_PER_MONTH))
    return CoverageError(
        "coverage",
        f"Employment duration of {months} months ({total_days} days) detected. "
        "You must provide 2 years of employment history.",
        total_days=total_days,
        months_provided=months,
        months_short=months_short,
    )


# =============================================================================
# Public API
# =============================================================================


def validate_employment_history(
    entries: Sequence[EmploymentEntry],
) -> list[IntervalIssue]:
    """Validate a set of employment entries.

    Args:
        entries: Entries in submission order.

    Returns:
        Issues found; empty when the history is valid. At most one issue
        per entry, one overlap/gap issue, and one coverage issue.
    """
    if not entries:
        return [CountError("count", "At least one employment entry is required")]
    if len(entries) > MAX_EMPLOYMENT_ENTRIES:
        return [
            CountError(
                "count",
                f"A maximum of {MAX_EMPLOYMENT_ENTRIES} employment entries is allowed",
            )
        ]

    issues: list[IntervalIssue] = []
    periods: list[_Period] = []
    for index, entry in enumerate(entries):
        checked = _check_entry(entry, index)
        if isinstance(checked, EntryError):
            issues.append(checked)
        else:
            periods.append(checked)
    if issues:
        return issues

    # sorted() is stable, so entries with equal start dates keep input order
    periods.sort(key=lambda period: period.start, reverse=True)

    ordering_issue = _check_overlaps_and_gaps(periods)
    if ordering_issue is not None:
        issues.append(ordering_issue)

    coverage_issue = _check_coverage(_total_covered_days(periods))
    if coverage_issue is not None:
        issues.append(coverage_issue)

    return issues


def summarize_issues(issues: Sequence[IntervalIssue]) -> str:
    """One-line, user-facing summary of a list of issues."""
    if not issues:
        return "Employment history is valid"

    kinds = {issue.kind for issue in issues}
    for kind, summary in (
        ("required", "Please fill in all required employment fields"),
        ("overlap", "Employment dates cannot overlap"),
        ("gap", "Gaps of 30+ days require explanation"),
        ("coverage", "Employment history must meet coverage requirements"),
        ("date", "Please check employment dates"),
        ("count", "Employment entry count is invalid"),
    ):
        if kind in kinds:
            return summary
    return "Employment validation failed"


@dataclass(frozen=True)
class CoverageSummary:
    """Running totals shown while an applicant fills in their history.

    Attributes:
        total_days: Sum of inclusive day spans of the usable entries.
        total_months: total_days expressed in average months.
        meets_two_years: Inside the 2-year window (730..760 days).
        meets_ten_years: At or past 10 years.
        needs_more_history: Neither target is met.
        months_to_ten_years: Months still missing toward 10 years.
    """

    total_days: int
    total_months: int
    meets_two_years: bool
    meets_ten_years: bool
    needs_more_history: bool
    months_to_ten_years: int


def coverage_summary(entries: Sequence[EmploymentEntry]) -> CoverageSummary:
    """Summarize coverage over the entries that have usable dates.

    Entries with missing or invalid dates are ignored rather than reported;
    use validate_employment_history() for the full check.
    """
    checked = [_check_entry(entry, index) for index, entry in enumerate(entries)]
    periods = [period for period in checked if isinstance(period, _Period)]
    total_days = _total_covered_days(periods)
    meets_two_years = DAYS_2_YEARS <= total_days <= DAYS_2_YEARS_GRACE
    meets_ten_years = total_days >= DAYS_10_YEARS
    return CoverageSummary(
        total_days=total_days,
        total_months=round(total_days / _DAYS_PER_MONTH),
        meets_two_years=meets_two_years,
        meets_ten_years=meets_ten_years,
        needs_more_history=not (meets_two_years or meets_ten_years),
        months_to_ten_years=max(
            0, round((DAYS_10_YEARS - total_days) / _DAYS_PER_MONTH)
        ),
    )
