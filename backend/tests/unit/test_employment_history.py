"""Tests for employment history interval validation."""

from hireflow.services.employment_history import (
    CountError,
    CoverageError,
    EmploymentEntry,
    EntryError,
    GapError,
    OverlapError,
    coverage_summary,
    summarize_issues,
    validate_employment_history,
)


def _entry(
    employer: str,
    from_date: str | None,
    to_date: str | None,
    gap_explanation: str | None = None,
    **overrides,
) -> EmploymentEntry:
    values = {
        "employer_name": employer,
        "supervisor_name": "Chris Doe",
        "address": "100 Depot Rd",
        "postal_code": "L4T 1A1",
        "city": "Mississauga",
        "state_or_province": "ON",
        "phone1": "9055550100",
        "email": "dispatch@example.com",
        "position_held": "Driver",
        "from_date": from_date,
        "to_date": to_date,
        "salary": "60000",
        "reason_for_leaving": "Better route",
        "subject_to_fmcsr": True,
        "safety_sensitive_function": False,
        "gap_explanation_before": gap_explanation,
    }
    values.update(overrides)
    return EmploymentEntry(**values)


class TestCount:
    """Tests for the entry count policy."""

    def test_empty_list_fails(self):
        issues = validate_employment_history([])
        assert len(issues) == 1
        assert isinstance(issues[0], CountError)

    def test_six_entries_fail_with_count_error_only(self):
        """No overlap or coverage checks run after a count failure."""
        # Deliberately overlapping and far too short
        entries = [_entry(f"E{i}", "2024-01-01", "2024-02-01") for i in range(6)]
        issues = validate_employment_history(entries)
        assert len(issues) == 1
        assert isinstance(issues[0], CountError)


class TestEntryChecks:
    """Tests for per-entry field and date checks."""

    def test_missing_required_field_reported_with_index(self):
        entries = [
            _entry("Acme", "2022-01-01", "2023-01-01"),
            _entry("Beta", "2023-01-02", "2024-01-01", supervisor_name="  "),
        ]
        issues = validate_employment_history(entries)
        assert len(issues) == 1
        assert isinstance(issues[0], EntryError)
        assert issues[0].index == 1
        assert issues[0].field == "supervisor_name"

    def test_missing_boolean_is_required(self):
        issues = validate_employment_history(
            [_entry("Acme", "2022-01-01", "2024-01-01", subject_to_fmcsr=None)]
        )
        assert issues[0].field == "subject_to_fmcsr"

    def test_unparseable_date(self):
        issues = validate_employment_history([_entry("Acme", "not-a-date", "2024-01-01")])
        assert issues[0].kind == "date"
        assert issues[0].field == "from_date"

    def test_start_must_be_before_end(self):
        issues = validate_employment_history([_entry("Acme", "2024-01-01", "2024-01-01")])
        assert issues[0].kind == "date"
        assert issues[0].message == "Start date must be before end date"

    def test_entry_errors_skip_set_level_checks(self):
        """A bad entry suppresses overlap and coverage issues."""
        entries = [
            _entry("Acme", "2024-01-01", "2024-03-01"),
            _entry("Beta", "2024-02-01", "2024-04-01", email=None),
        ]
        issues = validate_employment_history(entries)
        assert [issue.kind for issue in issues] == ["required"]


class TestOverlapAndGap:
    """Tests for overlap and gap checks over sorted entries."""

    def test_contiguous_two_year_history_passes(self):
        entries = [
            _entry("Acme", "2022-01-01", "2023-01-01"),
            _entry("Beta", "2023-01-02", "2024-01-01"),
        ]
        assert validate_employment_history(entries) == []

    def test_overlap_references_earlier_sorted_index(self):
        entries = [
            _entry("Old Co", "2020-01-01", "2022-06-30"),
            _entry("New Co", "2022-06-01", "2024-12-31"),
        ]
        issues = validate_employment_history(entries)
        overlap = [issue for issue in issues if isinstance(issue, OverlapError)]
        assert len(overlap) == 1
        assert overlap[0].index == 0
        assert "New Co" in overlap[0].message
        assert "Old Co" in overlap[0].message

    def test_gap_of_30_days_needs_explanation(self):
        entries = [
            _entry("Acme", "2022-01-01", "2023-01-01"),
            _entry("Beta", "2023-01-31", "2024-01-30"),
        ]
        issues = validate_employment_history(entries)
        gaps = [issue for issue in issues if isinstance(issue, GapError)]
        assert len(gaps) == 1
        assert gaps[0].field == "gap_explanation_before"

    def test_explained_gap_passes_ordering_check(self):
        entries = [
            _entry("Acme", "2022-01-01", "2023-01-01"),
            _entry("Beta", "2023-01-31", "2024-01-30", gap_explanation="Family leave"),
        ]
        issues = validate_employment_history(entries)
        assert not any(isinstance(issue, GapError) for issue in issues)

    def test_gap_of_29_days_needs_no_explanation(self):
        entries = [
            _entry("Acme", "2022-01-01", "2023-01-01"),
            _entry("Beta", "2023-01-30", "2024-01-01"),
        ]
        issues = validate_employment_history(entries)
        assert not any(isinstance(issue, GapError) for issue in issues)


class TestCoverage:
    """Tests for the discontinuous coverage policy."""

    def test_400_days_reports_months_short(self):
        issues = validate_employment_history([_entry("Acme", "2024-01-01", "2025-02-03")])
        assert len(issues) == 1
        coverage = issues[0]
        assert isinstance(coverage, CoverageError)
        assert coverage.total_days == 400
        assert coverage.months_provided == 13
        assert coverage.months_short == 11
        assert "13 months (400 days)" in coverage.message

    def test_730_days_pass(self):
        # 2022-01-01..2023-12-31 is 730 days inclusive
        assert validate_employment_history([_entry("Acme", "2022-01-01", "2023-12-31")]) == []

    def test_760_days_pass_inside_grace(self):
        # 730 + 30 days
        assert validate_employment_history([_entry("Acme", "2022-01-01", "2024-01-30")]) == []

    def test_761_days_require_full_ten_years(self):
        issues = validate_employment_history([_entry("Acme", "2022-01-01", "2024-01-31")])
        assert len(issues) == 1
        assert isinstance(issues[0], CoverageError)
        assert issues[0].total_days == 761
        assert issues[0].months_short is None
        assert "10 years" in issues[0].message

    def test_ten_years_pass(self):
        entries = [
            _entry("Acme", "2014-01-01", "2019-01-01"),
            _entry("Beta", "2019-01-02", "2024-01-02"),
        ]
        assert validate_employment_history(entries) == []

    def test_coverage_detail_includes_months(self):
        issues = validate_employment_history([_entry("Acme", "2024-01-01", "2025-02-03")])
        detail = issues[0].to_detail()
        assert detail["type"] == "coverage"
        assert detail["total_days"] == 400
        assert detail["months_short"] == 11


class TestSummaries:
    """Tests for summarize_issues and coverage_summary."""

    def test_summarize_prefers_required_fields(self):
        issues = [
            EntryError("required", "Email is required", index=0, field="email"),
            CoverageError("coverage", "short", total_days=10),
        ]
        assert summarize_issues(issues) == "Please fill in all required employment fields"

    def test_summarize_empty(self):
        assert summarize_issues([]) == "Employment history is valid"

    def test_coverage_summary_counts_usable_entries_only(self):
        summary = coverage_summary(
            [
                _entry("Acme", "2022-01-01", "2023-12-31"),
                _entry("Broken", "garbage", "2024-01-01"),
            ]
        )
        assert summary.total_days == 730
        assert summary.meets_two_years is True
        assert summary.needs_more_history is False
        assert summary.months_to_ten_years > 0

    def test_coverage_summary_for_short_history(self):
        summary = coverage_summary([_entry("Acme", "2024-01-01", "2025-02-03")])
        assert summary.total_months == 13
        assert summary.needs_more_history is True
