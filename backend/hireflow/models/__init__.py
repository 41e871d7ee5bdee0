"""SQLAlchemy ORM models for hireflow.

All models are exported from this module for convenient imports:
    from hireflow.models import OnboardingSessionRow, StepRecordRow

Models are organized by domain:
- base.py: Base, TimestampMixin
- onboarding.py: OnboardingSessionRow, StepRecordRow
"""

from hireflow.models.base import Base, TimestampMixin
from hireflow.models.onboarding import OnboardingSessionRow, StepRecordRow

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Onboarding
    "OnboardingSessionRow",
    "StepRecordRow",
]
