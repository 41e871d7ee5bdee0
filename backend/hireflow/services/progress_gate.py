"""Onboarding step order and progress gating.

The step order is the single source of truth for gating. It is built once
as an immutable, versioned StepOrder and handed to ProgressGate, which
answers "has the session reached / completed this step" and computes the
next progress value.

Everything here is pure: no I/O, no clock, and no exceptions for expected
conditions. Termination and expiry are checked by the orchestrator, not
here.

Order changes must be append-only. Sessions already in flight store their
current step by value; reordering would silently move them.
"""

from dataclasses import dataclass
from enum import Enum


class StepId(str, Enum):
    """Onboarding steps, in declaration order."""

    PREQUALIFICATIONS = "prequalifications"
    APPLICATION_PAGE_1 = "application-page-1"
    APPLICATION_PAGE_2 = "application-page-2"
    APPLICATION_PAGE_3 = "application-page-3"
    APPLICATION_PAGE_4 = "application-page-4"
    APPLICATION_PAGE_5 = "application-page-5"
    POLICIES_CONSENTS = "policies-consents"
    DRIVE_TEST = "drive-test"
    CARRIERS_EDGE_TRAINING = "carriers-edge-training"
    DRUG_TEST = "drug-test"
    FLATBED_TRAINING = "flatbed-training"


@dataclass(frozen=True)
class StepOrder:
    """Immutable, versioned ordering of every StepId.

    Attributes:
        version: Increments whenever steps are appended.
        steps: Every StepId exactly once, earliest first.
    """

    version: int
    steps: tuple[StepId, ...]

    def __post_init__(self) -> None:
        if len(set(self.steps)) != len(self.steps):
            raise ValueError("Step order contains duplicate steps")
        missing = set(StepId) - set(self.steps)
        if missing:
            names = ", ".join(sorted(step.value for step in missing))
            raise ValueError(f"Step order is missing steps: {names}")
        # Positions are looked up on every gate check
        object.__setattr__(
            self, "_positions", {step: i for i, step in enumerate(self.steps)}
        )

    def index(self, step: StepId) -> int:
        """Zero-based position of a step."""
        return self._positions[step]  # type: ignore[attr-defined]

    def extends(self, previous: "StepOrder") -> bool:
        """True if this order only appends to `previous`."""
        return self.steps[: len(previous.steps)] == previous.steps


STEP_ORDER_V1 = StepOrder(version=1, steps=tuple(StepId))


@dataclass(frozen=True)
class Progress:
    """Furthest step a session has reached.

    Attributes:
        current_step: Monotonic marker; never moves backwards.
        completed: True once the final step itself is completed.
    """

    current_step: StepId
    completed: bool = False


@dataclass(frozen=True)
class ProgressGate:
    """Gating and advancement over a fixed step order."""

    order: StepOrder = STEP_ORDER_V1

    @property
    def first(self) -> StepId:
        """First step of the flow."""
        return self.order.steps[0]

    @property
    def last(self) -> StepId:
        """Final step of the flow."""
        return self.order.steps[-1]

    def index(self, step: StepId) -> int:
        """Zero-based position of a step."""
        return self.order.index(step)

    def is_final(self, step: StepId) -> bool:
        """True for the last step."""
        return step == self.last

    def initial_progress(self) -> Progress:
        """Progress of a freshly created session."""
        return Progress(current_step=self.first, completed=False)

    def has_reached(self, progress: Progress, step: StepId) -> bool:
        """True iff the session's current step is at or past `step`."""
        return self.index(progress.current_step) >= self.index(step)

    def has_completed(self, progress: Progress, step: StepId) -> bool:
        """True iff `step` is behind the current step.

        The final step has nothing after it, so it counts as completed
        only once the completed flag is set.
        """
        current = self.index(progress.current_step)
        target = self.index(step)
        if current > target:
            return True
        return current == target and progress.completed and self.is_final(step)

    def advance(self, progress: Progress, just_completed: StepId) -> Progress:
        """Compute progress after a step has been completed.

        Completing a step moves the marker to the step after it. Completing
        the final step keeps the marker there and sets `completed`. If the
        result would not be strictly later than the current progress, the
        unchanged progress is returned, which makes re-submitting an
        already-completed step a no-op.

        Args:
            progress: Current progress.
            just_completed: Step whose submission just succeeded.

        Returns:
            New progress (the same object when nothing changes).
        """
        if self.is_final(just_completed):
            if progress.completed:
                return progress
            return Progress(current_step=just_completed, completed=True)

        target = self.next_step(just_completed)
        if target is None or self.index(target) <= self.index(progress.current_step):
            return progress
        return Progress(current_step=target, completed=False)

    def next_step(self, step: StepId) -> StepId | None:
        """Step after `step`, or None for the final step."""
        position = self.index(step) + 1
        if position >= len(self.order.steps):
            return None
        return self.order.steps[position]

    def prev_step(self, step: StepId) -> StepId | None:
        """Step before `step`, or None for the first step."""
        position = self.index(step) - 1
        if position < 0:
            return None
        return self.order.steps[position]

    def navigation(self, step: StepId) -> tuple[StepId | None, StepId | None]:
        """(previous, next) pair for building step context."""
        return self.prev_step(step), self.next_step(step)
