"""Deferred Assessment Trigger — gates and submits the scoring task without awaiting it.

Invariants:
    - Fires iff auto_approval_enabled AND has_requirements
    - maybe_trigger returns as soon as the task is submitted; it never awaits the run it submits
    - The task is registered with BackgroundTaskRegistry so it runs past the response and
      is drained on shutdown
    - Each run is bounded by assessment_timeout_seconds
    - Runner failures (including timeout) are logged and reported to the observer,
      never re-raised to the request
    - At most one running assessment per membership. A reactivation supersedes a run that
      is still in flight: the old task is cancelled and awaited before the new one starts
    - cancel() stops the membership's running assessment (participant cancellation)

Design Decisions:
    - Runner injected (AssessmentRunner Protocol): the scoring policy lives in
      assess_membership.py and tests substitute a fake
    - Failure handling inside the wrapped coroutine, so the registry's done-callback
      only ever sees clean completions or cancellations
"""

import asyncio
import logging

from crewgate.core.domain_types import MembershipId
from crewgate.core.repository_protocols import AdmissionObserver, AssessmentRunner
from crewgate.infrastructure.background_tasks import BackgroundTaskRegistry

logger = logging.getLogger(__name__)


class AssessmentTrigger:
    """Fire-and-forget dispatch of the deferred assessment."""

    def __init__(
        self,
        registry: BackgroundTaskRegistry,
        runner: AssessmentRunner,
        observer: AdmissionObserver,
        timeout_seconds: float = 90.0,
    ):
        self.registry = registry
        self.runner = runner
        self.observer = observer
        self.timeout_seconds = timeout_seconds

    @staticmethod
    def should_trigger(auto_approval_enabled: bool, has_requirements: bool) -> bool:
        return auto_approval_enabled and has_requirements

    async def maybe_trigger(
        self,
        membership_id: MembershipId,
        auto_approval_enabled: bool,
        has_requirements: bool,
        supersede: bool = False,
    ) -> bool:
        """Submit the assessment if the gate passes. Returns True if a task was submitted.

        supersede=True cancels a run still in flight for this membership first; the
        caller passes it on reactivation, when that run is scoring the old answers.
        """
        if not self.should_trigger(auto_approval_enabled, has_requirements):
            return False
        if supersede and await self.cancel(membership_id):
            logger.info(
                "Superseded running assessment", extra={"membership_id": membership_id},
            )

        task = self.registry.submit(
            lambda: self._run(membership_id),
            name=f"assess-{membership_id}",
            key=str(membership_id),
        )
        if task is None:
            self.observer.assessment_skipped(membership_id, "assessment already running")
            return False
        self.observer.assessment_scheduled(membership_id)
        return True

    async def cancel(self, membership_id: MembershipId) -> bool:
        """Stop the running assessment of membership_id, if any."""
        return await self.registry.cancel(str(membership_id))

    async def _run(self, membership_id: MembershipId) -> None:
        try:
            await asyncio.wait_for(
                self.runner(membership_id), timeout=self.timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"Deferred assessment failed: {e!r}",
                extra={"membership_id": membership_id},
            )
            self.observer.assessment_failed(membership_id, e)
