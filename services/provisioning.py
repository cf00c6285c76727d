# services/provisioning.py

"""
Sequential, non-atomic multi-step writes.

Supabase offers no transaction spanning auth.users and the public tables, so a
workflow is a list of ProvisioningStep objects run strictly in order. Each step
returns a SupabaseResult:

  * fatal step fails     → optionally undo completed steps (newest first),
                           then raise ProvisioningError naming the step and
                           every id already created
  * non-fatal step fails → log a warning, record it, keep going

Compensation is off unless asked for: a half-provisioned account is reported,
not silently removed.
"""

from typing import Callable, Optional

from core.logging_config import get_logger
from core.supabase_helpers import SupabaseResult

log = get_logger("provisioning")


class ProvisioningError(Exception):
    def __init__(
        self,
        step: str,
        message: str,
        *,
        code: Optional[str] = None,
        created: Optional[dict] = None,
        completed: Optional[list] = None,
        status_code: int = 500,
        compensated: Optional[list] = None,
    ):
        super().__init__(f"{step}: {message}")
        self.step = step
        self.message = message
        self.code = code
        self.created = dict(created or {})
        self.completed = list(completed or [])
        self.status_code = status_code
        self.compensated = list(compensated or [])

    @property
    def partial_success(self) -> bool:
        """Remote state was already changed before the failing step."""
        return bool(self.completed or self.created)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.message,
            "step": self.step,
            "code": self.code,
            "created": self.created,
            "completed_steps": self.completed,
            "partial_success": self.partial_success,
            "compensated_steps": self.compensated,
        }


class ProvisioningStep:
    def __init__(
        self,
        name: str,
        action: Callable[[dict], SupabaseResult],
        *,
        fatal: bool = True,
        undo: Optional[Callable[[dict], SupabaseResult]] = None,
        record: Optional[Callable[[object], dict]] = None,
        status_code: int = 500,
        describe: Optional[str] = None,
    ):
        """
        action(state) performs the remote call.
        record(data) returns {"<entity>_id": ...} entries for diagnostics.
        undo(state) reverses the step when compensation is enabled.
        """
        self.name = name
        self.action = action
        self.fatal = fatal
        self.undo = undo
        self.record = record
        self.status_code = status_code
        self.describe = describe or name.replace("_", " ")


class SagaOutcome:
    def __init__(self):
        self.completed: list = []
        self.failed: dict = {}
        self.created: dict = {}
        self.data: dict = {}

    def succeeded(self, step: str) -> bool:
        return step in self.completed


class ProvisioningSaga:
    def __init__(self, name: str, steps: list = None, *, compensate: bool = False):
        self.name = name
        self.steps: list = list(steps or [])
        self.compensate = compensate

    def add_step(self, step: ProvisioningStep) -> "ProvisioningSaga":
        self.steps.append(step)
        return self

    def run(self, state: Optional[dict] = None, *, created: Optional[dict] = None) -> SagaOutcome:
        """`created` seeds ids produced before the saga started (e.g. the principal)."""
        state = state if state is not None else {}
        outcome = SagaOutcome()
        outcome.created.update(created or {})
        state["outcome"] = outcome

        for step in self.steps:
            log.info(f"[{self.name}] {step.name}: start")
            result = step.action(state)

            if result.error is None:
                outcome.completed.append(step.name)
                outcome.data[step.name] = result.data
                if step.record is not None:
                    outcome.created.update(step.record(result.data) or {})
                log.info(f"[{self.name}] {step.name}: ok")
                continue

            error = result.error

            if not step.fatal:
                outcome.failed[step.name] = error.to_dict()
                log.warning(f"[{self.name}] {step.name} failed (continuing): {error.message}")
                continue

            log.error(
                f"[{self.name}] {step.name} failed: {error.message} "
                f"(code={error.code}, created={outcome.created})"
            )
            compensated = self._compensate(state, outcome) if self.compensate else []

            raise ProvisioningError(
                step.name,
                f"Failed to {step.describe}: {error.message}",
                code=error.code,
                created=outcome.created,
                completed=outcome.completed,
                status_code=step.status_code,
                compensated=compensated,
            )

        return outcome

    def _compensate(self, state: dict, outcome: SagaOutcome) -> list:
        undone = []
        by_name = {s.name: s for s in self.steps}

        for name in reversed(outcome.completed):
            step = by_name[name]
            if step.undo is None:
                continue
            result = step.undo(state)
            if result.error is None:
                undone.append(name)
                log.info(f"[{self.name}] undo {name}: ok")
            else:
                log.error(f"[{self.name}] undo {name} failed: {result.error.message}")

        return undone
