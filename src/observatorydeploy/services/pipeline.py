"""Short-circuiting step pipeline used by the deployers."""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from observatorydeploy.errors import DeployError
from observatorydeploy.models import DeployStage


@dataclass(frozen=True)
class Step:
    """An action that, once it returns, puts the attempt in `stage`."""

    stage: DeployStage
    action: Callable[[], None]
    label: str = ""

    @property
    def name(self) -> str:
        return self.label or self.stage.value


@dataclass(frozen=True)
class StepResult:
    step: Step
    ok: bool
    error: Optional[DeployError] = None


@dataclass
class PipelineResult:
    results: List[StepResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    @property
    def failure(self) -> Optional[StepResult]:
        for result in self.results:
            if not result.ok:
                return result
        return None


def run_steps(
    steps: Sequence[Step],
    on_started: Optional[Callable[[Step], None]] = None,
    on_completed: Optional[Callable[[Step], None]] = None,
) -> PipelineResult:
    """Run steps in order and stop at the first one that fails.

    An OSError escaping a step is recorded as a DeployError of that step.
    """
    pipeline = PipelineResult()
    for step in steps:
        if on_started:
            on_started(step)
        try:
            step.action()
        except DeployError as exc:
            pipeline.results.append(StepResult(step=step, ok=False, error=exc))
            break
        except OSError as exc:
            error = DeployError(f"Step '{step.name}' hit a filesystem or OS error: {exc}")
            pipeline.results.append(StepResult(step=step, ok=False, error=error))
            break
        pipeline.results.append(StepResult(step=step, ok=True))
        if on_completed:
            on_completed(step)
    return pipeline
