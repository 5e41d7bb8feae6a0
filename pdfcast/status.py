"""Validation and progress tracking for a pipeline run.

The tracker owns the live `PipelineState`. Only the executor drives it, via
stage events; everyone else reads snapshots.
"""

from loguru import logger

from pdfcast.models import PipelineState, Stage, StageStatus, Validations
from pdfcast.stages import get_stage


class StatusTracker:
    def __init__(self) -> None:
        self._state = PipelineState()

    @property
    def validations(self) -> Validations:
        return self._state.validations.model_copy()

    @property
    def errors(self) -> list[str]:
        return list(self._state.errors)

    @property
    def overall_progress(self) -> float:
        return self._state.overall_progress

    @property
    def can_proceed(self) -> bool:
        """Whether the wizard may leave the processing step."""
        return self._state.validations.all_passed

    @property
    def has_errors(self) -> bool:
        return bool(self._state.errors)

    def snapshot(self) -> PipelineState:
        return self._state.model_copy(deep=True)

    def reset(self, stages: list[Stage]) -> None:
        """Start a new run from scratch."""
        self._state = PipelineState(stages=[s.model_copy() for s in stages])

    def _stage(self, stage_id: str) -> tuple[int, Stage]:
        for index, stage in enumerate(self._state.stages):
            if stage.id == stage_id:
                return index, stage
        raise KeyError(f"Stage not tracked: {stage_id}")

    def start_stage(self, stage_id: str) -> None:
        index, stage = self._stage(stage_id)
        stage.status = StageStatus.RUNNING
        self._state.current_stage_index = index

    def report(self, stage_id: str, progress: float) -> None:
        """Record fractional progress (0-100) for a running stage."""
        _, stage = self._stage(stage_id)
        progress = min(max(progress, 0.0), 100.0)
        stage.progress = max(stage.progress, progress)
        self._recompute()

    def complete_stage(self, stage_id: str) -> None:
        _, stage = self._stage(stage_id)
        stage.status = StageStatus.COMPLETED
        stage.progress = 100.0
        flag = get_stage(stage_id).validation
        if flag:
            setattr(self._state.validations, flag, True)
        self._recompute()

    def fail_stage(self, stage_id: str, message: str) -> None:
        _, stage = self._stage(stage_id)
        stage.status = StageStatus.FAILED
        self._state.errors.append(message)
        logger.error(message)

    def finish(self) -> None:
        self._state.overall_progress = 100.0

    def _recompute(self) -> None:
        # Skipped stages carry no weight
        weighted = [s for s in self._state.stages if s.applicable]
        total = sum(s.weight for s in weighted)
        if total <= 0:
            return
        progress = sum(s.weight * s.progress for s in weighted) / total
        self._state.overall_progress = min(max(self._state.overall_progress, progress), 100.0)
