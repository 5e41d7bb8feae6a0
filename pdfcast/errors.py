"""Domain exceptions for the pipeline, the wizard and the CLI."""


class InputValidationError(ValueError):
    """Raised when a configuration cannot be handed to the pipeline.

    `problems` lists every issue found so the wizard can show them together.
    """

    def __init__(self, problems: list[str] | str) -> None:
        if isinstance(problems, str):
            problems = [problems]
        super().__init__("; ".join(problems))
        self.problems = list(problems)


class ExtractionError(InputValidationError):
    """Raised when a document yields no usable script text."""


class StageExecutionError(RuntimeError):
    """Raised when a pipeline stage fails."""

    def __init__(self, *, stage: str, detail: str) -> None:
        super().__init__(detail)
        self.stage = stage
        self.detail = detail


class PipelineBusyError(RuntimeError):
    """Raised when a second run is requested while one is in flight."""


class WizardTransitionError(RuntimeError):
    """Raised for a wizard move the current step does not allow."""
