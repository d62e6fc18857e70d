"""Exception hierarchy for the feedback pipeline."""


class FeedbackPipelineError(Exception):
    """Base exception for all pipeline errors."""


class PipelineConfigError(FeedbackPipelineError):
    """A run was requested with a configuration that cannot produce results."""


class SourceError(FeedbackPipelineError):
    """A source adapter call failed (transport error or bad response)."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class ClassificationError(FeedbackPipelineError):
    """The classifier could not produce a result for an item."""


class DraftError(FeedbackPipelineError):
    """The drafter could not produce a ticket draft for an item."""


class ReviewError(FeedbackPipelineError):
    """A review action is not allowed in the ticket's current state."""
