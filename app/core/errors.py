"""Pipeline error taxonomy.

Every error carries a short machine-classifiable ``reason`` code and a
human-readable ``detail`` string. The orchestrator copies both into
``PipelineState.error`` when a stage fails.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for failures that halt a pipeline run."""

    reason = "pipeline_error"

    def __init__(self, detail: str, reason: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        if reason:
            self.reason = reason


class InputError(PipelineError):
    """Missing or empty script; never retried."""

    reason = "input_error"


class ServiceError(PipelineError):
    """An external service call failed.

    ``status_code`` is the HTTP status when one is known. The retry policy
    uses it (together with the message) to decide whether to retry.
    """

    reason = "service_error"

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.status_code = status_code


class SynthesisFailed(PipelineError):
    """The synthesis service reported failure for the whole script."""

    reason = "synthesis_failed"


class NoAudioProduced(PipelineError):
    """Synthesis finished but not a single audio file exists on disk."""

    reason = "no_audio_produced"


class NoUsableAudio(PipelineError):
    """Composition found no existing audio file to work with."""

    reason = "no_usable_audio"


class NoUsableImages(PipelineError):
    """Composition found no existing image file to work with."""

    reason = "no_usable_images"


class CompositionFailed(PipelineError):
    """The compositor reported failure."""

    reason = "composition_failed"


class PipelineCancelled(PipelineError):
    """The run's cancellation token was triggered."""

    reason = "cancelled"

    def __init__(self, detail: str = "Pipeline cancelled"):
        super().__init__(detail)
