"""
Pipeline exceptions.

One failure class per production stage. Fatal failures propagate to the
orchestrator; AssetFailure is recovered inside the visuals stage and
PublishFailure inside the publisher.
"""


class PipelineError(Exception):
    """Base exception for pipeline stage errors."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"[{stage}] {message}")


class GenerationFailure(PipelineError):
    """Manifest generation failed or returned an invalid payload."""

    def __init__(self, message: str):
        super().__init__("manifest", message)


class SynthesisFailure(PipelineError):
    """Speech synthesis failed. Fatal for the article."""

    def __init__(self, message: str):
        super().__init__("audio", message)


class AssetFailure(PipelineError):
    """A single scene image could not be generated."""

    def __init__(self, scene_id: int, message: str):
        super().__init__("visuals", f"scene {scene_id}: {message}")
        self.scene_id = scene_id


class RenderFailure(PipelineError):
    """The media encoder exited with an error or produced no output."""

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__("render", message)
        self.returncode = returncode


class PublishFailure(PipelineError):
    """A browser automation step failed."""

    def __init__(self, message: str, state: str | None = None):
        super().__init__("publish", message)
        self.state = state


class PublishTimeout(PublishFailure):
    """A bounded poll expired before its condition was met."""

    def __init__(self, description: str, timeout: float):
        super().__init__(f"timed out after {timeout:.1f}s waiting for {description}")
        self.description = description
        self.timeout = timeout
