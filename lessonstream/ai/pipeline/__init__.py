"""Pipeline contracts and planning parameters."""

from lessonstream.ai.pipeline.contracts import BloomWeights, GenerationRequest, LessonPartInput, RequestContext, Skeleton, StepInput, StepSpec

__all__ = ["BloomWeights", "GenerationRequest", "LessonPartInput", "RequestContext", "Skeleton", "StepInput", "StepSpec"]
