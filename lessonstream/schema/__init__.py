"""Wire schemas for generated content."""

from lessonstream.schema.interactions import INTERACTION_KINDS, ParsedContent, StepContent, normalize_interaction_tag

__all__ = ["INTERACTION_KINDS", "ParsedContent", "StepContent", "normalize_interaction_tag"]
