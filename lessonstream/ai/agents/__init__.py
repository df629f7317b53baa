"""Agent implementations for the generation pipeline."""

from lessonstream.ai.agents.base import BaseAgent
from lessonstream.ai.agents.lesson_writer import LessonPartWriter
from lessonstream.ai.agents.planner import PlanResult, SkeletonPlanner
from lessonstream.ai.agents.podcast import PodcastWriter
from lessonstream.ai.agents.step_builder import StepBuilder

__all__ = ["BaseAgent", "LessonPartWriter", "PlanResult", "PodcastWriter", "SkeletonPlanner", "StepBuilder"]
