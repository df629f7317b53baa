from __future__ import annotations

from lessonstream.ai.pipeline.contracts import StepSpec
from lessonstream.ai.prompts import render_podcast_prompt, render_skeleton_prompt, render_step_prompt, structure_guide
from tests.fakes import make_request

SPEC = StepSpec(step_number=2, title="אידוי", narrative_focus="איך מים מתאדים", forbidden_topics=("גשם",), bloom_level="Analyze", suggested_interaction="ordering")


def test_exam_step_prompt_forbids_scaffolding() -> None:
  prompt = render_step_prompt(make_request(mode="exam"), SPEC)
  assert "EXAM MODE ENFORCER" in prompt
  assert "progressive_hints: []" in prompt
  assert "EXAM MODE ENFORCER" not in render_step_prompt(make_request(), SPEC)


def test_step_prompt_carries_plan_constraints() -> None:
  prompt = render_step_prompt(make_request(), SPEC)
  assert "Bloom level (Analyze)" in prompt
  assert "interaction type (ordering)" in prompt
  assert '["גשם"]' in prompt


def test_source_text_is_truncated_per_call() -> None:
  request = make_request(topic=None, source_text="א" * 5000)
  assert "א" * 3000 in render_step_prompt(request, SPEC)
  assert "א" * 3001 not in render_step_prompt(request, SPEC)
  assert "א" * 40 in render_skeleton_prompt(request, step_count=3, bloom_levels=["Remember", "Analyze", "Create"], source_chars=40)


def test_guides_and_podcast_length_follow_request() -> None:
  assert structure_guide(3, mode="exam").startswith("Question 1")
  assert "18-22 exchanges" in render_podcast_prompt(make_request(length="long"))
