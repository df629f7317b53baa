"""Prompt catalog: pure `params -> prompt` renderers.

Prompts are versioned independently of the code that consumes them; bump
`PROMPT_VERSION` whenever wording changes so cached artifacts keyed by the old
prompts are not reused.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from lessonstream.ai.pipeline.contracts import GenerationRequest, StepSpec

PROMPT_VERSION = "v4"

SKELETON_SOURCE_CHARS = 15000
STEP_SOURCE_CHARS = 3000

_LEARNING_GUIDES: dict[int, str] = {
  3: (
    "STEP 1: Foundation (Remember/Understand). Type: memory_game OR multiple_choice.\n"
    "STEP 2: Connection (Apply/Analyze). Type: fill_in_blank OR categorization.\n"
    "STEP 3: Synthesis (Evaluate/Create). Type: open_question OR multiple_choice (scenario)."
  ),
  5: (
    "STEPS 1-2: Foundation (Remember). Type: memory_game OR multiple_choice.\n"
    "STEPS 3-4: Connection (Analyze). Type: fill_in_blank OR categorization.\n"
    "STEP 5: Synthesis (Create). Type: open_question."
  ),
  7: (
    "STEPS 1-2: Foundation. Type: memory_game / multiple_choice / true_false.\n"
    "STEPS 3-5: Connection. Type: fill_in_blank / ordering / categorization / matching.\n"
    "STEPS 6-7: Synthesis. Type: open_question / multiple_choice."
  ),
}

_EXAM_GUIDES: dict[int, str] = {
  3: (
    "Question 1: Foundation (Remember/Understand). Type: multiple_choice OR true_false.\n"
    "Question 2: Application (Apply/Analyze). Type: categorization OR ordering OR fill_in_blank.\n"
    "Question 3: Higher-Order (Evaluate/Create). Type: open_question OR complex multiple_choice."
  ),
  5: (
    "Questions 1-2: Foundation (Remember/Understand). Type: multiple_choice, true_false.\n"
    "Questions 3-4: Application (Apply/Analyze). Type: categorization, ordering, fill_in_blank.\n"
    "Question 5: Higher-Order (Evaluate/Create). Type: open_question."
  ),
  7: (
    "Questions 1-2: Foundation (Remember). Type: multiple_choice, true_false, fill_in_blank.\n"
    "Questions 3-5: Application (Apply/Analyze). Type: ordering, categorization, multiple_choice.\n"
    "Questions 6-7: Higher-Order (Evaluate/Create). Type: open_question."
  ),
}

_INTERACTION_SHAPES = """\
- multiple_choice / true_false: {"question": "...", "options": ["A", "B", "C", "D"], "correct_answer": "A"}
- categorization: {"question": "...", "categories": ["Cat1", "Cat2"], "items": [{"text": "Item1", "category": "Cat1"}]}
- ordering: {"instruction": "...", "correct_order": ["Event 1", "Event 2", "Event 3"]}
- fill_in_blank: {"text": "The [Sun] is hot."} (hidden words in [brackets], never underscores)
- memory_game: {"question": "...", "pairs": [{"card_a": "Term", "card_b": "Definition"}]}
- matching: {"instruction": "...", "left_items": [{"id": "1", "text": "..."}], "right_items": [{"id": "a", "text": "..."}], "correct_matches": [{"left": "1", "right": "a"}]}
- open_question: {"question": "...", "model_answer": "3-4 bullet points"}"""


def structure_guide(step_count: int, *, mode: str) -> str:
  """Return the Foundation / Connection / Synthesis guide for a step count."""
  guides = _EXAM_GUIDES if mode == "exam" else _LEARNING_GUIDES
  return guides.get(step_count, guides[5])


def _truncate(text: str, limit: int) -> str:
  return text if len(text) <= limit else text[:limit]


def _context_block(request: GenerationRequest, *, limit: int) -> str:
  if request.source_text and request.source_text.strip():
    source = _truncate(request.source_text.strip(), limit)
    return f'BASE CONTENT ON THIS TEXT ONLY:\n"""{source}"""\nIgnore outside knowledge if it contradicts the text.'
  return f'Topic: "{request.topic}"'


def _tone_line(request: GenerationRequest) -> str:
  if request.mode == "exam":
    return "Tone: objective examiner tone, no humor."
  return f"Tone: {request.tone}." if request.tone else "Tone: warm, encouraging and age appropriate."


def render_skeleton_prompt(request: GenerationRequest, *, step_count: int, bloom_levels: Sequence[str], source_chars: int = SKELETON_SOURCE_CHARS) -> str:
  """Render the planner prompt for one skeleton."""
  exam = request.mode == "exam"
  mode_line = "STRICT EXAMINATION / TEST MODE" if exam else "Learning / Tutorial Mode"
  if exam:
    policy = "- Each step is one assessment item. Do NOT plan teaching content or hints."
  else:
    policy = "- Alternate short text chunks with questions so the learner interacts frequently."
  example_interaction = "multiple_choice" if exam else "memory_game"
  subject_line = f"Subject: {request.subject}\n" if request.subject else ""
  return f"""Task: Create a "Skeleton" for a learning unit.
{_context_block(request, limit=source_chars)}
{subject_line}Target Audience: {request.grade_level}.
{_tone_line(request)}
Mode: {mode_line}
Count: Exactly {step_count} steps.
Language: Hebrew.

BLOOM TAXONOMY REQUIREMENTS (one per step, in order):
{json.dumps(list(bloom_levels), ensure_ascii=False)}

MISSION:
1. Read the entire context first and split it into {step_count} distinct, non-overlapping chunks.
2. For each step define a strict narrative_focus (allowed content) and forbidden_topics (banned content).
3. Categories must be mutually exclusive; orderings must follow objective criteria.
{policy}

Structure Guide:
{structure_guide(step_count, mode=request.mode)}

Output JSON only:
{{
  "unit_title": "String",
  "steps": [
    {{
      "step_number": 1,
      "title": "Unique title for chunk A",
      "narrative_focus": "Discuss ONLY concept A. Do not mention concept B.",
      "forbidden_topics": ["Concept B"],
      "bloom_level": "{bloom_levels[0] if bloom_levels else 'Remember'}",
      "suggested_interaction_type": "{example_interaction}"
    }}
  ]
}}
"""


def render_step_prompt(request: GenerationRequest, step: StepSpec, *, source_chars: int = STEP_SOURCE_CHARS) -> str:
  """Render the content prompt for a single planned step."""
  exam = request.mode == "exam"
  if exam:
    enforcer = (
      "EXAM MODE ENFORCER: This is an assessment item. Do NOT output teach_content (use an empty string). "
      "Do NOT output hints (use an empty array). Focus entirely on the question."
    )
    scaffolding = "- progressive_hints: []"
    teach = '""'
  else:
    enforcer = ""
    scaffolding = "- progressive_hints: 2-3 progressive hints. Hint 1 points to the text, hint 2 rephrases the content."
    teach = f'"Full explanation simplified for {request.grade_level}"'
  forbidden = json.dumps(list(step.forbidden_topics), ensure_ascii=False)
  level_line = f"Pedagogical level: {request.level}.\n" if request.level else ""
  return f"""{_context_block(request, limit=source_chars)}
{enforcer}
Target Audience: {request.grade_level}.
{level_line}{_tone_line(request)}

MANDATORY REQUIREMENTS:
1. Follow Bloom level ({step.bloom_level}) and interaction type ({step.suggested_interaction}) strictly.
2. Discuss ONLY: {step.narrative_focus or step.title}.
3. Do NOT mention: {forbidden}.
4. Treat this as chapter {step.step_number}; do not repeat earlier definitions.
5. If the context cannot support the requested interaction, fall back to a valid lower type with the same Bloom level; as a last resort use multiple_choice.
6. Output values in Hebrew.
{scaffolding}

Interaction shapes:
{_INTERACTION_SHAPES}

Output JSON only:
{{
  "step_number": {step.step_number},
  "bloom_level": "{step.bloom_level}",
  "teach_content": {teach},
  "teacher_tip": "One actionable facilitation tip",
  "selected_interaction": "{step.suggested_interaction}",
  "data": {{"progressive_hints": [], "source_reference_hint": "..."}}
}}
"""


def render_lesson_part1_prompt(request: GenerationRequest, *, source_chars: int = SKELETON_SOURCE_CHARS) -> str:
  """Lesson metadata, hook and direct instruction."""
  return f"""You are an expert teacher. Write the opening half of a lesson plan.
{_context_block(request, limit=source_chars)}
Grade: {request.grade_level}
Subject: {request.subject or "general"}
{_tone_line(request)}
Language: Hebrew.

Return JSON only:
{{
  "lesson_metadata": {{"title": "...", "learning_objectives": ["..."], "duration_minutes": 45}},
  "hook": {{"title": "...", "content": "a surprising question, short story or dilemma"}},
  "direct_instruction": {{"title": "...", "content": "clear explanation of the core concepts with examples"}}
}}
"""


def render_lesson_part2_prompt(request: GenerationRequest, *, source_chars: int = SKELETON_SOURCE_CHARS) -> str:
  """Guided practice, independent practice, discussion and summary."""
  return f"""You are an expert teacher. Write the closing half of a lesson plan.
{_context_block(request, limit=source_chars)}
Grade: {request.grade_level}
Subject: {request.subject or "general"}
{_tone_line(request)}
Language: Hebrew.

Return JSON only:
{{
  "guided_practice": {{"title": "...", "activities": ["..."]}},
  "independent_practice": {{"title": "...", "activities": ["..."]}},
  "discussion": {{"title": "...", "questions": ["..."]}},
  "summary": {{"title": "...", "content": "connect the key points and close with a reflection question"}}
}}
"""


_PODCAST_EXCHANGES: dict[str, str] = {"short": "8-10", "medium": "12-15", "long": "18-22"}


def render_podcast_prompt(request: GenerationRequest, *, source_chars: int = SKELETON_SOURCE_CHARS) -> str:
  """Two-host dialogue script."""
  exchanges = _PODCAST_EXCHANGES.get(request.length, _PODCAST_EXCHANGES["medium"])
  return f"""Write a "deep dive" podcast script between two hosts, Dan and Noa.
{_context_block(request, limit=source_chars)}
Audience: grade {request.grade_level} students.

Roles:
- Dan: enthusiastic, uses analogies, asks naive questions to clarify.
- Noa: the expert, skeptical but clear, brings the facts.

Guidelines:
- Natural spoken Hebrew, about {exchanges} exchanges.
- Conversational and light, with everyday examples.

Return JSON only:
{{
  "title": "creative episode title",
  "lines": [
    {{"speaker": "דן", "text": "...", "emotion": "נלהב"}},
    {{"speaker": "נועה", "text": "...", "emotion": "ניטרלי"}}
  ]
}}
"""
