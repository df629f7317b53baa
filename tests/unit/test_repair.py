"""Unit tests for step repair across interaction kinds."""

from __future__ import annotations

from lessonstream.ai.json_parser import recover_json
from lessonstream.ai.pipeline.contracts import StepSpec
from lessonstream.ai.repair import repair_step, resolve_correct_answer, split_sequence_text, synthesize_step
from lessonstream.schema.interactions import DEFAULT_RUBRIC, Categorization, FillInBlank, Matching, MemoryGame, MultipleChoice, OpenQuestion, Ordering, TrueFalse


def _spec(interaction: str, *, number: int = 1) -> StepSpec:
  return StepSpec(step_number=number, title="שלב בדיקה", narrative_focus="מים", bloom_level="Apply", suggested_interaction=interaction)


def test_unmatched_answer_falls_back_to_first_option() -> None:
  raw = recover_json('Sure! {"options":["A","B"],"correct_answer":"C"}')
  step = repair_step(raw, _spec("multiple_choice"), mode="learning", topic="מים")
  assert isinstance(step.content, MultipleChoice)
  assert step.content.correct_answer == "A"
  assert step.content.question == "שלב בדיקה"
  assert not step.synthesized


def test_answer_resolution_prefers_exact_then_substring() -> None:
  options = ["Paris", "London", "Rome"]
  assert resolve_correct_answer("london", options) == "London"
  assert resolve_correct_answer("The answer is Rome", options) == "Rome"
  assert resolve_correct_answer("true", ["נכון", "לא נכון"]) == "נכון"


def test_flagged_option_objects_mark_the_answer() -> None:
  raw = {"question": "איזה גז?", "options": [{"text": "חמצן"}, {"text": "חנקן", "is_correct": True}]}
  step = repair_step(raw, _spec("multiple_choice"), mode="learning", topic="מים")
  assert step.content.correct_answer == "חנקן"


def test_true_false_gets_default_options() -> None:
  step = repair_step({"type": "true_false", "question": "מים רותחים ב-100 מעלות", "answer": True}, _spec("multiple_choice"), mode="learning", topic="מים")
  assert isinstance(step.content, TrueFalse)
  assert step.content.options == ["נכון", "לא נכון"]
  assert step.content.correct_answer == "נכון"
  assert step.interaction == "true_false"


def test_ordering_rebuilt_from_instruction_sentences() -> None:
  raw = {"instruction": "First, boil water. Then, add pasta. Finally, drain."}
  step = repair_step(raw, _spec("ordering"), mode="learning", topic="פסטה")
  assert isinstance(step.content, Ordering)
  assert step.content.correct_order == ["First, boil water", "Then, add pasta", "Finally, drain"]


def test_split_sequence_text_prefers_lines() -> None:
  assert split_sequence_text("1. לחמם את המים\n2. להוסיף פסטה\n3. לסנן") == ["לחמם את המים", "להוסיף פסטה", "לסנן"]


def test_ordering_keeps_short_instruction_lines() -> None:
  step = repair_step({"instruction": "1. לחמם את המים\n2. להוסיף פסטה\n3. לסנן"}, _spec("ordering"), mode="learning", topic="פסטה")
  assert isinstance(step.content, Ordering)
  assert step.content.correct_order == ["לחמם את המים", "להוסיף פסטה", "לסנן"]


def test_categorization_assigns_items_by_group_index() -> None:
  raw = {"categories": ["יונקים", "זוחלים"], "items": [{"text": "כלב", "group_index": 0}, {"text": "לטאה", "group_index": 1}]}
  step = repair_step(raw, _spec("categorization"), mode="learning", topic="בעלי חיים")
  assert isinstance(step.content, Categorization)
  assert [(item.text, item.category) for item in step.content.items] == [("כלב", "יונקים"), ("לטאה", "זוחלים")]


def test_categorization_resolves_category_ids_through_lookup() -> None:
  raw = {
    "categories": [{"id": "c1", "label": "יונקים"}, {"id": "c2", "label": "זוחלים"}],
    "items": [{"text": "לטאה", "category_id": "c2"}, {"text": "כלב", "category_id": "c1"}],
  }
  step = repair_step(raw, _spec("categorization"), mode="learning", topic="בעלי חיים")
  assert isinstance(step.content, Categorization)
  assert step.content.categories == ["יונקים", "זוחלים"]
  assert [(item.text, item.category) for item in step.content.items] == [("לטאה", "זוחלים"), ("כלב", "יונקים")]


def test_categorization_items_extracted_from_bullet_text() -> None:
  raw = {"categories": ["יונקים", "זוחלים"], "question": "מיינו את בעלי החיים:\n- כלב\n- לטאה\n• חתול"}
  step = repair_step(raw, _spec("categorization"), mode="learning", topic="בעלי חיים")
  assert isinstance(step.content, Categorization)
  assert not step.synthesized
  assert [item.text for item in step.content.items] == ["כלב", "לטאה", "חתול"]


def test_matching_pairs_without_columns_become_categorization() -> None:
  raw = {"type": "matching", "pairs": [{"left": "כלב", "right": "יונקים"}, {"left": "נחש", "right": "זוחלים"}]}
  step = repair_step(raw, _spec("matching"), mode="learning", topic="בעלי חיים")
  assert isinstance(step.content, Categorization)
  assert step.interaction == "categorization"
  assert step.content.categories == ["יונקים", "זוחלים"]


def test_matching_without_links_pairs_positionally() -> None:
  raw = {"left_items": ["H2O", "CO2"], "right_items": ["מים", "פחמן דו-חמצני"]}
  step = repair_step(raw, _spec("matching"), mode="learning", topic="כימיה")
  assert isinstance(step.content, Matching)
  assert [(link.left, link.right) for link in step.content.correct_matches] == [("1", "a"), ("2", "b")]


def test_matching_without_columns_gets_placeholder_pairs() -> None:
  step = repair_step({"instruction": "התאימו"}, _spec("matching"), mode="learning", topic="כימיה")
  assert isinstance(step.content, Matching)
  assert len(step.content.left_items) == 2
  assert len(step.content.correct_matches) == 2


def test_fill_in_blank_built_from_template_and_answers() -> None:
  raw = {"text_with_blanks": "המים מתאדים בגלל _____ ויורדים כ-_____.", "answers": ["השמש", "גשם"], "distractors": ["הירח"]}
  step = repair_step(raw, _spec("fill_in_blank"), mode="learning", topic="מים")
  assert isinstance(step.content, FillInBlank)
  assert step.content.hidden_words() == ["השמש", "גשם"]
  assert step.content.word_bank == ["השמש", "גשם", "הירח"]


def test_fill_in_blank_built_from_parallel_sentences_and_answers() -> None:
  raw = {"sentences": ["השמש מחממת את המים", "העננים יורדים כ-_____"], "answers": ["השמש", "גשם"]}
  step = repair_step(raw, _spec("fill_in_blank"), mode="learning", topic="מים")
  assert isinstance(step.content, FillInBlank)
  assert step.content.text == "[השמש] מחממת את המים העננים יורדים כ-[גשם]"
  assert step.content.hidden_words() == ["השמש", "גשם"]


def test_open_question_keeps_guidelines_as_model_answer() -> None:
  raw = {"type": "open_ended", "question": "למה חשוב לחסוך במים?", "teacher_guidelines": ["מחסור", "סביבה"]}
  step = repair_step(raw, _spec("open_question"), mode="learning", topic="מים")
  assert isinstance(step.content, OpenQuestion)
  assert step.content.model_answer == "מחסור\nסביבה"


def test_open_question_without_guidance_gets_default_rubric() -> None:
  step = repair_step({"type": "open_question", "question": "מה דעתך על חיסכון במים?"}, _spec("open_question"), mode="learning", topic="מים")
  assert isinstance(step.content, OpenQuestion)
  assert step.content.model_answer == DEFAULT_RUBRIC


def test_memory_game_accepts_term_definition_pairs() -> None:
  raw = {"type": "memory", "pairs": [{"term": "אידוי", "definition": "מים הופכים לאדים"}, {"term": "עיבוי", "definition": "אדים הופכים לטיפות"}]}
  step = repair_step(raw, _spec("memory_game"), mode="learning", topic="מים")
  assert isinstance(step.content, MemoryGame)
  assert step.content.pairs[1].card_a == "עיבוי"


def test_memory_game_with_single_pair_becomes_placeholder() -> None:
  raw = {"type": "memory_game", "pairs": [{"term": "אידוי", "definition": "מים הופכים לאדים"}]}
  step = repair_step(raw, _spec("memory_game"), mode="learning", topic="מים")
  assert step.synthesized
  assert isinstance(step.content, MultipleChoice)


def test_exam_mode_strips_teaching_and_hints() -> None:
  raw = {"teach_content": "הסבר מלא", "hints": ["רמז"], "question": "שאלה", "options": ["א", "ב"], "correct_answer": "ב"}
  step = repair_step(raw, _spec("multiple_choice"), mode="exam", topic="מים")
  assert step.teach_content == ""
  assert step.hints == []
  assert step.content.correct_answer == "ב"


def test_unrepairable_payload_becomes_on_topic_placeholder() -> None:
  step = repair_step({"type": "ordering", "items": ["רק אחד"]}, _spec("ordering", number=2), mode="learning", topic="מים")
  assert step.synthesized
  assert step.step_number == 2
  assert isinstance(step.content, MultipleChoice)
  assert "מים" in step.content.question
  assert step.content.correct_answer in step.content.options


def test_missing_payload_is_synthesized_in_exam_shape() -> None:
  step = repair_step(None, _spec("multiple_choice"), mode="exam", topic="מים")
  assert step.synthesized
  assert step.hints == []
  assert synthesize_step(_spec("ordering"), mode="learning", topic="מים").interaction == "multiple_choice"
