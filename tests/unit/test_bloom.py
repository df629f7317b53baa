"""Unit tests for step counts, bloom sequences and interaction hints."""

from __future__ import annotations

import pytest

from lessonstream.ai.pipeline.bloom import allocate_weighted, band_of, bloom_sequence, resolve_step_count, suggest_interaction, weighted_sequence
from lessonstream.ai.pipeline.contracts import BloomWeights
from tests.fakes import make_request


def test_step_counts_follow_length_buckets() -> None:
  assert [resolve_step_count(length) for length in ("short", "medium", "long")] == [3, 5, 7]
  with pytest.raises(ValueError):
    resolve_step_count("epic")


def test_short_learning_request_uses_canonical_sequence() -> None:
  assert bloom_sequence(make_request(length="short")) == ["Remember", "Analyze", "Create"]


def test_long_learning_request_covers_every_level() -> None:
  sequence = bloom_sequence(make_request(length="long"))
  assert len(sequence) == 7
  assert sequence[0] == "Remember"
  assert sequence[-1] == "Create"


def test_exam_defaults_to_weighted_allocation() -> None:
  assert bloom_sequence(make_request(length="short", mode="exam")) == ["Apply", "Evaluate", "Create"]
  assert bloom_sequence(make_request(length="medium", mode="exam")) == ["Remember", "Apply", "Analyze", "Evaluate", "Create"]


def test_remainders_go_to_higher_order_bands_first() -> None:
  counts = allocate_weighted(7, BloomWeights(knowledge=34, application=33, evaluation=33))
  assert counts == {"knowledge": 2, "application": 2, "evaluation": 3}
  assert sum(counts.values()) == 7


def test_zero_weight_band_never_receives_slots() -> None:
  counts = allocate_weighted(5, BloomWeights(knowledge=0, application=50, evaluation=50))
  assert counts["knowledge"] == 0
  assert weighted_sequence(5, BloomWeights(knowledge=100, application=0, evaluation=0)) == ["Remember", "Understand", "Remember", "Understand", "Remember"]


def test_pedagogical_level_pins_band() -> None:
  assert bloom_sequence(make_request(length="short", level="support")) == ["Remember", "Understand", "Remember"]
  assert bloom_sequence(make_request(length="short", level="enrichment")) == ["Evaluate", "Create", "Evaluate"]


def test_band_of_defaults_to_knowledge() -> None:
  assert band_of("analyze") == "application"
  assert band_of("unknown") == "knowledge"


def test_suggest_interaction_honours_allowed_list() -> None:
  assert suggest_interaction("Apply", 0, mode="learning", allowed=("ordering", "true_false")) == "ordering"
  # No overlap with the band's candidates falls back to the caller's list.
  assert suggest_interaction("Create", 1, mode="learning", allowed=("memory", "ordering")) == "ordering"
  assert suggest_interaction("Remember", 0, mode="exam") == "multiple_choice"
