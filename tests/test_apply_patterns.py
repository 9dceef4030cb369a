import pytest

from surface_patterns import (
    ApplyPatterns,
    ApplyPatternsMulti,
    CandidatePhrase,
    Genre,
    PatternToken,
    Restriction,
    SurfacePattern,
    SurfacePatternConfig,
)
from surface_patterns.apply_patterns import has_isolated_gap


def the_nn_pattern():
    the = Restriction()
    the.add_restriction("text", "the")
    return SurfacePattern([the], PatternToken("NN", True, False, 1, "O", False, False, None),
                          None, Genre.PREV)


@pytest.fixture
def corpus(make_sentence):
    return {
        "s1": make_sentence("s1", ["the", "cat", "sat"], ["DT", "NN", "VBD"]),
        "s2": make_sentence("s2", ["the", "dog", "ran"], ["DT", "NN", "VBD"]),
    }


def apply(corpus, config, phrase_table, registry, cls=ApplyPatterns, stop_words=(), **kwargs):
    pattern = the_nn_pattern()
    applier = cls(corpus, list(corpus), [pattern], "ANIMAL", config, phrase_table,
                  set(stop_words), registry, **kwargs)
    return pattern, applier.call()


def test_isolated_gap_rule():
    assert has_isolated_gap([True, False, True])
    assert has_isolated_gap([False, True, False, True])
    assert not has_isolated_gap([False, True, True])
    assert not has_isolated_gap([True, True, False])
    assert not has_isolated_gap([True, False, False, True])


def test_counts_and_spans(corpus, config, phrase_table, registry):
    pattern, result = apply(corpus, config, phrase_table, registry)

    assert result.all_freq.get_count(CandidatePhrase("cat"), pattern) == 1
    assert result.all_freq.get_count(CandidatePhrase("dog"), pattern) == 1
    assert sorted(result.matched_tokens_by_pat[pattern]) == [("s1", 1, 1), ("s2", 1, 1)]
    assert result.new_phrases == {CandidatePhrase("cat"), CandidatePhrase("dog")}
    assert result.already_labeled_phrases == set()


def test_phrases_are_interned(corpus, config, phrase_table, registry):
    apply(corpus, config, phrase_table, registry)
    assert phrase_table.create_or_get("cat") is phrase_table.create_or_get("cat", "other")
    assert phrase_table.create_or_get("cat").lemma == "cat"


def test_annotations_are_returned_not_applied(corpus, config, phrase_table, registry):
    pattern, result = apply(corpus, config, phrase_table, registry)
    assert not corpus["s1"].tokens[1].matched_pattern
    assert result.token_annotations[("s1", 1)] == {pattern}

    result.merge_annotations(corpus)
    assert corpus["s1"].tokens[1].matched_pattern
    assert pattern in corpus["s1"].tokens[1].matched_patterns


def test_stop_word_phrases_can_be_removed(corpus, phrase_table, registry):
    config = SurfacePatternConfig(remove_phrases_with_stop_words=True, show_progress=False)
    pattern, result = apply(corpus, config, phrase_table, registry, stop_words={"dog"})
    assert result.all_freq.get_count(CandidatePhrase("cat"), pattern) == 1
    assert CandidatePhrase("dog") not in result.all_freq
    assert len(result.matched_tokens_by_pat[pattern]) == 1


def test_stop_words_trimmed_from_phrase_leave_nothing(corpus, phrase_table, registry):
    config = SurfacePatternConfig(remove_stop_words_from_selected_phrases=True, show_progress=False)
    pattern, result = apply(corpus, config, phrase_table, registry, stop_words={"dog"})
    assert CandidatePhrase("dog") not in result.all_freq
    assert CandidatePhrase("cat") in result.all_freq


def test_ignore_classes_void_the_phrase(make_sentence, config, phrase_table, registry):
    corpus = {
        "s1": make_sentence("s1", ["the", "cat"], ["DT", "NN"], ner=["O", "O"]),
        "s2": make_sentence("s2", ["the", "smith"], ["DT", "NN"], ner=["O", "PERSON"]),
    }
    pattern, result = apply(
        corpus, config, phrase_table, registry,
        ignore_words_with_classes_during_selection={"ANIMAL": {"ner": "PERSON"}},
    )
    assert CandidatePhrase("cat") in result.all_freq
    assert CandidatePhrase("smith") not in result.all_freq
    assert result.token_annotations[("s2", 1)] == {pattern}


def test_club_neighboring_labeled_words(make_sentence, phrase_table, registry):
    corpus = {
        "s1": make_sentence("s1", ["the", "cat", "food", "sat"], ["DT", "NN", "JJ", "VBD"],
                            labels=[{}, {}, {"ANIMAL": "ANIMAL"}, {}]),
    }
    config = SurfacePatternConfig(club_neighboring_labeled_words=True, show_progress=False)
    pattern, result = apply(corpus, config, phrase_table, registry)

    assert result.all_freq.get_count(CandidatePhrase("cat food"), pattern) == 1
    assert result.matched_tokens_by_pat[pattern] == [("s1", 1, 2)]
    assert result.new_phrases == set()
    assert result.already_labeled_phrases == set()


def test_single_and_multi_differ_on_labeled_spans(make_sentence, config, phrase_table, registry):
    corpus = {
        "s1": make_sentence("s1", ["the", "cat", "sat"], ["DT", "NN", "VBD"]),
        "s2": make_sentence("s2", ["the", "dog", "ran"], ["DT", "NN", "VBD"],
                            labels=[{}, {"ANIMAL": "ANIMAL"}, {}]),
    }
    pattern, single = apply(corpus, config, phrase_table, registry)
    assert single.all_freq.get_count(CandidatePhrase("dog"), pattern) == 1
    assert single.already_labeled_phrases == {CandidatePhrase("dog")}

    pattern, multi = apply(corpus, config, phrase_table, registry, cls=ApplyPatternsMulti)
    assert multi.all_freq.get_count(CandidatePhrase("cat"), pattern) == 1
    assert CandidatePhrase("dog") not in multi.all_freq
    assert sorted(multi.matched_tokens_by_pat[pattern]) == [("s1", 1, 1), ("s2", 1, 1)]


def test_result_update_merges(corpus, config, phrase_table, registry):
    pattern, first = apply(corpus, config, phrase_table, registry)
    _, second = apply(corpus, config, phrase_table, registry)
    first.update(second)
    assert first.all_freq.get_count(CandidatePhrase("cat"), pattern) == 2
    assert len(first.matched_tokens_by_pat[pattern]) == 4


def the_compound_pattern(n=2):
    the = Restriction()
    the.add_restriction("text", "the")
    return SurfacePattern([the], PatternToken("NN", True, True, n, "O", False, False, None),
                          None, Genre.PREV)


@pytest.mark.parametrize("cls", [ApplyPatterns, ApplyPatternsMulti])
def test_compound_target_counted_once_per_occurrence(cls, make_sentence, config, phrase_table, registry):
    corpus = {"s1": make_sentence("s1", ["the", "cat", "food", "sat"], ["DT", "NN", "NN", "VBD"])}
    pattern = the_compound_pattern()
    result = cls(corpus, ["s1"], [pattern], "ANIMAL", config, phrase_table, set(), registry).call()

    assert result.all_freq.get_count(CandidatePhrase("cat food"), pattern) == 1
    assert CandidatePhrase("cat") not in result.all_freq
    assert result.matched_tokens_by_pat[pattern] == [("s1", 1, 2)]


def test_multi_skips_spans_of_discarded_candidates(corpus, phrase_table, registry):
    config = SurfacePatternConfig(remove_phrases_with_stop_words=True, show_progress=False)
    pattern, result = apply(corpus, config, phrase_table, registry, cls=ApplyPatternsMulti,
                            stop_words={"dog"})
    assert CandidatePhrase("dog") not in result.all_freq
    assert result.matched_tokens_by_pat[pattern] == [("s1", 1, 1)]


def test_multi_skips_spans_voided_by_ignore_classes(make_sentence, config, phrase_table, registry):
    corpus = {"s1": make_sentence("s1", ["the", "smith"], ["DT", "NN"], ner=["O", "PERSON"])}
    pattern, result = apply(
        corpus, config, phrase_table, registry, cls=ApplyPatternsMulti,
        ignore_words_with_classes_during_selection={"ANIMAL": {"ner": "PERSON"}},
    )
    assert len(result.all_freq) == 0
    assert result.matched_tokens_by_pat[pattern] == []


@pytest.mark.parametrize("cls", [ApplyPatterns, ApplyPatternsMulti])
def test_interior_stop_word_dropped_from_compound_rejects_phrase(cls, make_sentence, phrase_table, registry):
    corpus = {
        "s1": make_sentence("s1", ["the", "cat", "of", "food", "sat"], ["DT", "NN", "NN", "NN", "VBD"]),
    }
    config = SurfacePatternConfig(remove_stop_words_from_selected_phrases=True, show_progress=False)
    pattern = the_compound_pattern(3)
    result = cls(corpus, ["s1"], [pattern], "ANIMAL", config, phrase_table, {"of"}, registry).call()

    assert CandidatePhrase("cat food") not in result.all_freq
    assert len(result.all_freq) == 0
    assert result.matched_tokens_by_pat[pattern] == []
