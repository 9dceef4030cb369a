import pytest

from surface_patterns import (
    ConfigurationError,
    DataIntegrityError,
    Genre,
    SurfacePatternConfig,
    SurfacePatternFactory,
)


def literal_values(context):
    return [r.or_restrictions for r in context if r.bound_wildcard is None]


@pytest.fixture
def window_one_config():
    return SurfacePatternConfig(
        min_window_4_pattern=1,
        max_window_4_pattern=1,
        use_next_context=True,
        filler_words={"a", "an"},
        show_progress=False,
    )


@pytest.fixture
def cat_sentence(make_sentence):
    return make_sentence(
        "s1", ["the", "cat", "sat"], ["DT", "NN", "VBD"],
        labels=[{}, {"ANIMAL": "ANIMAL"}, {}],
    )


def test_the_cat_sat_prev_and_next(window_one_config, registry, cat_sentence):
    factory = SurfacePatternFactory(window_one_config, registry, ["ANIMAL"])
    patterns = factory.get_context(cat_sentence.tokens, 1, set())

    prev = [p for p in patterns if p.genre is Genre.PREV]
    nxt = [p for p in patterns if p.genre is Genre.NEXT]
    assert any(
        literal_values(p.prev_context) == [{"text": "the"}]
        and p.token.use_tag and p.token.tag == "NN"
        for p in prev
    )
    assert any(literal_values(p.next_context) == [{"text": "sat"}] for p in nxt)
    assert any(p.genre is Genre.PREVNEXT for p in patterns)


def test_both_target_templates_are_created(window_one_config, registry, cat_sentence):
    factory = SurfacePatternFactory(window_one_config, registry, ["ANIMAL"])
    prev = [p for p in factory.get_context(cat_sentence.tokens, 1, set()) if p.genre is Genre.PREV]
    assert {p.token.use_tag for p in prev} == {True, False}


def test_filler_words_are_skipped_and_glued(registry, make_sentence):
    config = SurfacePatternConfig(min_window_4_pattern=1, max_window_4_pattern=1, show_progress=False)
    sentence = make_sentence("s1", ["on", "the", "mat"], ["IN", "DT", "NN"])
    factory = SurfacePatternFactory(config, registry, ["ANIMAL"])

    prev = factory.get_context(sentence.tokens, 2, set())
    assert prev
    for p in prev:
        assert literal_values(p.prev_context) == [{"text": "on"}]
        assert p.prev_context[-1].bound_wildcard == "$FILLER"


def test_labeled_context_generalises_to_label(window_one_config, registry, make_sentence):
    sentence = make_sentence(
        "s1", ["dog", "chased", "cat"], ["NN", "VBD", "NN"],
        labels=[{}, {}, {"ANIMAL": "ANIMAL"}],
    )
    factory = SurfacePatternFactory(window_one_config, registry, ["ANIMAL"])
    patterns = factory.get_context(sentence.tokens, 1, set())
    nxt = [p for p in patterns if p.genre is Genre.NEXT]
    assert nxt
    assert all(literal_values(p.next_context) == [{"animal": "ANIMAL"}] for p in nxt)


def test_stop_word_only_context_is_rejected(window_one_config, registry, cat_sentence):
    factory = SurfacePatternFactory(window_one_config, registry, ["ANIMAL"])
    patterns = factory.get_context(cat_sentence.tokens, 1, {"the", "sat"})
    assert patterns == set()


def test_url_context_is_dropped(window_one_config, registry, make_sentence):
    sentence = make_sentence("s1", ["http://x.org", "cat"], ["NN", "NN"])
    factory = SurfacePatternFactory(window_one_config, registry, ["ANIMAL"])
    assert factory.get_context(sentence.tokens, 1, set()) == set()


def test_non_ascii_context_is_rejected(window_one_config, registry, make_sentence):
    sentence = make_sentence("s1", ["très", "chat"], ["RB", "NN"])
    factory = SurfacePatternFactory(window_one_config, registry, ["ANIMAL"])
    assert factory.get_context(sentence.tokens, 1, set()) == set()


def test_min_window_applies_to_prev(registry, cat_sentence):
    config = SurfacePatternConfig(min_window_4_pattern=2, max_window_4_pattern=2,
                                  filler_words={"a"}, show_progress=False)
    factory = SurfacePatternFactory(config, registry, ["ANIMAL"])
    assert factory.get_context(cat_sentence.tokens, 1, set()) == set()
    assert factory.get_context(cat_sentence.tokens, 2, set())


def test_missing_label_is_a_data_integrity_error(window_one_config, registry, cat_sentence):
    factory = SurfacePatternFactory(window_one_config, registry, ["ANIMAL", "PLACE"])
    with pytest.raises(DataIntegrityError):
        factory.get_context(cat_sentence.tokens, 1, set())


def test_patterns_around_tokens_skip_stop_and_ignored_words(window_one_config, registry, make_sentence):
    sentence = make_sentence("s1", ["the", "cat", "sat", ","], ["DT", "NN", "VBD", ","])
    factory = SurfacePatternFactory(window_one_config, registry, ["ANIMAL"])
    result = factory.get_patterns_around_tokens(sentence, {"the"})
    assert set(result) == {0, 1, 2, 3}
    assert result[0] == set()
    assert result[3] == set()
    assert result[1]


def test_both_pos_options_off_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        SurfacePatternConfig(use_pos_4_pattern=False, add_pat_without_pos=False)
