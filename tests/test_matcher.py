from surface_patterns import (
    Genre,
    MatcherEnv,
    PatternToken,
    Restriction,
    SurfacePattern,
    SurfacePatternConfig,
    SurfacePatternFactory,
    TokenSequenceMatcher,
)
from surface_patterns.restrictions import FILLER_WILDCARD


def literal(value):
    r = Restriction()
    r.add_restriction("text", value)
    return r


def nn(compound=1):
    return PatternToken("NN", True, compound > 1, compound, "O", False, False, None)


def make_matcher(registry, filler_words=("a", "an")):
    return TokenSequenceMatcher(MatcherEnv(registry, filler_words=filler_words))


def test_term_span_after_filler(registry, make_sentence):
    sentence = make_sentence("s1", ["the", "a", "cat", "sat"], ["DT", "DT", "NN", "VBD"])
    pattern = SurfacePattern([literal("the"), Restriction.wildcard(FILLER_WILDCARD, 0, 2)], nn(),
                             None, Genre.PREV)
    matcher = make_matcher(registry)
    matcher.add("p", pattern)

    matches = list(matcher.find(sentence.tokens))
    assert [(m.key, m.term_start, m.term_end) for m in matches] == [("p", 2, 3)]


def test_compound_target_prefers_longest(registry, make_sentence):
    sentence = make_sentence("s1", ["the", "cat", "food", "sat"], ["DT", "NN", "NN", "VBD"])
    matcher = make_matcher(registry)
    matcher.add("p", SurfacePattern([literal("the")], nn(compound=2), None, Genre.PREV))

    matches = list(matcher.find(sentence.tokens))
    assert len(matches) == 1
    assert (matches[0].term_start, matches[0].term_end) == (1, 3)

    all_matches = list(matcher.find(sentence.tokens, find_all=True))
    assert {(m.term_start, m.term_end) for m in all_matches} == {(1, 2), (1, 3)}


def test_label_restriction_matches_labeled_tokens_only(registry, make_sentence):
    label_key = registry.key_for("ANIMAL")
    context = Restriction()
    context.add_restriction(label_key, "ANIMAL")
    pattern = SurfacePattern([context], PatternToken("VB", True, False, 1, "O", False, False, None),
                             None, Genre.PREV)
    labeled = make_sentence("s1", ["dog", "barked"], ["NN", "VBD"], labels=[{"ANIMAL": "ANIMAL"}, {}])
    unlabeled = make_sentence("s2", ["man", "barked"], ["NN", "VBD"])

    matcher = make_matcher(registry)
    matcher.add("p", pattern)
    assert len(list(matcher.find(labeled.tokens))) == 1
    assert list(matcher.find(unlabeled.tokens)) == []


def test_not_allowed_classes_exclude_target(registry, make_sentence):
    sentence = make_sentence(
        "s1", ["the", "park"], ["DT", "NN"],
        labels=[{}, {"PLACE": "PLACE"}], label_names=("ANIMAL", "PLACE"),
    )
    pattern = SurfacePattern([literal("the")], nn(), None, Genre.PREV)

    plain = make_matcher(registry)
    plain.add("p", pattern)
    assert len(list(plain.find(sentence.tokens))) == 1

    restricted = make_matcher(registry)
    restricted.add("p", pattern, not_allowed_classes={"PLACE": "PLACE"})
    assert list(restricted.find(sentence.tokens)) == []


def test_generated_patterns_match_their_own_sentence(registry, make_sentence):
    config = SurfacePatternConfig(min_window_4_pattern=1, max_window_4_pattern=2,
                                  use_next_context=True, show_progress=False)
    sentence = make_sentence("s1", ["she", "saw", "the", "cat", "sleep"], ["PRP", "VBD", "DT", "NN", "VB"])
    factory = SurfacePatternFactory(config, registry, ["ANIMAL"])
    patterns = [p for p in factory.get_context(sentence.tokens, 3, set()) if p.token.use_tag]
    assert {p.genre for p in patterns} == {Genre.PREV, Genre.NEXT, Genre.PREVNEXT}

    matcher = TokenSequenceMatcher(MatcherEnv.from_config(config, registry))
    for n, pattern in enumerate(patterns):
        matcher.add(n, pattern)
    found = {m.key for m in matcher.find(sentence.tokens, find_all=True) if m.term_start == 3}
    assert found == set(range(len(patterns)))


def test_across_patterns_selects_leftmost_longest_over_all_patterns(registry, make_sentence):
    sentence = make_sentence("s1", ["the", "cat", "food", "sat"], ["DT", "NN", "NN", "VBD"])
    matcher = make_matcher(registry)
    matcher.add("single", SurfacePattern([literal("the")], nn(), None, Genre.PREV))
    matcher.add("compound", SurfacePattern([literal("the")], nn(compound=2), None, Genre.PREV))
    matcher.add("compound_again", SurfacePattern([literal("the")], nn(compound=2), None, Genre.PREV))

    per_pattern = {(m.key, m.term_start, m.term_end) for m in matcher.find(sentence.tokens)}
    assert per_pattern == {("single", 1, 2), ("compound", 1, 3), ("compound_again", 1, 3)}

    combined = [(m.key, m.term_start, m.term_end)
                for m in matcher.find(sentence.tokens, across_patterns=True)]
    assert combined == [("compound", 1, 3), ("compound_again", 1, 3)]
