import pickle

import pytest

from surface_patterns import Genre, PatternToken, Restriction, SurfacePattern
from surface_patterns.restrictions import FILLER_WILDCARD
from surface_patterns.surface_pattern import MAX_INT


def literal(value, key="text"):
    r = Restriction()
    r.add_restriction(key, value)
    return r


def nn(compound=1, use_tag=True):
    return PatternToken("NN", use_tag, compound > 1, compound, "O", False, False, None)


FW = Restriction.wildcard(FILLER_WILDCARD, 0, 2)


def test_genre_invariants():
    with pytest.raises(ValueError):
        SurfacePattern([literal("the")], nn(), [literal("sat")], Genre.PREV)
    with pytest.raises(ValueError):
        SurfacePattern([literal("the")], nn(), None, Genre.NEXT)
    with pytest.raises(ValueError):
        SurfacePattern(None, nn(), [literal("sat")], Genre.PREVNEXT)


def test_structural_equality():
    a = SurfacePattern([literal("the"), FW], nn(), None, Genre.PREV)
    b = SurfacePattern([literal("the"), Restriction.wildcard(FILLER_WILDCARD, 0, 2)], nn(), None, Genre.PREV)
    assert a == b
    assert hash(a) == hash(b)
    assert a != SurfacePattern([literal("a"), FW], nn(), None, Genre.PREV)
    assert a != SurfacePattern([literal("the"), FW], nn(use_tag=False), None, Genre.PREV)


def test_renderings():
    p = SurfacePattern([literal("the"), FW], nn(), None, Genre.PREV)
    assert p.to_string() == '[{text:"the"}] $FILLER{0,2} (?$term [{tag:/NN.*/}]{1,1})'
    assert p.to_string_simple() == "the FW <b>X:NN</b>"
    assert p.to_string_to_write() == '[{text:"the"}] $FILLER{0,2}##X:NN##'
    assert p.get_simpler_tokens_prev() == ["the", "FW"]
    assert p.get_relevant_words() == {"text": {"the"}}


def test_equal_context():
    with_tag = SurfacePattern([literal("the")], nn(), None, Genre.PREV)
    without_tag = SurfacePattern([literal("the")], nn(use_tag=False), None, Genre.PREV)
    other = SurfacePattern([literal("a")], nn(), None, Genre.PREV)

    assert with_tag.equal_context(with_tag) == 0
    assert with_tag.equal_context(other) == MAX_INT
    assert with_tag.equal_context(without_tag) == 1
    assert without_tag.equal_context(with_tag) == -1


def test_subsumes():
    short = SurfacePattern([literal("the")], nn(), None, Genre.PREV)
    long = SurfacePattern([literal("on"), literal("the")], nn(), None, Genre.PREV)

    assert SurfacePattern.subsumes(long, short)
    assert not SurfacePattern.subsumes(short, long)
    assert SurfacePattern.subsumes(short, short)
    assert SurfacePattern.subsumes_either_way(short, long)


def test_subsumes_is_antisymmetric():
    patterns = [
        SurfacePattern([literal("the")], nn(), None, Genre.PREV),
        SurfacePattern([literal("on"), literal("the")], nn(), None, Genre.PREV),
        SurfacePattern([literal("the")], nn(use_tag=False), None, Genre.PREV),
        SurfacePattern(None, nn(), [literal("sat")], Genre.NEXT),
    ]
    for a in patterns:
        for b in patterns:
            if SurfacePattern.subsumes(a, b) and SurfacePattern.subsumes(b, a):
                assert a == b


def test_subsumes_array_none_handling():
    assert SurfacePattern.subsumes_array(None, None)
    assert not SurfacePattern.subsumes_array(None, [literal("the")])
    assert not SurfacePattern.subsumes_array([literal("the")], None)


def test_ordering_puts_longer_context_first():
    short = SurfacePattern([literal("the")], nn(), None, Genre.PREV)
    long = SurfacePattern([literal("on"), literal("the")], nn(), None, Genre.PREV)
    assert sorted([short, long]) == [long, short]


def test_copy_new_token():
    p = SurfacePattern([literal("the")], nn(compound=2), None, Genre.PREV)
    assert p.copy_new_token() == p
    single = p.copy_new_token(1)
    assert single.token.num_words_compound == 1
    assert single != p
    assert single.same_genre(p) and single.same_length(p)


def test_pickle_round_trip():
    p = SurfacePattern([literal("the"), FW], nn(), [literal("sat")], Genre.PREVNEXT)
    restored = pickle.loads(pickle.dumps(p))
    assert restored == p
    assert hash(restored) == hash(p)
    assert restored.genre is Genre.PREVNEXT


def test_context_restrictions_freeze_when_added_to_a_pattern():
    the = literal("the")
    pattern = SurfacePattern([the], nn(), None, Genre.PREV)
    before = hash(pattern)

    assert the.frozen
    with pytest.raises(RuntimeError):
        the.add_restriction("text", "a")
    with pytest.raises(RuntimeError):
        the.set_occurrence(0, 2)
    assert hash(pattern) == before

    widened = the.copy()
    assert not widened.frozen
    widened.add_restriction("lemma", "a")
    assert pattern.prev_context[0].to_string() == '[{text:"the"}]'
