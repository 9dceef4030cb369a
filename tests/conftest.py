import pytest

from surface_patterns import AttributeKeyRegistry, DataInstance, PhraseTable, SurfacePatternConfig


@pytest.fixture
def registry():
    return AttributeKeyRegistry()


@pytest.fixture
def phrase_table():
    return PhraseTable()


@pytest.fixture
def config():
    return SurfacePatternConfig(show_progress=False)


@pytest.fixture
def make_sentence():
    """Build a sentence from words, tags and per-token label dicts."""

    def _make(sent_id, words, tags, labels=None, label_names=("ANIMAL",), **token_fields):
        if labels is None:
            labels = [{} for _ in words]
        full_labels = [
            {name: token_labels.get(name, "O") for name in label_names} | token_labels
            for token_labels in labels
        ]
        return DataInstance.from_words(sent_id, words, tags, labels=full_labels, **token_fields)

    return _make
