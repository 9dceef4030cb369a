"""Validation utilities for corpus tokens before pattern construction."""

from typing import Dict, Iterable, List

from ..corpus import DataInstance


class CorpusValidator:
    """Check that sentences carry the annotations the pattern factory needs."""

    def __init__(self, generalize_classes: Iterable[str]):
        self.generalize_classes = sorted(generalize_classes)

    def validate_sentence(self, sentence: DataInstance) -> Dict:
        """Validate a single sentence."""
        issues = []
        for i, token in enumerate(sentence.tokens):
            if token.index != i:
                issues.append(f"Token {i} has index {token.index}")
            if token.sent_id != sentence.sent_id:
                issues.append(f"Token {i} belongs to sentence {token.sent_id}")
            if not token.word:
                issues.append(f"Token {i} has no word")
            if token.ner is None:
                issues.append(f"Token {i} has no NER tag")
            missing = [label for label in self.generalize_classes if token.labels.get(label) is None]
            if missing:
                issues.append(f"Token {i} missing labels: {', '.join(missing)}")

        return {'valid': len(issues) == 0, 'issues': issues}

    def validate_corpus(self, sents: Dict[str, DataInstance]) -> Dict:
        """Validate every sentence of a corpus."""
        results = {sent_id: self.validate_sentence(sent) for sent_id, sent in sents.items()}
        mismatched: List[str] = [sent_id for sent_id, sent in sents.items() if sent.sent_id != sent_id]
        invalid = [
            {'sent_id': sent_id, 'issues': r['issues']}
            for sent_id, r in results.items() if not r['valid']
        ]
        invalid.extend({'sent_id': sent_id, 'issues': ["Keyed under a different sentence id"]}
                       for sent_id in mismatched)
        invalid_ids = {entry['sent_id'] for entry in invalid}

        return {
            'total_sentences': len(sents),
            'valid_sentences': len(sents) - len(invalid_ids),
            'invalid_sentences': len(invalid_ids),
            'validation_rate': (len(sents) - len(invalid_ids)) / len(sents) if sents else 0,
            'issues': invalid
        }
