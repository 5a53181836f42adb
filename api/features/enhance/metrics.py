"""Word, sentence and character comparisons between a text and its rewrite."""
import re
from typing import Any, Dict

_SENTENCE_END = re.compile(r"[.!?]+")


def _words(text: str) -> list[str]:
    return text.split()


def _sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_END.split(text) if s.strip()]


def _ratio(numerator: float, denominator: int) -> float:
    return round(numerator / denominator, 2) if denominator else 0.0


def calculate_text_diff(original: str, enhanced: str) -> Dict[str, Any]:
    original_words, enhanced_words = _words(original), _words(enhanced)
    return {
        "word_changes": {
            "added": len(enhanced_words) - len(original_words),
            "original_count": len(original_words),
            "enhanced_count": len(enhanced_words),
        },
        "char_changes": {
            "added": len(enhanced) - len(original),
            "original_count": len(original),
            "enhanced_count": len(enhanced),
        },
    }


def calculate_text_metrics(original: str, enhanced: str) -> Dict[str, Any]:
    original_sentences, enhanced_sentences = _sentences(original), _sentences(enhanced)
    original_letters = len(re.sub(r"\s", "", original))
    enhanced_letters = len(re.sub(r"\s", "", enhanced))
    return {
        "readability": {
            "original_avg_sentence_length": _ratio(len(original), len(original_sentences)),
            "enhanced_avg_sentence_length": _ratio(len(enhanced), len(enhanced_sentences)),
        },
        "structure": {
            "original_sentences": len(original_sentences),
            "enhanced_sentences": len(enhanced_sentences),
            "sentence_change": len(enhanced_sentences) - len(original_sentences),
        },
        "complexity": {
            "original_avg_word_length": _ratio(original_letters, len(_words(original))),
            "enhanced_avg_word_length": _ratio(enhanced_letters, len(_words(enhanced))),
        },
    }
