"""Map the end of a canonical transcript back onto an engine's word timeline.

The canonical text comes out of reconciliation, so its wording need not match
any engine verbatim. Matching therefore works on normalized words with a
prefix rule that tolerates inflectional endings ("sanjam" ~ "sanja",
"noč" ~ "noči"), and tries the longest run of trailing words first.
"""

import logging
from collections.abc import Sequence

from podscribe.types import SpeechBoundaryMatch, WordTiming

logger = logging.getLogger(__name__)

MAX_RUN = 5
MIN_PREFIX = 3


def normalize_word(word: str) -> str:
    """Lowercase and keep only Unicode letters and digits."""
    return "".join(ch for ch in word.lower() if ch.isalnum())


def word_match(a: str, b: str) -> bool:
    if a == b:
        return True
    shorter, longer = sorted((a, b), key=len)
    if len(shorter) < MIN_PREFIX:
        return False
    return longer.startswith(shorter)


def words_match(target: Sequence[str], candidate: Sequence[str]) -> bool:
    return len(target) == len(candidate) and all(
        word_match(a, b) for a, b in zip(target, candidate)
    )


def find_speech_end(
    canonical_text: str, words: Sequence[WordTiming]
) -> SpeechBoundaryMatch | None:
    """Find where speech ends: the last timeline run matching the text's final words.

    Runs of 5 down to 1 trailing words are tried in turn; for each length the
    timeline is scanned from the end, so the latest occurrence wins. Returns
    None when nothing lines up, which is a normal outcome.
    """
    text_words = canonical_text.split()
    if not text_words:
        return None

    for n in range(MAX_RUN, 0, -1):
        if len(text_words) < n:
            continue

        target = [normalize_word(w) for w in text_words[-n:]]
        if not all(target):
            continue

        for i in range(len(words) - n, -1, -1):
            run = words[i : i + n]
            candidate = [normalize_word(w.word) for w in run]
            if words_match(target, candidate):
                match = SpeechBoundaryMatch(matched_words=n, timestamp=run[-1].end)
                logger.info(
                    "Matched last %d words at %.1fs: %s ~ %s",
                    n, match.timestamp, " ".join(candidate), " ".join(target),
                )
                return match

    logger.info("No word sequence match between transcript ending and word timeline")
    return None
