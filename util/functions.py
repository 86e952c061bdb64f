# util/functions.py
import re
import unicodedata
from typing import Iterable, List

_SEPARATORS = re.compile(r"[.\s\-/]")
_DOTTED = re.compile(r"\b(\d{4}(?:\.\d{2}){1,3})\b")
_PLAIN = re.compile(r"\b(\d{10}|\d{8}|\d{6})\b")


def clip_words(text: str, max_words: int = 100) -> str:
    """
    - Trim 'text' to at most `max_words` tokens separated by whitespace.
    - Adds an ellipsis when trimming occurs.
    """
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + " …"


def fold(text: str) -> str:
    """Lowercase and strip diacritics ("Tissé" -> "tisse")."""
    decomposed = unicodedata.normalize("NFD", text or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def tokenize(text: str, min_len: int = 3) -> List[str]:
    """
    Whitespace tokens of the folded text, dropping anything shorter than `min_len`.
    Order is preserved and duplicates removed.
    """
    out: List[str] = []
    for tok in fold(text).split():
        tok = tok.strip(",;:.()[]{}\"'!?")
        if len(tok) >= min_len and tok not in out:
            out.append(tok)
    return out


def token_coverage(tokens: Iterable[str], text: str) -> float:
    toks = list(tokens)
    if not toks:
        return 0.0
    hay = fold(text)
    return sum(1 for t in toks if t in hay) / len(toks)


def _keyword_pattern(kw: str) -> str:
    # whole word plus an inflection: "s" for plurals, "e?s?" after a French participle
    suffix = "e?s?" if kw.endswith("é") else "s?"
    return r"\b" + re.escape(fold(kw)) + suffix + r"\b"


def contains_keyword(text: str, keywords: Iterable[str]) -> List[str]:
    """Keywords found as whole words in `text` (plural and participle forms allowed), accent-folded."""
    hay = fold(text)
    found: List[str] = []
    for kw in keywords:
        if re.search(_keyword_pattern(kw), hay):
            found.append(kw)
    return found


# ---------------- Nomenclature codes ----------------


def normalize_code(code: str | None) -> str:
    """Strip separators and right-pad to 10 digits: "8471.30" -> "8471300000"."""
    if not code:
        return ""
    cleaned = _SEPARATORS.sub("", str(code))
    return cleaned.ljust(10, "0")


def format_code(code: str | None) -> str:
    if not code:
        return ""
    n = normalize_code(code)
    return f"{n[0:4]}.{n[4:6]}.{n[6:8]}.{n[8:10]}"


def is_valid_code(code: str | None) -> bool:
    if not code or len(code) < 4 or not code.isdigit():
        return False
    chapter = int(code[:2])
    if chapter < 1 or chapter > 99:
        return False
    # a whole value in 19000000..21009999 is a yyyymmdd date, not a code
    if len(code) >= 8 and 19000000 <= int(code) <= 21009999:
        return False
    return True


def extract_codes_from_text(text: str) -> List[str]:
    """Pull dotted or plain 6/8/10-digit codes out of free text, normalized."""
    if not text:
        return []
    out: List[str] = []
    for match in _DOTTED.findall(text) + _PLAIN.findall(text):
        digits = _SEPARATORS.sub("", match)
        code = normalize_code(digits)
        # validate before padding so an 8-digit date is still seen as one
        if is_valid_code(digits) and code not in out:
            out.append(code)
    return out
