"""
Core matching engine for catalog reconciliation.

Matches a noisy text string (an image filename stem, a generated product
title) against a small reference catalog and reports the best record when
its score clears a confidence threshold.

Matching Approach:
    - Normalizes strings (lowercase, strip quotes and punctuation, hyphenate whitespace)
    - Splits the normalized form into general keywords (stop-words removed) and
      salient keywords (terms from a curated product-family vocabulary)
    - Scores a candidate name by weighted substring overlap of both keyword tiers,
      then raises the score to fixed floors on shared size / color / model tokens

Tiers (evaluated per record, in priority order):
    1. IDENTIFIER: normalized query equals the normalized identifier -> 1.0, returned at once
    2. CODE:       normalized query equals the secondary code without qualifiers -> 0.95
    3. NAME:       keyword similarity against the display name
    4. PARTIAL:    query contains identifier/code (or vice versa) while score < 0.3 -> 0.2

Threshold:
    - best score >= 0.5: accepted at >= 0.15
    - best score <  0.5: accepted at >= 0.20
    - Ties keep the first record in catalog order
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
SALIENT_WEIGHT = 0.6            # Share of the name score carried by salient keywords

SCORE_IDENTIFIER = 1.0          # Exact identifier match
SCORE_CODE = 0.95               # Exact secondary-code match
SCORE_PARTIAL = 0.2             # Identifier / code containment
PARTIAL_TIER_CEILING = 0.3      # Containment is only checked below this score

SIZE_FLOOR = 0.25
COLOR_FLOOR = 0.20
MODEL_FLOOR = 0.25

HIGH_CONFIDENCE_SCORE = 0.5     # Scores at or above this use the lenient bar
NAME_THRESHOLD = 0.2            # Acceptance bar below HIGH_CONFIDENCE_SCORE
LENIENT_THRESHOLD = 0.15        # Acceptance bar at or above HIGH_CONFIDENCE_SCORE

TIER_IDENTIFIER = "IDENTIFIER"
TIER_CODE = "CODE"
TIER_NAME = "NAME"
TIER_PARTIAL = "PARTIAL"
TIER_NONE = "NONE"

MODE_IDENTIFIER_FIRST = "IDENTIFIER_FIRST"
MODE_NAME_ONLY = "NAME_ONLY"   # Tier 1 disabled (generated titles never carry IDs)

# Letter-led prefix, a 4-digit group, then 2-4 digit groups: "p-3014-10", "b-1234-5678"
CODE_LIKE_PATTERN = re.compile(r'^[a-z][a-z0-9]*-\d{4}(?:-\d{2,4})+$')

_QUOTES = re.compile(r'["\'«»“”„‘’‚`]')
_NON_TOKEN_CHARS = re.compile(r'[^a-z0-9\s-]')
_QUALIFIERS = re.compile(r'\s*\([^)]*\)\s*')


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

def salient_rule(label: str, terms: Sequence[str]) -> Tuple[str, re.Pattern]:
    """Compile one salient cluster. Terms match anywhere, so glued names like "Kickmat" still hit."""
    alternation = '|'.join(re.escape(t) for t in terms)
    return label, re.compile(r'(?:%s)' % alternation, re.IGNORECASE)


@dataclass(frozen=True)
class Vocabulary:
    """
    Fixed word lists used by keyword extraction and scoring.

    Passed into every extractor / scorer call so a catalog from another
    product domain can swap in its own lists without touching the logic.
    """
    stop_words: FrozenSet[str]
    salient_rules: Tuple[Tuple[str, re.Pattern], ...]
    size_groups: Tuple[Tuple[str, ...], ...]
    colors: Tuple[str, ...]
    models: Tuple[str, ...]


DEFAULT_VOCABULARY = Vocabulary(
    stop_words=frozenset([
        'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by',
        'old', 'owleys', 'car',
        'black', 'white', 'gray', 'grey', 'brown', 'tan', 'beige', 'cream', 'golden',
        'eco', 'leather',
        'mk', 'ii', 'pro',
    ]),
    salient_rules=(
        salient_rule('trunk', ['hanging', 'foldable', 'trunk', 'organizer']),
        salient_rule('travel', ['travel', 'buddy', 'hold', 'go', 'hexy', 'highway', 'magic', 'box']),
        salient_rule('seat', ['seat', 'protector', 'cover', 'mat', 'kick']),
        salient_rule('pet', ['dog', 'hammock', 'carrier']),
        salient_rule('line', ['harlow', 'seashell', 'nomad', 'scorcher']),
        salient_rule('cleaning', ['crossclean', 'crossgun', 'vacuum', 'cleaner']),
    ),
    # 17.7" and 21.6" normalize to "177" / "216"
    size_groups=(('17', '177'), ('21', '216')),
    colors=('black', 'gray', 'grey', 'white', 'golden', 'tan', 'beige'),
    models=('hexy', 'highway', 'harlow', 'travel', 'buddy', 'quick', 'kennel', 'pro'),
)


# ---------------------------------------------------------------------------
# Catalog types
# ---------------------------------------------------------------------------

@dataclass
class CatalogRecord:
    """
    One authoritative inventory entry.

    identifier / secondary_code / display_name are never changed by the engine.
    assigned_resource is written only by the reconciliation policies.
    """
    identifier: str
    display_name: str
    secondary_code: str = ''
    assigned_resource: str = ''


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of a catalog search.

    record is the best candidate seen (None when nothing scored above 0),
    and is kept on no-match results so callers can report near misses.
    """
    record: Optional[CatalogRecord]
    score: float
    tier: str = TIER_NONE
    matched: bool = False


NO_MATCH = MatchResult(record=None, score=0.0)


# ---------------------------------------------------------------------------
# String normalization
# ---------------------------------------------------------------------------

@lru_cache(maxsize=50000)
def normalize(text: str) -> str:
    """
    Canonicalize a string into its hyphenated token form.

    Steps:
        1. Lowercase
        2. Strip quotation marks of every common style
        3. Drop anything that is not a-z, 0-9, whitespace or hyphen
        4. Whitespace runs -> single hyphen, hyphen runs -> single hyphen
        5. Trim leading / trailing hyphens

    The result contains no whitespace, so normalize(normalize(s)) == normalize(s).
    """
    if not isinstance(text, str):
        return ""

    s = text.lower()
    s = _QUOTES.sub('', s)
    s = _NON_TOKEN_CHARS.sub('', s)
    s = re.sub(r'\s+', '-', s)
    s = re.sub(r'-+', '-', s)
    return s.strip('-')


def strip_qualifiers(code: str) -> str:
    """Remove parenthetical qualifiers: 'OUTR01-01A (new box)' -> 'OUTR01-01A'."""
    if not isinstance(code, str):
        return ""
    return _QUALIFIERS.sub('', code).strip()


def looks_like_code(text: str) -> bool:
    """True when the text reads like an inventory identifier rather than a title."""
    return bool(CODE_LIKE_PATTERN.match(normalize(text)))


# ---------------------------------------------------------------------------
# Keyword extraction
# ---------------------------------------------------------------------------

def _tokens(text: str) -> List[str]:
    norm = normalize(text)
    return norm.split('-') if norm else []


def extract_general(text: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> Set[str]:
    """Hyphen tokens longer than 2 characters, minus stop-words."""
    return {
        t for t in _tokens(text)
        if len(t) > 2 and t not in vocabulary.stop_words
    }


def extract_salient(text: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> Set[str]:
    """
    Collect every salient vocabulary term found in the raw string.

    Each rule is applied independently and all of its hits are kept, so
    'hanging-trunk-organizer' yields {'hanging', 'trunk', 'organizer'}.
    """
    if not isinstance(text, str):
        return set()
    found = set()
    for _label, pattern in vocabulary.salient_rules:
        found.update(m.lower() for m in pattern.findall(text))
    return found


# ---------------------------------------------------------------------------
# Similarity scoring
# ---------------------------------------------------------------------------

def _overlap(query_tokens: Set[str], candidate_tokens: Set[str]) -> float:
    """Share of query tokens contained in (or containing) some candidate token."""
    if not query_tokens or not candidate_tokens:
        return 0.0
    hits = sum(
        1 for q in query_tokens
        if any(q in c or c in q for c in candidate_tokens)
    )
    return hits / max(len(query_tokens), len(candidate_tokens))


def _shares_size(query_tokens: Set[str], candidate_tokens: Set[str], vocabulary: Vocabulary) -> bool:
    for group in vocabulary.size_groups:
        if query_tokens.intersection(group) and candidate_tokens.intersection(group):
            return True
    return False


def _shares_any(query_tokens: Set[str], candidate_tokens: Set[str], terms: Sequence[str]) -> bool:
    return any(t in query_tokens and t in candidate_tokens for t in terms)


def score(query: str, candidate_name: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> float:
    """
    Similarity of a query string to a candidate display name, in [0, 1].

    base = salient_overlap * 0.6 + general_overlap * 0.4 when the query has
    salient keywords, otherwise general_overlap alone. Shared size, color
    and model tokens then lift the score to at least 0.25 / 0.20 / 0.25.
    """
    general_query = extract_general(query, vocabulary)
    general_candidate = extract_general(candidate_name, vocabulary)
    if not general_query or not general_candidate:
        return 0.0

    salient_query = extract_salient(query, vocabulary)
    salient_candidate = extract_salient(candidate_name, vocabulary)

    general_overlap = _overlap(general_query, general_candidate)
    salient_overlap = _overlap(salient_query, salient_candidate)

    salient_weight = SALIENT_WEIGHT if salient_query else 0.0
    general_weight = 1 - salient_weight
    result = salient_overlap * salient_weight + general_overlap * general_weight

    # Floors are a running maximum: a later check never lowers the score
    query_tokens = set(_tokens(query))
    candidate_tokens = set(_tokens(candidate_name))
    if _shares_size(query_tokens, candidate_tokens, vocabulary):
        result = max(result, SIZE_FLOOR)
    if _shares_any(query_tokens, candidate_tokens, vocabulary.colors):
        result = max(result, COLOR_FLOOR)
    if _shares_any(query_tokens, candidate_tokens, vocabulary.models):
        result = max(result, MODEL_FLOOR)

    return min(max(result, 0.0), 1.0)


# ---------------------------------------------------------------------------
# Catalog matching
# ---------------------------------------------------------------------------

def acceptance_threshold(best_score: float) -> float:
    """Two-tier bar: candidates already at 0.5+ are held to the lenient cutoff."""
    return LENIENT_THRESHOLD if best_score >= HIGH_CONFIDENCE_SCORE else NAME_THRESHOLD


def _contains_either(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def _contained_length(a: str, b: str) -> int:
    """Length of the shorter string when one contains the other, else 0."""
    if _contains_either(a, b):
        return min(len(a), len(b))
    return 0


def score_record(
    query: str,
    record: CatalogRecord,
    mode: str = MODE_IDENTIFIER_FIRST,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> Tuple[float, str]:
    """
    Evaluate all tiers of one record against a query.

    Returns (score, tier). Records without an identifier score (0.0, NONE).
    """
    identifier = str(record.identifier or '').strip()
    if not identifier:
        return 0.0, TIER_NONE

    query_norm = normalize(query)
    id_norm = normalize(identifier)
    code_norm = normalize(strip_qualifiers(record.secondary_code or ''))

    # --- Tier 1: exact identifier ---
    if mode == MODE_IDENTIFIER_FIRST and query_norm and id_norm == query_norm:
        return SCORE_IDENTIFIER, TIER_IDENTIFIER

    best, tier = 0.0, TIER_NONE

    # --- Tier 2: exact secondary code ---
    if query_norm and code_norm and code_norm == query_norm:
        best, tier = SCORE_CODE, TIER_CODE

    # --- Tier 3: name similarity ---
    if record.display_name:
        similarity = score(query, record.display_name, vocabulary)
        if similarity > best:
            best, tier = similarity, TIER_NAME

    # --- Tier 4: partial identifier / code containment ---
    if best < PARTIAL_TIER_CEILING:
        if _contains_either(query_norm, id_norm) or _contains_either(query_norm, code_norm):
            if SCORE_PARTIAL > best:
                best, tier = SCORE_PARTIAL, TIER_PARTIAL

    return best, tier


def find_best_match(
    query: str,
    catalog: Sequence[CatalogRecord],
    mode: str = MODE_IDENTIFIER_FIRST,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> MatchResult:
    """
    Find the best catalog record for a query string.

    An exact identifier match (IDENTIFIER_FIRST mode only) returns immediately.
    Otherwise every record is scored; the highest score wins and ties keep the
    earlier record. The winner is accepted only if it clears
    acceptance_threshold(). The catalog is never modified.
    """
    best_record = None
    best_score = 0.0
    best_tier = TIER_NONE

    for record in catalog:
        record_score, tier = score_record(query, record, mode, vocabulary)
        if tier == TIER_IDENTIFIER:
            return MatchResult(record=record, score=record_score, tier=tier, matched=True)
        if record_score > best_score:
            best_record, best_score, best_tier = record, record_score, tier

    if best_record is None:
        return NO_MATCH

    return MatchResult(
        record=best_record,
        score=best_score,
        tier=best_tier,
        matched=best_score >= acceptance_threshold(best_score),
    )


def find_code_match(
    query: str,
    catalog: Sequence[CatalogRecord],
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> MatchResult:
    """
    Search identifier / code fields for code-looking generator output.

    Exact identifier -> 1.0, exact cleaned code -> 0.95, containment in either
    direction -> 0.2. Containment hits are ranked by the length of the shared
    part, so 'AP-3014-10' prefers p-3014-10 over p-3014-1. Any hit is accepted
    at the lenient bar, since a stray code in a title is only ever a garbled
    reference to an inventory entry.
    """
    query_norm = normalize(query)
    best_record = None
    best_key = (0.0, 0)
    best_tier = TIER_NONE

    if query_norm:
        for record in catalog:
            id_norm = normalize(str(record.identifier or '').strip())
            if not id_norm:
                continue
            code_norm = normalize(strip_qualifiers(record.secondary_code or ''))

            if id_norm == query_norm:
                return MatchResult(record=record, score=SCORE_IDENTIFIER, tier=TIER_IDENTIFIER, matched=True)
            if code_norm and code_norm == query_norm:
                key, tier = (SCORE_CODE, len(code_norm)), TIER_CODE
            else:
                shared = max(_contained_length(query_norm, id_norm), _contained_length(query_norm, code_norm))
                if not shared:
                    continue
                key, tier = (SCORE_PARTIAL, shared), TIER_PARTIAL

            if key > best_key:
                best_record, best_key, best_tier = record, key, tier

    if best_record is None:
        return NO_MATCH

    best_score = best_key[0]
    return MatchResult(
        record=best_record,
        score=best_score,
        tier=best_tier,
        matched=best_score >= LENIENT_THRESHOLD,
    )


# ---------------------------------------------------------------------------
# Single-query diagnostics (for the UI "Test Match" panel)
# ---------------------------------------------------------------------------

def explain_match(
    query: str,
    catalog: Sequence[CatalogRecord],
    mode: str = MODE_IDENTIFIER_FIRST,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
    limit: int = 3,
) -> Dict:
    """
    Break down how a single query is matched. Returns the keywords extracted,
    the best MatchResult and the top `limit` scored alternatives.
    """
    scored = []
    for position, record in enumerate(catalog):
        record_score, tier = score_record(query, record, mode, vocabulary)
        if record_score > 0:
            scored.append((record_score, position, tier, record))

    # Highest score first, catalog order on ties
    scored.sort(key=lambda item: (-item[0], item[1]))

    alternatives = []
    for record_score, _position, tier, record in scored[:limit]:
        alternatives.append({
            'identifier': record.identifier,
            'display_name': record.display_name,
            'score': round(record_score, 4),
            'tier': tier,
        })

    return {
        'query': query,
        'normalized': normalize(query),
        'general_keywords': sorted(extract_general(query, vocabulary)),
        'salient_keywords': sorted(extract_salient(query, vocabulary)),
        'best_match': find_best_match(query, catalog, mode, vocabulary),
        'alternatives': alternatives,
    }
