"""
Reconciliation policies layered on the matching engine.

Image assignment:
    - Query = image filename stem, catalog = all inventory records
    - On match, the filename is written to record.assigned_resource
    - First-writer-wins within one run: a record that already received an
      image in this run rejects later images (DUPLICATE)
    - Records that carry an image from a previous run are left alone
      (KEPT_EXISTING) unless overwrite_existing=True
    - Matching can be sharded over a thread pool; mutations are always
      applied afterwards by a single writer, in input order

Title correction:
    - Query = a generated product title; identifier tier disabled
    - Code-looking titles ("P-3014-10") are searched against identifier / code
      fields first, with a relaxed containment allowance
    - On match the title is replaced with the record's display name verbatim
    - On no-match the original title is kept (fail-open) and a diagnostic is attached
"""

import copy
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from matcher import (
    CatalogRecord,
    MatchResult,
    Vocabulary,
    DEFAULT_VOCABULARY,
    MODE_IDENTIFIER_FIRST,
    MODE_NAME_ONLY,
    find_best_match,
    find_code_match,
    looks_like_code,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
STATUS_ASSIGNED = "ASSIGNED"            # Image written to the record
STATUS_DUPLICATE = "DUPLICATE"          # Record already got an image earlier in this run
STATUS_KEPT_EXISTING = "KEPT_EXISTING"  # Record had an image from a previous run
STATUS_NO_MATCH = "NO_MATCH"            # Nothing cleared the threshold

TITLE_CORRECTED = "CORRECTED"
TITLE_UNCHANGED = "UNCHANGED"   # Matched, and the title was already the canonical spelling
TITLE_KEPT = "KEPT_ORIGINAL"    # No match, generated title kept as-is


def image_stem(filename: str) -> str:
    """'images/p-3014-10.jpg' -> 'p-3014-10'"""
    return os.path.splitext(os.path.basename(filename))[0]


# ---------------------------------------------------------------------------
# Image assignment
# ---------------------------------------------------------------------------

def _match_images(
    image_files: Sequence[str],
    catalog: Sequence[CatalogRecord],
    vocabulary: Vocabulary,
    max_workers: Optional[int],
) -> List[MatchResult]:
    """Read-only matching phase. Safe to shard: the catalog is not touched here."""
    def match_one(image_file: str) -> MatchResult:
        return find_best_match(image_stem(image_file), catalog, MODE_IDENTIFIER_FIRST, vocabulary)

    if max_workers and max_workers > 1 and len(image_files) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(match_one, image_files))
    return [match_one(f) for f in image_files]


def assign_images(
    image_files: Sequence[str],
    catalog: Sequence[CatalogRecord],
    overwrite_existing: bool = False,
    max_workers: Optional[int] = None,
    progress_callback: Optional[Callable] = None,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> List[Dict]:
    """
    Assign image files to catalog records by filename.

    Args:
        image_files: filenames (paths allowed, only the stem is matched)
        catalog: records to match against; assigned_resource is updated in place
        overwrite_existing: replace images carried over from a previous run
        max_workers: shard the matching phase across this many threads
        progress_callback: optional callable(current, total) for UI progress

    Returns:
        One report dict per image, in input order:
            image, identifier, display_name, score, tier, status
    """
    results = _match_images(image_files, catalog, vocabulary, max_workers)
    total = len(results)

    assigned_this_run = set()
    report = []
    for i, (image_file, result) in enumerate(zip(image_files, results), start=1):
        record = result.record
        row = {
            'image': image_file,
            'identifier': record.identifier if record else '',
            'display_name': record.display_name if record else '',
            'score': round(result.score, 4),
            'tier': result.tier,
        }

        if not result.matched:
            row['status'] = STATUS_NO_MATCH
        elif record.identifier in assigned_this_run and record.assigned_resource:
            row['status'] = STATUS_DUPLICATE
        elif record.assigned_resource and not overwrite_existing:
            row['status'] = STATUS_KEPT_EXISTING
        else:
            record.assigned_resource = image_file
            assigned_this_run.add(record.identifier)
            row['status'] = STATUS_ASSIGNED

        report.append(row)

        if progress_callback and (i % 50 == 0 or i == total):
            progress_callback(i, total)

    return report


def summarize_assignments(report: List[Dict]) -> Dict:
    """
    Dashboard metrics for an assign_images() report.

    Returns total, per-status counts and rates (percent), and the average
    score of assigned images.
    """
    total = len(report)
    statuses = [STATUS_ASSIGNED, STATUS_DUPLICATE, STATUS_KEPT_EXISTING, STATUS_NO_MATCH]
    if total == 0:
        summary = {'total': 0, 'avg_assigned_score': 0.0}
        for status in statuses:
            summary[f'{status.lower()}_count'] = 0
            summary[f'{status.lower()}_rate'] = 0.0
        return summary

    df = pd.DataFrame(report)
    counts = df['status'].value_counts()
    assigned = df[df['status'] == STATUS_ASSIGNED]

    summary = {
        'total': total,
        'avg_assigned_score': round(float(assigned['score'].mean()), 4) if len(assigned) > 0 else 0.0,
    }
    for status in statuses:
        count = int(counts.get(status, 0))
        summary[f'{status.lower()}_count'] = count
        summary[f'{status.lower()}_rate'] = round(count / total * 100, 1)
    return summary


# ---------------------------------------------------------------------------
# Title correction
# ---------------------------------------------------------------------------

def correct_title(
    title: str,
    catalog: Sequence[CatalogRecord],
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> Dict:
    """
    Reconcile one generated product title against the inventory.

    Returns dict with:
        'title': corrected title (or the original one when unresolved)
        'original_title', 'identifier', 'score', 'tier', 'status'
        'diagnostic': message for unresolved titles, '' otherwise
    """
    original = title if isinstance(title, str) else ''

    result = None
    if looks_like_code(original):
        result = find_code_match(original, catalog, vocabulary)
        if not result.matched:
            result = None
    if result is None:
        result = find_best_match(original, catalog, MODE_NAME_ONLY, vocabulary)

    record = result.record
    if result.matched:
        corrected = record.display_name
        status = TITLE_UNCHANGED if corrected == original else TITLE_CORRECTED
        diagnostic = ''
    else:
        corrected = original
        status = TITLE_KEPT
        if record is not None:
            diagnostic = (
                f"No inventory match for '{original}' "
                f"(closest: '{record.display_name}' at {result.score:.2f})"
            )
        else:
            diagnostic = f"No inventory match for '{original}'"

    return {
        'title': corrected,
        'original_title': original,
        'identifier': record.identifier if (record and result.matched) else '',
        'score': round(result.score, 4),
        'tier': result.tier,
        'status': status,
        'diagnostic': diagnostic,
    }


def correct_titles(
    titles: Sequence[str],
    catalog: Sequence[CatalogRecord],
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> List[Dict]:
    """Correct a list of titles. Output has exactly one entry per input title."""
    return [correct_title(t, catalog, vocabulary) for t in titles]


def correct_scenario_products(
    payload: Dict,
    catalog: Sequence[CatalogRecord],
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> Tuple[Dict, List[Dict]]:
    """
    Correct every product title inside a generated scenario payload.

    Expects {"scenarios": [{"scenario_name": ..., "products": [{"title": ...}, ...]}]}.
    Returns a corrected deep copy plus one report row per product. Products are
    never removed; malformed entries are passed through untouched.
    """
    corrected = copy.deepcopy(payload) if isinstance(payload, dict) else {}
    report = []

    scenarios = corrected.get('scenarios')
    if not isinstance(scenarios, list):
        return corrected, report

    for s_idx, scenario in enumerate(scenarios):
        if not isinstance(scenario, dict) or not isinstance(scenario.get('products'), list):
            continue
        for p_idx, product in enumerate(scenario['products']):
            if not isinstance(product, dict) or not isinstance(product.get('title'), str):
                continue
            fix = correct_title(product['title'], catalog, vocabulary)
            product['title'] = fix['title']
            fix['scenario'] = scenario.get('scenario_name', f'#{s_idx + 1}')
            fix['product_index'] = p_idx
            report.append(fix)

    return corrected, report
