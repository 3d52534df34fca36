"""Image assignment and title correction policies."""
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import copy

import pytest

from matcher import CatalogRecord, TIER_IDENTIFIER, TIER_PARTIAL
from reconcile import (
    STATUS_ASSIGNED,
    STATUS_DUPLICATE,
    STATUS_KEPT_EXISTING,
    STATUS_NO_MATCH,
    TITLE_CORRECTED,
    TITLE_KEPT,
    TITLE_UNCHANGED,
    assign_images,
    correct_scenario_products,
    correct_title,
    correct_titles,
    image_stem,
    summarize_assignments,
)


@pytest.fixture
def catalog():
    return [
        CatalogRecord(identifier='p-3014-10', secondary_code='OUTR01-01A',
                      display_name='Hanging Foldable Trunk Organizer'),
        CatalogRecord(identifier='p-3014-20', display_name='Quick Kennel Travel Carrier'),
    ]


def test_image_stem():
    assert image_stem('images/p-3014-10.jpg') == 'p-3014-10'
    assert image_stem('travel-buddy.webp') == 'travel-buddy'


# ---------------------------------------------------------------------------
# Image assignment
# ---------------------------------------------------------------------------

def test_assign_images(catalog):
    report = assign_images(
        ['p-3014-10.jpg', 'kennel-pro-blue.png', 'random-unrelated-text.jpg'], catalog
    )
    assert [r['status'] for r in report] == [STATUS_ASSIGNED, STATUS_ASSIGNED, STATUS_NO_MATCH]
    assert catalog[0].assigned_resource == 'p-3014-10.jpg'
    assert catalog[1].assigned_resource == 'kennel-pro-blue.png'
    assert report[0]['score'] == 1.0
    assert report[0]['tier'] == TIER_IDENTIFIER
    assert report[1]['identifier'] == 'p-3014-20'
    assert report[2]['identifier'] == ''


def test_first_writer_wins_within_run(catalog):
    report = assign_images(['p-3014-10.jpg', 'hanging-trunk-organizer-black.jpg'], catalog)
    assert [r['status'] for r in report] == [STATUS_ASSIGNED, STATUS_DUPLICATE]
    assert report[1]['identifier'] == 'p-3014-10'
    assert catalog[0].assigned_resource == 'p-3014-10.jpg'


def test_previous_run_image_is_kept(catalog):
    catalog[0].assigned_resource = 'old.jpg'
    report = assign_images(['p-3014-10.jpg'], catalog)
    assert report[0]['status'] == STATUS_KEPT_EXISTING
    assert catalog[0].assigned_resource == 'old.jpg'


def test_previous_run_image_replaced_on_overwrite(catalog):
    catalog[0].assigned_resource = 'old.jpg'
    report = assign_images(
        ['p-3014-10.jpg', 'hanging-trunk-organizer-black.jpg'], catalog, overwrite_existing=True
    )
    assert [r['status'] for r in report] == [STATUS_ASSIGNED, STATUS_DUPLICATE]
    assert catalog[0].assigned_resource == 'p-3014-10.jpg'


def test_no_match_does_not_mutate(catalog):
    assign_images(['random-unrelated-text.jpg'], catalog)
    assert [r.assigned_resource for r in catalog] == ['', '']


def test_sharded_matching_equals_sequential(catalog):
    files = ['kennel-pro-blue.png', 'p-3014-10.jpg', 'hanging-trunk-organizer-black.jpg',
             'random-unrelated-text.jpg', 'travel-carrier.jpg']
    other = copy.deepcopy(catalog)
    sequential = assign_images(files, catalog)
    sharded = assign_images(files, other, max_workers=4)
    assert sequential == sharded
    assert [r.assigned_resource for r in catalog] == [r.assigned_resource for r in other]


def test_progress_callback_reports_completion(catalog):
    calls = []
    assign_images(['p-3014-10.jpg', 'x.jpg', 'y.jpg'], catalog,
                  progress_callback=lambda cur, tot: calls.append((cur, tot)))
    assert calls[-1] == (3, 3)


def test_assign_images_empty():
    assert assign_images([], []) == []


def test_summarize_assignments(catalog):
    report = assign_images(
        ['p-3014-10.jpg', 'kennel-pro-blue.png', 'random-unrelated-text.jpg'], catalog
    )
    summary = summarize_assignments(report)
    assert summary['total'] == 3
    assert summary['assigned_count'] == 2
    assert summary['no_match_count'] == 1
    assert summary['duplicate_count'] == 0
    assert summary['assigned_rate'] == 66.7
    assert summary['no_match_rate'] == 33.3
    assert summary['avg_assigned_score'] == pytest.approx(0.625)


def test_summarize_empty_report():
    summary = summarize_assignments([])
    assert summary['total'] == 0
    assert summary['assigned_count'] == 0


# ---------------------------------------------------------------------------
# Title correction
# ---------------------------------------------------------------------------

def test_title_corrected_to_inventory_spelling(catalog):
    fix = correct_title('hanging trunk organizer', catalog)
    assert fix['title'] == 'Hanging Foldable Trunk Organizer'
    assert fix['status'] == TITLE_CORRECTED
    assert fix['identifier'] == 'p-3014-10'
    assert fix['diagnostic'] == ''


def test_title_already_canonical(catalog):
    fix = correct_title('Hanging Foldable Trunk Organizer', catalog)
    assert fix['title'] == 'Hanging Foldable Trunk Organizer'
    assert fix['status'] == TITLE_UNCHANGED


def test_unresolved_title_is_kept(catalog):
    fix = correct_title('Quantum Flux Capacitor', catalog)
    assert fix['title'] == 'Quantum Flux Capacitor'
    assert fix['status'] == TITLE_KEPT
    assert fix['identifier'] == ''
    assert 'Quantum Flux Capacitor' in fix['diagnostic']


def test_code_looking_title_resolved_by_identifier(catalog):
    fix = correct_title('P-3014-20', catalog)
    assert fix['title'] == 'Quick Kennel Travel Carrier'
    assert fix['tier'] == TIER_IDENTIFIER


def test_garbled_code_resolved_by_containment(catalog):
    fix = correct_title('AP-3014-20', catalog)
    assert fix['title'] == 'Quick Kennel Travel Carrier'
    assert fix['tier'] == TIER_PARTIAL


def test_unknown_code_is_kept(catalog):
    fix = correct_title('X-9999-9999', catalog)
    assert fix['title'] == 'X-9999-9999'
    assert fix['status'] == TITLE_KEPT


def test_correct_titles_keeps_every_entry(catalog):
    titles = ['Quantum Flux Capacitor', 'kennel travel carrier', 'Quantum Flux Capacitor']
    fixes = correct_titles(titles, catalog)
    assert [f['title'] for f in fixes] == [
        'Quantum Flux Capacitor', 'Quick Kennel Travel Carrier', 'Quantum Flux Capacitor'
    ]


def test_correct_scenario_products(catalog):
    payload = {
        'scenarios': [{
            'scenario_name': 'Muddy Paws Weekend',
            'products': [
                {'title': 'kennel travel carrier', 'role': 'keeps the dog in place'},
                {'title': 'Quantum Flux Capacitor', 'role': 'unknown item'},
                {'role': 'no title here'},
            ],
        }],
    }
    original = copy.deepcopy(payload)
    corrected, report = correct_scenario_products(payload, catalog)

    assert payload == original
    products = corrected['scenarios'][0]['products']
    assert len(products) == 3
    assert products[0]['title'] == 'Quick Kennel Travel Carrier'
    assert products[1]['title'] == 'Quantum Flux Capacitor'
    assert products[2] == {'role': 'no title here'}
    assert [r['status'] for r in report] == [TITLE_CORRECTED, TITLE_KEPT]
    assert report[0]['scenario'] == 'Muddy Paws Weekend'


def test_correct_scenario_products_without_scenarios(catalog):
    corrected, report = correct_scenario_products({'error': 'x'}, catalog)
    assert corrected == {'error': 'x'}
    assert report == []
