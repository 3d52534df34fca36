"""Inventory loading, column detection and write-back."""
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pandas as pd
import pytest

from inventory import (
    apply_assignments,
    detect_columns,
    list_image_files,
    load_and_clean_inventory,
    read_inventory,
    records_from_frame,
    write_inventory,
    write_inventory_csv,
)

COLUMNS = ['Item ID', 'Item (SKU Owleys)', 'ITEM NAME', 'BOX Picture']


def make_inventory():
    return pd.DataFrame([
        ['p-3014-10', 'OUTR01-01A (new)', 'Hanging Foldable Trunk Organizer', ''],
        ['', '', 'Section header', ''],
        ['p-3014-20', '', 'Quick Kennel Travel Carrier', 'kennel.jpg'],
    ], columns=COLUMNS)


def test_detect_columns():
    assert detect_columns(COLUMNS) == {
        'id_col': 'Item ID',
        'sku_col': 'Item (SKU Owleys)',
        'name_col': 'ITEM NAME',
        'image_col': 'BOX Picture',
    }


def test_detect_columns_letter_spaced_name():
    cols = detect_columns(['Item ID', 'I T E M    N A M E'])
    assert cols['name_col'] == 'I T E M    N A M E'
    assert cols['sku_col'] is None
    assert cols['image_col'] is None


def test_detect_columns_plain_id():
    cols = detect_columns(['Title', 'ID'])
    assert cols['id_col'] == 'ID'
    assert cols['name_col'] == 'Title'


def test_load_and_clean_inventory():
    df = pd.DataFrame([
        ['p-3014-10', 'OUTR01-01A', 'Hanging Foldable Trunk Organizer', ''],
        ['', '', 'Section header', ''],
        ['P-3014-10 ', '', 'Duplicate row', ''],
        ['p-3014-20', '', '', ''],
    ], columns=COLUMNS)

    clean, stats = load_and_clean_inventory(df)

    assert stats['original'] == 4
    assert stats['empty_id_dropped'] == 1
    assert stats['final'] == 3
    assert len(clean) == 3
    assert clean['Item ID'].tolist() == ['p-3014-10', 'P-3014-10', 'p-3014-20']
    assert stats['warnings'][0] == "Found 1 identifiers shared by more than one row"
    assert 'p-3014-10: p-3014-10, P-3014-10' in stats['warnings'][1]
    assert stats['warnings'][2].startswith('1 rows have an empty name')


def test_load_and_clean_requires_id_and_name():
    with pytest.raises(ValueError):
        load_and_clean_inventory(pd.DataFrame({'Foo': ['x']}))


def test_records_from_frame():
    clean, stats = load_and_clean_inventory(make_inventory())
    records = records_from_frame(clean, stats['columns'])

    assert [r.identifier for r in records] == ['p-3014-10', 'p-3014-20']
    assert records[0].secondary_code == 'OUTR01-01A (new)'
    assert records[0].display_name == 'Hanging Foldable Trunk Organizer'
    assert records[1].assigned_resource == 'kennel.jpg'


def test_apply_assignments_writes_back_by_identifier():
    raw = make_inventory()
    clean, stats = load_and_clean_inventory(raw)
    records = records_from_frame(clean, stats['columns'])
    records[0].assigned_resource = 'p-3014-10.jpg'

    updated = apply_assignments(raw, records, stats['columns'])

    assert updated['BOX Picture'].tolist() == ['p-3014-10.jpg', '', 'kennel.jpg']
    assert raw['BOX Picture'].tolist() == ['', '', 'kennel.jpg']


def test_apply_assignments_creates_image_column():
    raw = make_inventory().drop(columns=['BOX Picture'])
    clean, stats = load_and_clean_inventory(raw)
    records = records_from_frame(clean, stats['columns'])
    records[1].assigned_resource = 'carrier.png'

    updated = apply_assignments(raw, records, stats['columns'])

    assert updated['BOX Picture'].tolist() == ['', '', 'carrier.png']


def test_read_and_write_semicolon_csv(tmp_path):
    path = tmp_path / 'items.csv'
    path.write_text(
        "Item ID;Item (SKU Owleys);ITEM NAME;BOX Picture\n"
        "p-3014-10;OUTR01-01A;Hanging Foldable Trunk Organizer;\n"
        "p-3014-20;;Quick Kennel Travel Carrier;kennel.jpg\n",
        encoding='utf-8',
    )

    df = read_inventory(str(path))
    assert df.columns.tolist() == COLUMNS
    assert df.loc[0, 'BOX Picture'] == ''
    assert df.loc[1, 'Item (SKU Owleys)'] == ''

    out = tmp_path / 'out.csv'
    write_inventory_csv(df, str(out))
    assert out.read_text(encoding='utf-8').splitlines()[0] == "Item ID;Item (SKU Owleys);ITEM NAME;BOX Picture"


def test_read_excel_inventory(tmp_path):
    path = tmp_path / 'items.xlsx'
    make_inventory().to_excel(path, index=False)

    df = read_inventory(str(path))

    assert df.columns.tolist() == COLUMNS
    assert df.loc[2, 'ITEM NAME'] == 'Quick Kennel Travel Carrier'


def test_write_inventory_keeps_excel_format(tmp_path):
    path = tmp_path / 'items.xlsx'
    make_inventory().to_excel(path, index=False)

    raw = read_inventory(str(path))
    clean, stats = load_and_clean_inventory(raw)
    records = records_from_frame(clean, stats['columns'])
    records[0].assigned_resource = 'p-3014-10.jpg'
    write_inventory(apply_assignments(raw, records, stats['columns']), str(path))

    assert path.read_bytes()[:2] == b'PK'
    df = read_inventory(str(path))
    assert df.columns.tolist() == COLUMNS
    assert df['BOX Picture'].tolist() == ['p-3014-10.jpg', '', 'kennel.jpg']


def test_write_inventory_csv_path_uses_semicolons(tmp_path):
    out = tmp_path / 'items.csv'
    write_inventory(make_inventory(), str(out))
    assert out.read_text(encoding='utf-8').splitlines()[0] == "Item ID;Item (SKU Owleys);ITEM NAME;BOX Picture"


def test_read_legacy_xls_is_rejected(tmp_path):
    path = tmp_path / 'items.xls'
    path.write_bytes(b'')
    with pytest.raises(ValueError):
        read_inventory(str(path))


def test_list_image_files(tmp_path):
    for name in ['b.PNG', 'a.jpg', 'notes.txt', 'c.webp']:
        (tmp_path / name).write_bytes(b'')
    assert list_image_files(str(tmp_path)) == ['a.jpg', 'b.PNG', 'c.webp']
    assert list_image_files(str(tmp_path / 'missing')) == []
