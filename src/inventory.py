"""
Inventory loading and write-back for the matching engine.

The inventory export is a semicolon-delimited CSV (or an Excel sheet) with
columns such as:
    Item ID | Item (SKU Owleys) | ITEM NAME | BOX Picture

Some exports letter-space the name header ("I T E M    N A M E"), so columns
are detected by keyword after lowercasing and removing whitespace.
"""

import os
from typing import Dict, List, Optional, Tuple

import pandas as pd

from matcher import CatalogRecord, normalize

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.webp', '.gif', '.svg')

CSV_DELIMITER = ';'
EXCEL_EXTENSIONS = ('.xlsx',)

# Checked in this order; a column claimed by one role is not reused by another
SKU_KEYWORDS = ['sku']
ID_KEYWORDS = ['itemid', 'id']
NAME_KEYWORDS = ['itemname', 'name', 'title']
IMAGE_KEYWORDS = ['picture', 'image', 'photo']


def _compact(column: str) -> str:
    return ''.join(str(column).lower().split())


def detect_columns(columns: List[str]) -> Dict[str, Optional[str]]:
    """
    Detect the identifier, SKU, name and image columns of an inventory sheet.

    Returns dict with 'id_col', 'sku_col', 'name_col', 'image_col'
    (None when a column is not present).
    """
    result = {'id_col': None, 'sku_col': None, 'name_col': None, 'image_col': None}
    remaining = list(columns)

    def claim(role: str, keywords: List[str], exact_only: bool = False) -> None:
        # Earlier keywords win over later ones, whatever the column order
        for kw in keywords:
            for col in remaining:
                compact = _compact(col)
                if compact == kw or (not exact_only and kw in compact):
                    result[role] = col
                    remaining.remove(col)
                    return

    claim('sku_col', SKU_KEYWORDS)
    claim('image_col', IMAGE_KEYWORDS)
    claim('id_col', ID_KEYWORDS[:1])
    if result['id_col'] is None:
        claim('id_col', ID_KEYWORDS[1:], exact_only=True)
    claim('name_col', NAME_KEYWORDS)
    return result


def read_inventory(file, filename: str = '') -> pd.DataFrame:
    """
    Read an inventory export into a string-typed DataFrame.

    `file` may be a path or an uploaded file object; pass `filename` for
    file objects so the format can be told from the extension.
    .xlsx goes through openpyxl, everything else is read as CSV.
    Legacy .xls workbooks are rejected.
    """
    name = filename or (file if isinstance(file, str) else getattr(file, 'name', ''))
    ext = os.path.splitext(str(name))[1].lower()
    if ext == '.xls':
        raise ValueError("Legacy .xls workbooks are not supported, save the sheet as .xlsx or .csv")
    if ext in EXCEL_EXTENSIONS:
        df = pd.read_excel(file, dtype=str, keep_default_na=False, engine='openpyxl')
    else:
        df = pd.read_csv(file, sep=CSV_DELIMITER, dtype=str, keep_default_na=False)
    df.columns = [str(c) for c in df.columns]
    return df


def load_and_clean_inventory(df_raw: pd.DataFrame) -> Tuple[pd.DataFrame, Dict]:
    """
    Clean an inventory sheet before matching:
        1. Drop rows with an empty identifier (spacer / section rows)
        2. Warn about identifiers that collide after normalize()
        3. Warn about rows with no display name

    Returns:
        - Cleaned DataFrame (index reset)
        - Stats dict: original, empty_id_dropped, final, warnings, columns
    """
    columns = detect_columns(df_raw.columns.tolist())
    if columns['id_col'] is None or columns['name_col'] is None:
        raise ValueError(
            "Inventory needs an identifier and a name column; found: "
            + ", ".join(str(c) for c in df_raw.columns)
        )

    df = df_raw.copy()
    warnings = []
    original_count = len(df)

    id_col, name_col = columns['id_col'], columns['name_col']
    df[id_col] = df[id_col].fillna('').astype(str).str.strip()
    df = df[df[id_col] != '']
    empty_id_dropped = original_count - len(df)

    # Identifier uniqueness is checked on the same canonical form the matcher uses
    keys = df[id_col].map(normalize)
    key_counts = keys.value_counts()
    colliding = key_counts[key_counts > 1].index.tolist()
    if colliding:
        warnings.append(f"Found {len(colliding)} identifiers shared by more than one row")
        for key in colliding[:5]:  # Show first 5
            ids = df.loc[keys == key, id_col].tolist()
            warnings.append(f"  {key}: {', '.join(ids)}")

    empty_names = int((df[name_col].fillna('').astype(str).str.strip() == '').sum())
    if empty_names > 0:
        warnings.append(f"{empty_names} rows have an empty name and can only match by ID / SKU")

    stats = {
        'original': original_count,
        'empty_id_dropped': empty_id_dropped,
        'final': len(df),
        'warnings': warnings,
        'columns': columns,
    }
    return df.reset_index(drop=True), stats


def records_from_frame(df: pd.DataFrame, columns: Dict[str, Optional[str]]) -> List[CatalogRecord]:
    """Build catalog records from a cleaned inventory DataFrame, preserving row order."""
    def cell(row, col):
        if not col:
            return ''
        value = row.get(col, '')
        return '' if pd.isna(value) else str(value).strip()

    records = []
    for _, row in df.iterrows():
        records.append(CatalogRecord(
            identifier=cell(row, columns['id_col']),
            display_name=cell(row, columns['name_col']),
            secondary_code=cell(row, columns.get('sku_col')),
            assigned_resource=cell(row, columns.get('image_col')),
        ))
    return records


def apply_assignments(
    df: pd.DataFrame,
    records: List[CatalogRecord],
    columns: Dict[str, Optional[str]],
    image_col: str = 'BOX Picture',
) -> pd.DataFrame:
    """
    Copy record.assigned_resource back into the image column, keyed by identifier.

    The image column is created (as `image_col`) when the sheet has none.
    """
    df = df.copy()
    target = columns.get('image_col') or image_col
    if target not in df.columns:
        df[target] = ''

    resources = {r.identifier: r.assigned_resource for r in records if r.identifier}
    ids = df[columns['id_col']].fillna('').astype(str).str.strip()
    mapped = ids.map(resources)
    df[target] = mapped.where(mapped.notna(), df[target]).fillna('')
    return df


def write_inventory_csv(df: pd.DataFrame, path: str) -> None:
    """Write the inventory back in the same semicolon-delimited format."""
    df.to_csv(path, sep=CSV_DELIMITER, index=False, encoding='utf-8')


def write_inventory(df: pd.DataFrame, path: str) -> None:
    """Write the inventory back in the format of `path`: .xlsx via openpyxl, otherwise ';' CSV."""
    if os.path.splitext(path)[1].lower() in EXCEL_EXTENSIONS:
        df.to_excel(path, index=False, engine='openpyxl')
    else:
        write_inventory_csv(df, path)


def list_image_files(directory: str) -> List[str]:
    """Sorted image filenames in a directory. A missing directory yields []."""
    if not os.path.isdir(directory):
        return []
    return sorted(
        f for f in os.listdir(directory)
        if os.path.splitext(f)[1].lower() in IMAGE_EXTENSIONS
    )
