"""
Assign product images to inventory rows by filename.

Matching priority:
    1. Exact Item ID        (p-3014-10.jpg)
    2. Exact SKU            (OUTR01-01A.jpg)
    3. Keywords in the name (hanging-car-trunk-organizer.jpg, travel-buddy.jpg)
    4. Partial Item ID / SKU

Usage:
    python scripts/assign_images.py [inventory.csv|inventory.xlsx] [images_dir] [--overwrite]

Defaults to public/data/items.csv and public/images/. The inventory is rewritten
in place, in its own format, with the BOX Picture column filled in.
"""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from inventory import (
    read_inventory, load_and_clean_inventory, records_from_frame,
    apply_assignments, write_inventory, list_image_files,
)
from reconcile import (
    assign_images, summarize_assignments,
    STATUS_ASSIGNED, STATUS_DUPLICATE, STATUS_KEPT_EXISTING,
)

DEFAULT_CSV_PATH = os.path.join('public', 'data', 'items.csv')
DEFAULT_IMAGES_DIR = os.path.join('public', 'images')


def main(argv):
    overwrite = '--overwrite' in argv
    args = [a for a in argv if not a.startswith('--')]
    csv_path = args[0] if len(args) > 0 else DEFAULT_CSV_PATH
    images_dir = args[1] if len(args) > 1 else DEFAULT_IMAGES_DIR

    print("🖼️  Assigning images to inventory...\n")

    if not os.path.exists(csv_path):
        print(f"[ERROR] Inventory not found: {csv_path}")
        return 1

    image_files = list_image_files(images_dir)
    print(f"📁 Images found: {len(image_files)}")

    if not image_files:
        print(f"\n💡 Put images into {images_dir}/ and re-run. Filenames are matched by:")
        print("   - Item ID:  p-3014-10.jpg")
        print("   - SKU:      OUTR01-01A.jpg")
        print("   - Name:     hanging-car-trunk-organizer.jpg")
        print("   - Keywords: travel-buddy.jpg\n")
        return 0

    df_raw = read_inventory(csv_path)
    df, stats = load_and_clean_inventory(df_raw)
    for warning in stats['warnings']:
        print(f"⚠  {warning}")
    catalog = records_from_frame(df, stats['columns'])

    report = assign_images(image_files, catalog, overwrite_existing=overwrite)

    for row in report:
        confidence = f"{row['score'] * 100:.0f}%"
        if row['status'] == STATUS_ASSIGNED:
            print(f"✓ [{confidence}] {row['identifier']} \"{row['display_name'][:50]}\" -> {row['image']}")
        elif row['status'] in (STATUS_DUPLICATE, STATUS_KEPT_EXISTING):
            print(f"⚠ {row['identifier']} already has an image, skipped {row['image']}")
        else:
            print(f"❓ No item found for: {row['image']} (best {confidence})")

    df_updated = apply_assignments(df_raw, catalog, stats['columns'])
    write_inventory(df_updated, csv_path)

    summary = summarize_assignments(report)
    print(f"\n✅ Updated rows: {summary['assigned_count']}")
    print(f"📝 Inventory saved: {csv_path}\n")
    return 0


if __name__ == '__main__':
    sys.exit(main(sys.argv[1:]))
