from __future__ import annotations

import argparse
from collections import Counter
from typing import Optional, Sequence


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Validate an exercise catalog file and print a per-region summary.")
    parser.add_argument("path", nargs="?", default=None, help="Catalog JSON file (default: the bundled catalog)")
    parser.add_argument("--list", action="store_true", help="Also print every exercise name")
    args = parser.parse_args(argv)

    # NOTE: run where the app modules (`services`, `core`) are importable,
    # e.g. after `pip install -e .` or from apps/api.
    from services.recovery.catalog import DEFAULT_CATALOG_PATH, EquipmentClass, load_catalog
    from services.recovery.errors import CatalogError

    path = args.path or DEFAULT_CATALOG_PATH
    try:
        catalog = load_catalog(path)
    except CatalogError as e:
        print(f"INVALID: {e}")
        return 1

    print("Exercise catalog OK")
    print(f"- path: {path}")
    print(f"- version: {catalog.version}")
    print(f"- exercises: {len(catalog)}")

    for region in catalog.regions:
        entries = catalog.by_region(region)
        counts = Counter(ex.equipment_class for ex in entries)
        print(
            f"  - {region}: {len(entries)} "
            f"(bodyweight={counts[EquipmentClass.BODYWEIGHT]}, band={counts[EquipmentClass.BAND]})"
        )
        if args.list:
            for ex in entries:
                print(f"      {ex.id} {ex.canonical_name} [{ex.equipment_class.value}]")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
