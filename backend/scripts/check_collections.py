"""CLI script to check collection files in the backend data directory.
Usage: python scripts/check_collections.py [--data-dir DIR] [collection ...]
"""
import sys
import argparse
import os
import pathlib
from collections import Counter
from typing import List, Optional
# Ensure `backend/` is on sys.path so `library_api` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from library_api import models
from library_api.errors import StorageCorruptError
from library_api.storage import DocumentStore

SPECS = {spec.name: spec for spec in (models.STUDENTS, models.BOOKS)}


def check(data_dir: pathlib.Path, collections: List[str]) -> int:
    """Load each collection and report problems.

    Returns the number of collections that are corrupt or hold duplicate
    unique keys. Files are only read, never rewritten.
    """
    store = DocumentStore(data_dir)
    problems = 0
    for name in collections:
        try:
            records = store.load(name)
        except StorageCorruptError as e:
            print(f'{name}: CORRUPT ({e})')
            problems += 1
            continue
        except ValueError as e:
            print(f'{name}: {e}')
            problems += 1
            continue
        spec = SPECS.get(name)
        dupes = []
        if spec:
            counts = Counter(r.get(spec.key_field) for r in records)
            dupes = sorted(str(k) for k, n in counts.items() if n > 1)
        if dupes:
            print(f'{name}: {len(records)} records, duplicate keys: {", ".join(dupes)}')
            problems += 1
        else:
            print(f'{name}: {len(records)} records OK')
    return problems


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Check JSON collection files for corruption and duplicate keys')
    parser.add_argument('--data-dir', type=pathlib.Path,
                        default=pathlib.Path(os.getenv('DATA_DIR', str(ROOT / 'data'))))
    parser.add_argument('collections', nargs='*', default=sorted(SPECS))
    args = parser.parse_args(argv)
    return 1 if check(args.data_dir, args.collections) else 0


if __name__ == '__main__':
    sys.exit(main())
