#!/usr/bin/env python3
"""
CLI entry point for manual file cleanup.

Usage:
    python -m scripts.cleanup                    # run cleanup
    python -m scripts.cleanup --dry-run          # preview what would be cleaned
    python -m scripts.cleanup --skip-orphans     # only temp images / temp previews
"""

import argparse
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


def main(argv=None):
    parser = argparse.ArgumentParser(description="Storybook - File Cleanup")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview what would be cleaned without deleting",
    )
    parser.add_argument(
        "--skip-orphans",
        action="store_true",
        help="Do not look for previews/PDFs orphaned by deleted histoires",
    )
    parser.add_argument(
        "--temp-hours",
        type=int,
        default=None,
        help="Age in hours after which uploaded temp images are removed",
    )
    args = parser.parse_args(argv)

    from config.logging_config import setup_logging
    from core.services.file_cleanup import FileCleanupService

    setup_logging()

    store = None
    if not args.skip_orphans:
        from core.storybook.store import SQLiteStorybookStore
        store = SQLiteStorybookStore()

    svc = FileCleanupService(store=store, temp_max_age_hours=args.temp_hours)
    result = svc.run_cleanup(dry_run=args.dry_run)

    print(result)

    if result.errors:
        print(f"\nWarnings ({len(result.errors)}):")
        for err in result.errors:
            print(f"  - {err}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
