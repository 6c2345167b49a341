#!/usr/bin/env python3
"""Seed the known issue catalog from config/known_issues.json.

Usage:
    python scripts/db/seed_known_issues.py
    python scripts/db/seed_known_issues.py --dry-run
"""
import sys
import os
import argparse

# Add project root to path (go up 3 levels: scripts/db -> scripts -> project root)
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from dotenv import load_dotenv  # noqa: E402
from intel_service.core import get_known_issue_catalog, setup_logging  # noqa: E402
from intel_service.services.known_issue_service import KnownIssueService  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Seed known issues (upsert by title)")
    parser.add_argument("--dry-run", action="store_true", help="List entries without writing")
    args = parser.parse_args()

    load_dotenv()
    setup_logging(log_level=os.getenv("LOG_LEVEL", "INFO"), service_name="seed_known_issues")

    catalog = get_known_issue_catalog()
    if args.dry_run:
        print(f"DRY RUN - {len(catalog)} known issues would be seeded:")
        for entry in catalog:
            print(f"  [{entry['severity']}] {entry['title']} ({entry['error_pattern']})")
        return

    count = KnownIssueService().seed_known_issues(catalog)
    print(f"✅ Seeded {count} known issues")


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        print(f"❌ Seeding failed: {type(e).__name__}: {e}")
        sys.exit(1)
