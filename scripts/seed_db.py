"""
Seed script for the Civic Report Tracker store.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured store: python scripts/seed_db.py --apply
  - Custom seed file: python scripts/seed_db.py --apply --seed ./db_seed.json

Seed file layout:
  {
    "profiles": [{"user_id": "...", "role": "admin", "department": "..."}],
    "reports": [{"owner_id": "...", "category": "pothole", "title": "...", ...}]
  }

Behavior:
  - Profiles are written as-is (roles included).
  - Reports go through ReportService.create_report so they get real report numbers.

NOTE: When applying to real Firestore, ensure FIREBASE_CREDENTIALS_PATH is set
and USE_MOCK_DB=false in .env.
"""

import argparse
import json
import os

from civic_tracker.models.report import ReportCreate
from civic_tracker.models.user import Profile
from civic_tracker.services.profile_service import get_profile_service
from civic_tracker.services.report_service import get_report_service
from civic_tracker.services.storage import get_report_store


def load_seed(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_to_store(seed: dict, apply: bool = False):
    store = get_report_store() if apply else None
    profile_service = get_profile_service() if apply else None
    report_service = get_report_service() if apply else None

    for entry in seed.get("profiles", []):
        profile = Profile(**entry)
        print(f"Preparing profile: {profile.user_id} ({profile.role.value})")
        if apply:
            store.save_profile(profile)
            print(f"Wrote profile: {profile.user_id}")

    for entry in seed.get("reports", []):
        entry = dict(entry)
        owner_id = entry.pop("owner_id")
        report = ReportCreate(**entry)
        print(f"Preparing report: {report.title} (owner {owner_id})")
        if apply:
            owner = profile_service.profile_for_identity(owner_id)
            created = report_service.create_report(owner, report)
            print(f"Wrote report: {created.report_number}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the store instead of dry-run")
    parser.add_argument("--seed", default=os.path.join(os.getcwd(), "db_seed.json"), help="Seed JSON path")
    args = parser.parse_args()

    if not os.path.exists(args.seed):
        print(f"Seed file not found: {args.seed}")
        return

    write_to_store(load_seed(args.seed), apply=args.apply)

    if args.apply:
        print("Seeding completed.")
    else:
        print("Dry run complete. Re-run with --apply to write to the store.")


if __name__ == "__main__":
    main()
