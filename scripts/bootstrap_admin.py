#!/usr/bin/env python3
"""Create or repair the admin account and optionally seed demo jobs.

Usage:
    # Using environment variables:
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=change-me-now python scripts/bootstrap_admin.py

    # Or with command line args:
    python scripts/bootstrap_admin.py --email admin@example.com --password change-me-now --jobs

Environment Variables:
    ADMIN_EMAIL: Email for the admin user
    ADMIN_PASSWORD: Password for the admin user
    DATABASE_URL / USE_MEMORY_STORE: which store to write to
    STATE_DIR: snapshot directory when the memory store is used
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def bootstrap(email: str, password: str, *, jobs: bool = False, dry_run: bool = False) -> dict:
    """Run the admin seed (and the job seed when asked); returns a summary."""
    # Import here so the environment is final before settings load
    from careerboard.service.runtime import get_runtime
    from careerboard.service.seed import seed_admin, seed_jobs
    from careerboard.storage.models import normalize_email

    runtime = get_runtime()
    if dry_run:
        existing = runtime.store.find_by_normalized_email(normalize_email(email))
        action = "update" if existing else "create"
        print(f"[DRY RUN] Would {action} admin user: {email}")
        return {"email": email, "status": "dry_run"}

    status = seed_admin(runtime.store, runtime.settings, email, password)
    result = {"email": email, "status": status}
    if jobs:
        result["jobs_added"] = seed_jobs(runtime.store)
    return result


def main():
    parser = argparse.ArgumentParser(
        description="Bootstrap the Career Board admin account",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--email",
        default=os.environ.get("ADMIN_EMAIL", "admin@example.com"),
        help="Admin email (or set ADMIN_EMAIL env var)",
    )
    parser.add_argument(
        "--password",
        default=os.environ.get("ADMIN_PASSWORD"),
        help="Admin password (or set ADMIN_PASSWORD env var)",
    )
    parser.add_argument(
        "--jobs",
        action="store_true",
        help="Also insert the demo jobs when the store has none",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )

    args = parser.parse_args()

    if not args.password:
        print("Error: --password or ADMIN_PASSWORD environment variable required")
        sys.exit(1)

    if not os.environ.get("DATABASE_URL"):
        os.environ.setdefault("USE_MEMORY_STORE", "true")
        print("Note: Using in-memory store (set DATABASE_URL and USE_MEMORY_STORE=false for Postgres)")

    try:
        result = bootstrap(args.email, args.password, jobs=args.jobs, dry_run=args.dry_run)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)

    messages = {
        "created": "Admin user created.",
        "password_reset": "Admin password reset to the supplied value.",
        "promoted": "Existing user promoted to admin.",
        "unchanged": "No changes needed - admin already up to date.",
    }
    if result["status"] in messages:
        print(messages[result["status"]])
    if "jobs_added" in result:
        print(f"Demo jobs added: {result['jobs_added']}")


if __name__ == "__main__":
    main()
