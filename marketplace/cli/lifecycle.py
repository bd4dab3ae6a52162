# marketplace/cli/lifecycle.py
"""
CLI commands for listing lifecycle management.

Usage:
    python -m marketplace.cli.lifecycle status
    python -m marketplace.cli.lifecycle sweep --dry-run
    python -m marketplace.cli.lifecycle sweep --batch-size 200
    python -m marketplace.cli.lifecycle override <listing_id> reactivate
    python -m marketplace.cli.lifecycle check <listing_id>
    python -m marketplace.cli.lifecycle restore-premium <user_id>
"""

import argparse
import sys

from dotenv import load_dotenv

# DATABASE_URL must be in the environment before marketplace.database is imported
load_dotenv()


def get_db_session():
    """Get a database session."""
    from marketplace.database import SessionLocal

    return SessionLocal()


def build_services(db):
    """Listing store and a cached tier resolver scoped to this CLI run."""
    from marketplace.config import get_settings
    from marketplace.services.lifecycle import (
        CachedTierResolver,
        ListingStore,
        SubscriptionTierResolver,
        TierCache,
    )

    settings = get_settings()
    cache = TierCache(maxsize=settings.TIER_CACHE_MAX_SIZE, ttl_seconds=settings.TIER_CACHE_TTL_SECONDS)
    return ListingStore(db), CachedTierResolver(SubscriptionTierResolver(db), cache)


def cmd_status(args):
    """Show listing counts by lifecycle status."""
    from marketplace.services.lifecycle import ListingStore, get_lifecycle_stats

    db = get_db_session()
    try:
        stats = get_lifecycle_stats(ListingStore(db))

        print("\n=== Listing Lifecycle Status ===\n")
        print(f"Total Listings: {stats['total']}")
        print("\nBy Status:")
        for status, count in stats["by_status"].items():
            print(f"  {status}: {count}")

        print(f"\nArchived past retention (pending deletion): {stats['pending_deletion']}")

        print("\nTier Policies:")
        for tier, policy in stats["policies"].items():
            print(
                f"  {tier}: {policy['listing_duration_hours']}h lifetime, "
                f"{policy['retention_days']}d retention"
            )
        print()
    finally:
        db.close()


def cmd_sweep(args):
    """Run the expiration sweep."""
    from marketplace.config import get_settings
    from marketplace.services.lifecycle import run_expiration_sweep

    db = get_db_session()
    try:
        store, resolver = build_services(db)

        print(f"\n{'DRY RUN - ' if args.dry_run else ''}Sweeping expired listings...\n")

        result = run_expiration_sweep(
            store,
            resolver,
            batch_size=args.batch_size,
            inactive_timeout_days=get_settings().INACTIVE_TIMEOUT_DAYS,
            dry_run=args.dry_run,
            initiated_by="cli",
        )

        print(f"Active scanned: {result.active_scanned}")
        print(f"Inactive scanned: {result.inactive_scanned}")
        print(f"Archived: {result.total_archived}")
        print(f"Skipped: {result.total_skipped}")
        print(f"Completed batches: {result.completed_batches}")
        print(f"Failed batches: {result.failed_batches}")

        if args.verbose and result.archived:
            print("\nArchived listings:")
            for item in result.archived:
                print(f"  {item.listing_id} ({item.reason}, {item.account_tier})")

        if result.errors:
            print("\nErrors:")
            for error in result.errors:
                print(f"  - {error}")

        if not result.success:
            sys.exit(1)
    finally:
        db.close()


def cmd_override(args):
    """Archive, reactivate or refresh one listing."""
    from marketplace.services.lifecycle import ListingLifecycleError, apply_override

    db = get_db_session()
    try:
        store, resolver = build_services(db)
        try:
            listing = apply_override(
                store,
                resolver,
                args.listing_id,
                args.action,
                reason=args.reason,
                initiated_by="cli",
            )
        except ListingLifecycleError as e:
            print(f"Error: {e.message}")
            if e.details:
                print(f"  {e.details}")
            sys.exit(1)

        print(f"Listing {listing.id}: {listing.status}")
        print(f"  Expires at: {listing.expires_at.isoformat() if listing.expires_at else '-'}")
        print(f"  Updated at: {listing.updated_at.isoformat() if listing.updated_at else '-'}")
        if listing.archived_reason:
            print(f"  Archived reason: {listing.archived_reason}")
    finally:
        db.close()


def cmd_check(args):
    """Archive one listing now if its tier lifetime has elapsed."""
    from marketplace.services.lifecycle import ListingNotFoundError, check_listing_expiration

    db = get_db_session()
    try:
        store, resolver = build_services(db)
        try:
            check = check_listing_expiration(store, resolver, args.listing_id, initiated_by="cli")
        except ListingNotFoundError as e:
            print(f"Error: {e.details}")
            sys.exit(1)

        verdict = "archived" if check.archived else "no change"
        print(f"Listing {check.listing_id}: {check.status} ({verdict})")
        print(f"  Tier: {check.account_tier or '-'}")
        print(f"  Expires at: {check.expires_at.isoformat() if check.expires_at else '-'}")
    finally:
        db.close()


def cmd_restore_premium(args):
    """Restore a premium user's listings archived for tier duration."""
    from marketplace.services.lifecycle import restore_premium_listings

    db = get_db_session()
    try:
        store, resolver = build_services(db)
        result = restore_premium_listings(store, resolver, args.user_id, initiated_by="cli")

        print(f"User {result.user_id}: {result.status}")
        print(f"  Found: {result.total_found}")
        print(f"  Restored: {result.restored_count}")

        if result.errors:
            print("\nErrors:")
            for error in result.errors:
                print(f"  - {error}")
            sys.exit(1)
    finally:
        db.close()


def main():
    from marketplace.logging_config import configure_logging

    parser = argparse.ArgumentParser(
        description="Marketplace Listing Lifecycle CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check current status
  python -m marketplace.cli.lifecycle status

  # Preview what the sweep would archive
  python -m marketplace.cli.lifecycle sweep --dry-run --verbose

  # Bring an archived listing back
  python -m marketplace.cli.lifecycle override abc123 reactivate

  # Archive a reported listing
  python -m marketplace.cli.lifecycle override abc123 archive --reason reported
        """,
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # status command
    status_parser = subparsers.add_parser("status", help="Show lifecycle status")
    status_parser.set_defaults(func=cmd_status)

    # sweep command
    sweep_parser = subparsers.add_parser("sweep", help="Archive expired and inactive listings")
    sweep_parser.add_argument("--batch-size", type=int, default=500, help="Listings per batch (max 500)")
    sweep_parser.add_argument("--dry-run", action="store_true", help="Preview only, don't archive")
    sweep_parser.add_argument("--verbose", "-v", action="store_true", help="List archived listings")
    sweep_parser.set_defaults(func=cmd_sweep)

    # override command
    override_parser = subparsers.add_parser("override", help="Archive, reactivate or refresh a listing")
    override_parser.add_argument("listing_id", help="Listing id")
    override_parser.add_argument("action", help="archive | reactivate | refresh")
    override_parser.add_argument("--reason", default=None, help="Archive reason: manual or reported")
    override_parser.set_defaults(func=cmd_override)

    # check command
    check_parser = subparsers.add_parser("check", help="Archive one listing if expired")
    check_parser.add_argument("listing_id", help="Listing id")
    check_parser.set_defaults(func=cmd_check)

    # restore-premium command
    restore_parser = subparsers.add_parser("restore-premium", help="Restore a premium user's archives")
    restore_parser.add_argument("user_id", help="User id")
    restore_parser.set_defaults(func=cmd_restore_premium)

    args = parser.parse_args()
    configure_logging(json_format=False, level=args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
