# marketplace/services/lifecycle/listing_store.py
"""
Listing record accessor.

The only lifecycle module that talks to the database. Reads return plain
ListingRecord snapshots so callers can keep working after a failed batch has
rolled the session back. Writes are conditional status updates:

- Each update may name the status it expects the row to still have
- A row whose status moved underneath is skipped, never overwritten
- apply_batch() commits all updates in one transaction or none of them

Storage errors (SQLAlchemyError) propagate to the caller. There are no
internal retries; the next sweep run picks up whatever was left.
"""

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from marketplace.models import Listing, ListingLifecycleEvent, ListingStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListingRecord:
    """Point-in-time snapshot of a listing row."""
    id: str
    user_id: str
    status: str
    title: Optional[str] = None
    account_tier: Optional[str] = None
    created_at: Optional[datetime] = None
    original_created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    archived_reason: Optional[str] = None
    previous_status: Optional[str] = None
    previous_expires_at: Optional[datetime] = None
    restored_at: Optional[datetime] = None
    restored_reason: Optional[str] = None

    @classmethod
    def from_model(cls, listing: Listing) -> "ListingRecord":
        return cls(**{f.name: getattr(listing, f.name) for f in fields(cls)})


@dataclass
class StatusUpdate:
    """
    A staged partial update of one listing.

    values maps Listing column names to new values. When expected_status is
    set the update only applies if the row still has that status. event_type
    records a ListingLifecycleEvent in the same transaction.
    """
    listing_id: str
    values: Dict[str, Any]
    expected_status: Optional[str] = None
    event_type: Optional[str] = None
    reason: Optional[str] = None
    event_metadata: Optional[Dict[str, Any]] = field(default=None)


class ListingStore:
    """Reads and writes listing rows through a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_listing(self, listing_id: str) -> Optional[ListingRecord]:
        listing = self.db.query(Listing).filter(Listing.id == listing_id).first()
        return ListingRecord.from_model(listing) if listing else None

    def fetch_active_listings(self) -> List[ListingRecord]:
        """All listings with status=active, oldest first."""
        rows = (
            self.db.query(Listing)
            .filter(Listing.status == ListingStatus.ACTIVE.value)
            .order_by(Listing.created_at.asc())
            .all()
        )
        return [ListingRecord.from_model(row) for row in rows]

    def fetch_inactive_listings_older_than(self, cutoff: datetime) -> List[ListingRecord]:
        """Inactive listings not updated since cutoff. Rows with no updated_at are not matched."""
        rows = (
            self.db.query(Listing)
            .filter(
                Listing.status == ListingStatus.INACTIVE.value,
                Listing.updated_at < cutoff,
            )
            .order_by(Listing.updated_at.asc())
            .all()
        )
        return [ListingRecord.from_model(row) for row in rows]

    def fetch_archived_listings_for_user(
        self,
        user_id: str,
        reason: Optional[str] = None,
    ) -> List[ListingRecord]:
        query = self.db.query(Listing).filter(
            Listing.user_id == user_id,
            Listing.status == ListingStatus.ARCHIVED.value,
        )
        if reason:
            query = query.filter(Listing.archived_reason == reason)
        return [ListingRecord.from_model(row) for row in query.all()]

    def count_by_status(self) -> Dict[str, int]:
        rows = (
            self.db.query(Listing.status, func.count(Listing.id))
            .group_by(Listing.status)
            .all()
        )
        return {status: count for status, count in rows}

    def count_pending_deletion(self, now: datetime) -> int:
        """Archived listings whose retention window has passed."""
        return (
            self.db.query(func.count(Listing.id))
            .filter(
                Listing.status == ListingStatus.ARCHIVED.value,
                Listing.expires_at.isnot(None),
                Listing.expires_at < now,
            )
            .scalar()
        ) or 0

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def apply_status_update(
        self,
        listing_id: str,
        partial_update: StatusUpdate | Dict[str, Any],
        initiated_by: str = "system",
    ) -> bool:
        """
        Apply one update in its own transaction.

        Returns False when the row did not match (missing, or its status
        no longer equals expected_status).
        """
        if not isinstance(partial_update, StatusUpdate):
            partial_update = StatusUpdate(listing_id=listing_id, values=dict(partial_update))
        applied = self.apply_batch([partial_update], initiated_by=initiated_by)
        return listing_id in applied

    def apply_batch(
        self,
        updates: Sequence[StatusUpdate],
        initiated_by: str = "system",
    ) -> List[str]:
        """
        Apply updates atomically: one commit for the whole batch.

        Returns ids of the listings that were actually changed. On any error
        the batch is rolled back and the exception re-raised.
        """
        applied: List[str] = []
        try:
            for staged in updates:
                stmt = update(Listing).where(Listing.id == staged.listing_id)
                if staged.expected_status is not None:
                    stmt = stmt.where(Listing.status == staged.expected_status)
                stmt = stmt.values(**staged.values).execution_options(synchronize_session=False)

                result = self.db.execute(stmt)
                if result.rowcount != 1:
                    logger.debug(
                        f"Listing {staged.listing_id} did not match update, skipping",
                        extra={"event": "update_skipped", "listing_id": staged.listing_id},
                    )
                    continue

                applied.append(staged.listing_id)
                if staged.event_type:
                    self.db.add(
                        ListingLifecycleEvent(
                            listing_id=staged.listing_id,
                            event_type=staged.event_type,
                            event_timestamp=datetime.utcnow(),
                            initiated_by=initiated_by,
                            reason=staged.reason,
                            event_metadata=staged.event_metadata,
                        )
                    )

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return applied
