"""
Retention policy enforcement for snapshot tiers.

Removes snapshot directories older than a tier's keep-duration. Only the
immediate children of a tier directory are considered.
"""

import shutil
import stat
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Dict

from .errors import PurgeError


logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class RetentionPurger:
    """
    Removes expired snapshots from tier directories.

    A failure to read or remove one snapshot is logged and recorded in
    ``errors``; the sweep carries on with the remaining ones.
    """

    def __init__(self, dry_run: bool = False):
        """Initialize retention purger."""
        self.dry_run = dry_run
        self.errors: List[PurgeError] = []

    def _record(self, message: str, path: Path):
        error = PurgeError(message, path=path)
        logger.error(str(error))
        self.errors.append(error)

    def find_expired(self, tier_root, keep_days: int, now: Optional[datetime] = None) -> List[Path]:
        """
        List snapshot directories older than keep_days.

        A snapshot exactly keep_days old is kept. Days are 24 hour periods,
        so a DST change does not move the cutoff.

        Args:
            tier_root: Tier directory to scan
            keep_days: Retention in days
            now: Reference time (default: current time)

        Returns:
            Expired snapshot directories
        """
        tier_root = Path(tier_root)
        now = now or datetime.now()
        cutoff = now.timestamp() - keep_days * SECONDS_PER_DAY

        try:
            if not tier_root.is_dir():
                return []
            children = sorted(tier_root.iterdir())
        except OSError as e:
            self._record(f"Error reading backup dir [{tier_root}]: {e}", tier_root)
            return []

        expired = []
        for child in children:
            try:
                st = child.lstat()
            except OSError as e:
                self._record(f"Error checking [{child}]: {e}", child)
                continue
            # The 'latest' pointer is a symlink, never a snapshot
            if not stat.S_ISDIR(st.st_mode):
                continue
            if st.st_mtime < cutoff:
                expired.append(child)

        return expired

    def purge(self, tier_root, keep_days: int, now: Optional[datetime] = None) -> int:
        """
        Remove expired snapshots from a tier.

        Args:
            tier_root: Tier directory to clean up
            keep_days: Retention in days
            now: Reference time (default: current time)

        Returns:
            Number of snapshots removed (in dry-run: number that would be)
        """
        logger.info(f"Removing outdated backups in [{tier_root}] older than [{keep_days}] days")

        removed_count = 0
        for snapshot in self.find_expired(tier_root, keep_days, now):
            logger.debug(f" - {snapshot}")

            if self.dry_run:
                logger.debug("   (dry-run, will not remove)")
                removed_count += 1
                continue

            try:
                shutil.rmtree(snapshot)
                removed_count += 1
            except OSError as e:
                self._record(f"Error removing [{snapshot}]: {e}", snapshot)

        if removed_count > 0:
            logger.info(f"Removed [{removed_count}] backups")
        else:
            logger.info("No outdated backups found")

        return removed_count

    def purge_tiers(self, tier_roots: Dict[str, Path], retention, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Purge every tier according to its retention.

        Args:
            tier_roots: Dict mapping tier name to directory
            retention: RetentionPolicy with per-tier keep-days
            now: Reference time (default: current time)

        Returns:
            Dict mapping tier name to number of snapshots removed
        """
        return {
            tier: self.purge(tier_root, retention.keep_days(tier), now)
            for tier, tier_root in tier_roots.items()
        }
