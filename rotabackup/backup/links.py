"""
Maintenance of the 'latest' pointer in the daily tier.
"""

import os
import logging
from pathlib import Path
from typing import Optional

from .errors import LinkError


logger = logging.getLogger(__name__)

LATEST = 'latest'


class LatestLinkManager:
    """
    Points <tier>/latest at the most recent snapshot.

    The link target is the bare snapshot name so the backup root can be moved.
    The new link is created under a temporary name and renamed over the old
    one, so there is always a 'latest' once the first run has succeeded.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def update(self, tier_root, snapshot_name: str) -> Path:
        """
        Point the 'latest' link at a snapshot.

        Args:
            tier_root: Tier directory holding the snapshot
            snapshot_name: Basename of the snapshot

        Returns:
            Path of the link

        Raises:
            LinkError: If the link cannot be created or the old one replaced
        """
        tier_root = Path(tier_root)
        link_path = tier_root / LATEST
        had_link = link_path.is_symlink() or link_path.exists()

        logger.debug(f"Updating '{LATEST}' link in [{tier_root}] -> [{snapshot_name}]")

        if self.dry_run:
            if had_link:
                logger.debug("   (dry-run, will not replace old link)")
            logger.debug("   (dry-run, will not create new link)")
            return link_path

        temp_path = tier_root / f".{LATEST}.{os.getpid()}.tmp"
        try:
            if temp_path.is_symlink():
                temp_path.unlink()
            os.symlink(snapshot_name, temp_path)
        except OSError as e:
            raise LinkError(
                f"Error creating the '{LATEST}' link in [{tier_root}]: {e}",
                kind=LinkError.CREATE_FAILED
            )

        try:
            os.replace(temp_path, link_path)
        except OSError as e:
            try:
                temp_path.unlink()
            except OSError:
                logger.error(f"Unable to remove temporary link [{temp_path}]")
            raise LinkError(
                f"Error replacing the '{LATEST}' link [{link_path}]: {e}",
                kind=LinkError.REMOVE_FAILED if had_link else LinkError.CREATE_FAILED
            )

        return link_path

    def resolve(self, tier_root) -> Optional[Path]:
        """
        Return the snapshot 'latest' points to.

        Args:
            tier_root: Tier directory holding the link

        Returns:
            Absolute path of the snapshot, or None if there is no usable link
        """
        link_path = Path(tier_root) / LATEST
        if not link_path.is_dir():
            logger.debug(f"No previous '{LATEST}' found in [{tier_root}]")
            return None
        return link_path.resolve()
