"""
Tier directory handling.

Makes sure the daily, weekly and monthly directories below the backup root
exist and are writable before anything is copied into them.
"""

import os
import logging
from pathlib import Path
from typing import Dict

from rotabackup import NOTICE
from .errors import StagingError


logger = logging.getLogger(__name__)


class StagingDirectoryManager:
    """
    Creates (single level) and validates tier directories.
    """

    def __init__(self, dry_run: bool = False):
        """
        Initialize staging directory manager.

        Args:
            dry_run: If True, missing directories are reported but not created
        """
        self.dry_run = dry_run

    def ensure(self, path) -> bool:
        """
        Make sure a tier directory exists and is writable.

        The parent (the backup root) must already exist; only one level is
        created. Calling this again with nothing changed is a no-op.

        Args:
            path: Directory to create/check

        Returns:
            True when the directory is usable (or would be created in dry-run)

        Raises:
            StagingError: If the directory cannot be created, is not a
                directory or is not writable
        """
        path = Path(path)

        if not path.exists():
            if self.dry_run:
                logger.debug(f"Backup subdir [{path}] does not exist (dry-run, will not create)")
                return True

            logger.log(NOTICE, f"Backup subdir [{path}] does not yet exist, creating...")
            try:
                path.mkdir()
            except OSError as e:
                raise StagingError(
                    f"Unable to create the backup subdir [{path}]: {e}",
                    reason=StagingError.CANNOT_CREATE
                )

        if not path.is_dir():
            raise StagingError(
                f"Backup subdir [{path}] exists, but is not a directory",
                reason=StagingError.NOT_A_DIRECTORY
            )

        if not os.access(path, os.W_OK):
            raise StagingError(
                f"Backup subdir [{path}] exists, but is not writable to me",
                reason=StagingError.NOT_WRITABLE
            )

        return True

    def ensure_tiers(self, tier_roots: Dict[str, Path]) -> Dict[str, Path]:
        """
        Ensure every tier directory, in order.

        Args:
            tier_roots: Dict mapping tier name to directory, e.g.
                BackupConfig.tier_roots

        Returns:
            Dict mapping tier name to its directory

        Raises:
            StagingError: On the first tier that cannot be used
        """
        ensured = {}

        for tier, tier_root in tier_roots.items():
            tier_root = Path(tier_root)
            logger.debug(f"{tier.capitalize()} backups dir: [{tier_root}]")
            self.ensure(tier_root)
            ensured[tier] = tier_root

        return ensured
