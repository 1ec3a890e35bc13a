"""
Backup executor - orchestrates one backup run.

Workflow:
1. Pre-flight checks (external programs, source, backup root)
2. Ensure daily/weekly/monthly directories
3. Populate a new daily snapshot from the data source
4. Point daily/latest at it
5. Promote to weekly/monthly on their configured days
6. Purge expired snapshots from all tiers
"""

import os
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict

from rotabackup import NOTICE
from rotabackup.config import BackupConfig
from rotabackup.scheduler import snapshot_name, is_weekly_day, is_monthly_day, weekday_name
from .copier import SnapshotCopier
from .errors import BackupError, ConfigError, CopyError, EXIT_OK, EXIT_DESTINATION
from .externals import check_externals
from .links import LatestLinkManager
from .retention import RetentionPurger
from .sources import UnitResult
from .staging import StagingDirectoryManager


logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of one backup run."""
    exit_code: int = EXIT_OK
    snapshot_name: Optional[str] = None
    dry_run: bool = False
    degraded: bool = False
    units: List[UnitResult] = field(default_factory=list)
    promotions: Dict[str, bool] = field(default_factory=lambda: {'weekly': False, 'monthly': False})
    purged: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.exit_code == EXIT_OK


class BackupExecutor:
    """
    Orchestrates the complete backup workflow for one run.
    """

    def __init__(self, config: BackupConfig, source, copier: Optional[SnapshotCopier] = None):
        """
        Initialize backup executor.

        Args:
            config: Run configuration
            source: Data source (FilesystemSource or DumpSource)
            copier: Copier used for tier promotion (default: built from config)
        """
        self.config = config
        self.source = source
        self.copier = copier or SnapshotCopier(
            dry_run=config.dry_run,
            preserve_acls=config.preserve_acls,
            preserve_xattrs=config.preserve_xattrs
        )
        self.staging = StagingDirectoryManager(dry_run=config.dry_run)
        self.links = LatestLinkManager(dry_run=config.dry_run)
        self.purger = RetentionPurger(dry_run=config.dry_run)
        self.result = None

    def execute(self, now: Optional[datetime] = None) -> RunResult:
        """
        Execute one backup run.

        Args:
            now: Time of the run (default: current time)

        Returns:
            RunResult; exit_code is non-zero if the run was aborted
        """
        now = now or datetime.now()
        self.result = RunResult(dry_run=self.config.dry_run)

        infotext = f" {self.config.infotext}" if self.config.infotext else '...'
        logger.log(NOTICE, f"Start{infotext}")
        self._log_options()

        try:
            self._execute_workflow(now)
        except BackupError as e:
            self.result.exit_code = e.exit_code
            self.result.errors.append(str(e))
            logger.error(str(e))
            return self.result

        if self.result.degraded:
            failed = [unit.name for unit in self.result.units if not unit.success]
            logger.error(f"Backup degraded, failed units: {', '.join(failed)}")

        logger.log(NOTICE, f"Finished{infotext}")
        return self.result

    def _execute_workflow(self, now: datetime):
        """Execute the main backup workflow steps."""
        # Step 1: Pre-flight
        self._preflight()

        # Step 2: Tier directories
        tier_roots = self.staging.ensure_tiers(self.config.tier_roots)

        # Step 3: New daily snapshot
        name = snapshot_name(now)
        self.result.snapshot_name = name
        daily_snapshot = tier_roots['daily'] / name
        link_ref = self.links.resolve(tier_roots['daily'])
        logger.debug(f"Backup destination: [{daily_snapshot}]")

        units = self.source.populate(daily_snapshot, link_ref)
        self.result.units = units
        self.result.degraded = any(not unit.success for unit in units)
        if self.config.dry_run:
            logger.info("   (dry-run, nothing was backed up)")
        else:
            logger.info("Backup successful")

        # Step 4: latest -> new snapshot
        self.links.update(tier_roots['daily'], name)

        # Step 5: Promotion
        if is_weekly_day(now, self.config.day_weekly):
            logger.debug(f"{weekday_name(self.config.day_weekly)} - creating a copy in weekly")
            self.result.promotions['weekly'] = self._promote(daily_snapshot, tier_roots['weekly'] / name, 'weekly')
        else:
            logger.debug(f"Not a {weekday_name(self.config.day_weekly)}, no weekly backups today")

        if is_monthly_day(now, self.config.day_monthly):
            logger.debug(f"{self.config.day_monthly}. day in month - creating a copy in monthly")
            self.result.promotions['monthly'] = self._promote(daily_snapshot, tier_roots['monthly'] / name, 'monthly')
        else:
            logger.debug(f"Not the {self.config.day_monthly}., no monthly backups today")

        # Step 6: Purge
        self.result.purged = self.purger.purge_tiers(tier_roots, self.config.retention, now)
        self.result.errors.extend(str(error) for error in self.purger.errors)

    def _preflight(self):
        """
        Check external programs, the source and the backup root.

        Raises:
            DependencyMissingError: If a required program is missing
            ConfigError: If the source or backup root cannot be used
        """
        check_externals(self.source.required_externals)
        self.source.validate()

        root = self.config.backup_root
        if not root.is_dir():
            raise ConfigError(
                f"Backup root [{root}] does not exist or is not a directory",
                exit_code=EXIT_DESTINATION
            )
        if not os.access(root, os.W_OK | os.X_OK):
            raise ConfigError(
                f"Backup root [{root}] exists, but is not writable to me",
                exit_code=EXIT_DESTINATION
            )

    def _promote(self, daily_snapshot, destination, tier: str) -> bool:
        """
        Copy today's daily snapshot into another tier.

        Failures are logged and recorded but do not abort the run.

        Returns:
            True if the copy was made
        """
        logger.debug(f"{tier.capitalize()} backup dir: [{destination}]")
        try:
            self.copier.copy(daily_snapshot, destination, link_ref=daily_snapshot)
            return True
        except CopyError as e:
            message = f"Error creating {tier} backup: {e}"
            logger.error(message)
            self.result.errors.append(message)
            return False

    def _log_options(self):
        config = self.config
        logger.debug("Options for this run:")
        logger.debug(f" -z (dry-run):.......[{config.dry_run}]")
        logger.debug(f" source:.............[{self.source.describe()}]")
        logger.debug(f" -d (backup root):...[{config.backup_root}]")
        logger.debug(f" -w (weekly day):....[{config.day_weekly}] -> [{weekday_name(config.day_weekly)}]")
        logger.debug(f" -m (monthly day):...[{config.day_monthly}]")
        logger.debug(f" -D (keep daily):....[{config.retention.daily}]")
        logger.debug(f" -W (keep weekly):...[{config.retention.weekly}]")
        logger.debug(f" -M (keep monthly):..[{config.retention.monthly}]")
        logger.debug(f" -t (info text):.....[{config.infotext}]")
