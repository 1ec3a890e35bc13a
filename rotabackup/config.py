import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


TIERS = ('daily', 'weekly', 'monthly')


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    return int(value)


class Config:
    """Base configuration"""

    # Retention (days)
    KEEP_DAYS_DAILY = _env_int('ROTABACKUP_KEEP_DAYS_DAILY', 14)
    KEEP_DAYS_WEEKLY = _env_int('ROTABACKUP_KEEP_DAYS_WEEKLY', 63)
    KEEP_DAYS_MONTHLY = _env_int('ROTABACKUP_KEEP_DAYS_MONTHLY', 36500)

    # Promotion days
    DAY_WEEKLY = _env_int('ROTABACKUP_DAY_WEEKLY', 1)  # 1 = Monday
    DAY_MONTHLY = _env_int('ROTABACKUP_DAY_MONTHLY', 1)

    # Logging
    LOG_FILE = os.environ.get('ROTABACKUP_LOG_FILE') or None

    # MariaDB
    MYSQL_HOST = os.environ.get('ROTABACKUP_MYSQL_HOST') or 'localhost'
    MYSQL_PORT = _env_int('ROTABACKUP_MYSQL_PORT', 3306)
    MYSQL_DUMP_OPTIONS = (
        '--add-drop-database',
        '--add-drop-table',
        '--allow-keywords',
        '--create-options',
        '--dump-date',
        '--comments',
        '--events',
        '--routines',
        '--triggers',
        '--add-locks',
        '--tz-utc',
        '--extended-insert',
        '--disable-keys',
        '--flush-privileges',
        '--quick',
        '--single-transaction',
    )
    # Never backed up unless asked for by name
    MYSQL_SYSTEM_DATABASES = ('information_schema', 'performance_schema')
    DUMP_COMPRESSION = 'gz'

    # Scheduler
    SCHEDULER_MISFIRE_GRACE_TIME = 300


@dataclass(frozen=True)
class RetentionPolicy:
    """Keep-duration in days for each tier."""
    daily: int = Config.KEEP_DAYS_DAILY
    weekly: int = Config.KEEP_DAYS_WEEKLY
    monthly: int = Config.KEEP_DAYS_MONTHLY

    def __post_init__(self):
        for tier in TIERS:
            if getattr(self, tier) < 0:
                raise ValueError(f"Retention for {tier} must be >= 0, got {getattr(self, tier)}")

    def keep_days(self, tier: str) -> int:
        if tier not in TIERS:
            raise ValueError(f"Unknown tier: {tier}")
        return getattr(self, tier)


@dataclass(frozen=True)
class BackupConfig:
    """
    Settings for one backup run.

    Built once at startup and handed to every component; nothing reads
    process-wide state after this point.
    """
    backup_root: Path
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)
    day_weekly: int = Config.DAY_WEEKLY
    day_monthly: int = Config.DAY_MONTHLY
    infotext: str = ''
    dry_run: bool = False
    preserve_acls: bool = True
    preserve_xattrs: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'backup_root', Path(self.backup_root))
        if not 1 <= self.day_weekly <= 7:
            raise ValueError(f"Weekly day must be 1..7, got {self.day_weekly}")
        if not 1 <= self.day_monthly <= 31:
            raise ValueError(f"Monthly day must be 1..31, got {self.day_monthly}")

    def tier_root(self, tier: str) -> Path:
        if tier not in TIERS:
            raise ValueError(f"Unknown tier: {tier}")
        return self.backup_root / tier

    @property
    def tier_roots(self):
        return {tier: self.tier_root(tier) for tier in TIERS}


@dataclass(frozen=True)
class DumpConfig:
    """Connection and dump settings for the database source."""
    credentials_file: Path
    databases: Optional[tuple] = None
    host: str = Config.MYSQL_HOST
    port: int = Config.MYSQL_PORT
    compression: str = Config.DUMP_COMPRESSION
    dump_options: tuple = Config.MYSQL_DUMP_OPTIONS
    system_databases: tuple = Config.MYSQL_SYSTEM_DATABASES

    def __post_init__(self):
        object.__setattr__(self, 'credentials_file', Path(self.credentials_file))
        if self.databases is not None:
            object.__setattr__(self, 'databases', tuple(self.databases))
