"""
Backup module for rotabackup.

This module handles the core backup functionality including:
- Tier directory staging
- Deduplicating snapshot copies (rsync --link-dest)
- Data sources (filesystem tree and database dumps)
- The 'latest' pointer
- Retention policy enforcement
- Execution orchestration
"""

from .executor import BackupExecutor, RunResult
from .sources import FilesystemSource, DumpSource, create_source
from .copier import SnapshotCopier
from .staging import StagingDirectoryManager
from .links import LatestLinkManager
from .retention import RetentionPurger

__all__ = [
    'BackupExecutor',
    'RunResult',
    'FilesystemSource',
    'DumpSource',
    'create_source',
    'SnapshotCopier',
    'StagingDirectoryManager',
    'LatestLinkManager',
    'RetentionPurger'
]
