"""
Shared pytest fixtures for rotabackup tests.

This module provides fixtures for:
- Backup roots and source trees on a temporary filesystem
- Run configurations
- A copier test double for runs without rsync
- Fake mysqldump/mysqlshow executables on PATH
"""

import os
import shutil
import stat
from datetime import datetime
from pathlib import Path

import pytest

from rotabackup.config import BackupConfig, RetentionPolicy
from rotabackup.backup.copier import SnapshotCopier
from rotabackup.backup.errors import CopyError


requires_rsync = pytest.mark.skipif(
    shutil.which('rsync') is None,
    reason='rsync is not installed'
)

# Monday, first of the month
MONDAY_FIRST = datetime(2024, 1, 1, 22, 30, 0)
# Wednesday, 17th
PLAIN_DAY = datetime(2024, 1, 17, 22, 30, 0)


class CopytreeCopier(SnapshotCopier):
    """
    Copier test double that copies with shutil instead of rsync.

    Keeps the precondition and dry-run behavior of SnapshotCopier and
    records every call.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []

    def copy(self, src, dst, link_ref=None):
        dst = Path(dst)
        self.calls.append((Path(src), dst, Path(link_ref) if link_ref else None))
        if dst.exists():
            raise CopyError(f"Destination [{dst}] already exists", kind=CopyError.CANNOT_CREATE_DESTINATION)
        if self.dry_run:
            return dst
        try:
            dst.mkdir()
        except OSError as e:
            raise CopyError(str(e), kind=CopyError.CANNOT_CREATE_DESTINATION)
        shutil.copytree(src, dst, dirs_exist_ok=True)
        os.utime(dst)
        return dst


@pytest.fixture
def backup_root(tmp_path):
    """Empty, existing backup root."""
    root = tmp_path / 'backups'
    root.mkdir()
    return root


@pytest.fixture
def source_tree(tmp_path):
    """
    Create a source directory to back up.

    Creates:
    - file1.txt
    - file2.log
    - nested/file3.txt
    """
    source = tmp_path / 'source'
    source.mkdir()
    (source / 'file1.txt').write_text('Test content 1')
    (source / 'file2.log').write_text('Test log content')

    nested_dir = source / 'nested'
    nested_dir.mkdir()
    (nested_dir / 'file3.txt').write_text('Nested test content')

    return source


@pytest.fixture
def backup_config(backup_root):
    """Run configuration with the default retention, ACL/xattr copying off."""
    return BackupConfig(
        backup_root=backup_root,
        retention=RetentionPolicy(daily=14, weekly=63, monthly=36500),
        day_weekly=1,
        day_monthly=1,
        preserve_acls=False,
        preserve_xattrs=False
    )


@pytest.fixture
def copytree_copier():
    return CopytreeCopier(preserve_acls=False, preserve_xattrs=False)


@pytest.fixture
def rsync_copier():
    return SnapshotCopier(preserve_acls=False, preserve_xattrs=False)


def make_snapshot(tier_root: Path, name: str, mtime: datetime = None) -> Path:
    """Create a snapshot directory with one file, optionally backdated."""
    snapshot = tier_root / name
    snapshot.mkdir(parents=True)
    (snapshot / 'data.txt').write_text(name)
    if mtime is not None:
        timestamp = mtime.timestamp()
        os.utime(snapshot, (timestamp, timestamp))
    return snapshot


def write_executable(path: Path, script: str) -> Path:
    path.write_text(script)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_mysql_bin(tmp_path, monkeypatch):
    """
    Put fake mysqldump and mysqlshow on PATH.

    mysqldump prints a small dump naming its arguments and fails with rc 2
    for a database called 'broken'. mysqlshow prints the usual table.
    """
    bin_dir = tmp_path / 'bin'
    bin_dir.mkdir()

    write_executable(bin_dir / 'mysqldump', """#!/bin/sh
for last; do :; done
if [ "$last" = "broken" ]; then
    echo "mysqldump: Got error: 1049: Unknown database 'broken'" >&2
    exit 2
fi
echo "-- MariaDB dump of $last"
echo "-- args: $*"
echo "CREATE TABLE t (id int);"
""")

    write_executable(bin_dir / 'mysqlshow', """#!/bin/sh
cat <<'EOF'
+--------------------+
|     Databases      |
+--------------------+
| information_schema |
| mysql              |
| performance_schema |
| shop               |
+--------------------+
EOF
""")

    monkeypatch.setenv('PATH', f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    return bin_dir


@pytest.fixture
def credentials_file(tmp_path):
    creds = tmp_path / 'backup.cnf'
    creds.write_text('[client]\nuser=backup\npassword=secret\n')
    return creds
