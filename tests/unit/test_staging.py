"""
Unit tests for tier directory handling (rotabackup/backup/staging.py).
"""

import os
from unittest.mock import patch

import pytest

from rotabackup.backup.staging import StagingDirectoryManager
from rotabackup.backup.errors import StagingError, EXIT_STAGING


class TestEnsure:
    """Test StagingDirectoryManager.ensure."""

    def test_creates_missing_directory(self, backup_root):
        """Test that a missing tier directory is created."""
        tier = backup_root / 'daily'

        assert StagingDirectoryManager().ensure(tier) is True
        assert tier.is_dir()

    def test_existing_directory_is_accepted(self, backup_root):
        """Test that an existing writable directory passes."""
        tier = backup_root / 'weekly'
        tier.mkdir()

        assert StagingDirectoryManager().ensure(tier) is True

    def test_ensure_is_idempotent(self, backup_root):
        """Test that calling ensure twice succeeds without side effects."""
        manager = StagingDirectoryManager()
        tier = backup_root / 'daily'

        assert manager.ensure(tier) is True
        before = sorted(os.listdir(backup_root))
        mtime = tier.stat().st_mtime_ns

        assert manager.ensure(tier) is True
        assert sorted(os.listdir(backup_root)) == before == ['daily']
        assert tier.stat().st_mtime_ns == mtime

    def test_only_creates_a_single_level(self, tmp_path):
        """Test that a missing backup root is not created."""
        tier = tmp_path / 'missing-root' / 'daily'

        with pytest.raises(StagingError) as exc_info:
            StagingDirectoryManager().ensure(tier)

        assert exc_info.value.reason == StagingError.CANNOT_CREATE
        assert exc_info.value.exit_code == EXIT_STAGING
        assert not (tmp_path / 'missing-root').exists()

    def test_file_in_place_of_directory(self, backup_root):
        """Test that a plain file named like the tier is rejected."""
        (backup_root / 'monthly').write_text('not a dir')

        with pytest.raises(StagingError) as exc_info:
            StagingDirectoryManager().ensure(backup_root / 'monthly')

        assert exc_info.value.reason == StagingError.NOT_A_DIRECTORY

    def test_not_writable_directory(self, backup_root):
        """Test that an unwritable tier directory is rejected."""
        tier = backup_root / 'daily'
        tier.mkdir()

        with patch('rotabackup.backup.staging.os.access', return_value=False):
            with pytest.raises(StagingError, match='not writable') as exc_info:
                StagingDirectoryManager().ensure(tier)

        assert exc_info.value.reason == StagingError.NOT_WRITABLE

    def test_dry_run_does_not_create(self, backup_root):
        """Test that dry-run treats a missing directory as success without creating it."""
        tier = backup_root / 'daily'

        assert StagingDirectoryManager(dry_run=True).ensure(tier) is True
        assert not tier.exists()

    def test_dry_run_still_checks_existing(self, backup_root):
        """Test that dry-run still reports an unusable existing path."""
        (backup_root / 'daily').write_text('not a dir')

        with pytest.raises(StagingError):
            StagingDirectoryManager(dry_run=True).ensure(backup_root / 'daily')


class TestEnsureTiers:
    """Test StagingDirectoryManager.ensure_tiers."""

    def test_creates_all_tiers(self, backup_config):
        """Test that daily, weekly and monthly below the backup root are created."""
        backup_root = backup_config.backup_root

        tier_roots = StagingDirectoryManager().ensure_tiers(backup_config.tier_roots)

        assert list(tier_roots) == ['daily', 'weekly', 'monthly']
        for name, path in tier_roots.items():
            assert path == backup_root / name
            assert path.is_dir()

    def test_stops_at_first_unusable_tier(self, backup_config):
        """Test that an unusable tier aborts before the following ones."""
        backup_root = backup_config.backup_root
        (backup_root / 'weekly').write_text('blocker')

        with pytest.raises(StagingError):
            StagingDirectoryManager().ensure_tiers(backup_config.tier_roots)

        assert (backup_root / 'daily').is_dir()
        assert not (backup_root / 'monthly').exists()
