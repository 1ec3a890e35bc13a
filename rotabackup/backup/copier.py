"""
Deduplicating snapshot copies.

Uses rsync's --link-dest so that every file which is identical to its
counterpart in a reference snapshot becomes a hard link instead of a new copy.
The same copier handles the primary filesystem backup (reference = previous
'latest') and tier promotion (source and reference = today's daily snapshot).
"""

import os
import logging
import subprocess
from pathlib import Path
from typing import Optional, List

from .errors import CopyError


logger = logging.getLogger(__name__)


class SnapshotCopier:
    """
    Copies a directory tree into a new snapshot directory using rsync.
    """

    program = 'rsync'

    def __init__(self, dry_run: bool = False, preserve_acls: bool = True, preserve_xattrs: bool = True):
        """
        Initialize snapshot copier.

        Args:
            dry_run: If True, only check preconditions and log the command
            preserve_acls: Pass -A to rsync
            preserve_xattrs: Pass -X to rsync
        """
        self.dry_run = dry_run
        self.preserve_acls = preserve_acls
        self.preserve_xattrs = preserve_xattrs

    def build_command(self, src, dst, link_ref=None) -> List[str]:
        """
        Build the rsync argument vector.

        Args:
            src: Source directory (its content is copied, not the dir itself)
            dst: Destination directory
            link_ref: Optional reference snapshot for --link-dest

        Returns:
            List of command arguments for subprocess
        """
        cmd = [self.program, '-a']
        if self.preserve_acls:
            cmd.append('-A')
        if self.preserve_xattrs:
            cmd.append('-X')

        # rsync resolves a relative --link-dest against the destination
        if link_ref is not None:
            cmd.append(f"--link-dest={Path(link_ref).absolute()}")

        # Trailing slashes: copy contents of src into dst
        cmd.append(f"{str(src).rstrip('/')}/")
        cmd.append(f"{str(dst).rstrip('/')}/")
        return cmd

    def copy(self, src, dst, link_ref=None) -> Path:
        """
        Create dst and replicate the content of src into it.

        Args:
            src: Source directory
            dst: Destination directory, must not exist yet
            link_ref: Optional snapshot to hard link unchanged files against

        Returns:
            Path of the created snapshot

        Raises:
            CopyError: If dst cannot be created or rsync fails
        """
        src = Path(src)
        dst = Path(dst)
        link_ref = Path(link_ref) if link_ref is not None else None

        if dst.exists() or dst.is_symlink():
            raise CopyError(
                f"Unable to create the destination dir [{dst}]: already exists",
                kind=CopyError.CANNOT_CREATE_DESTINATION
            )

        cmd = self.build_command(src, dst, link_ref)

        if self.dry_run:
            logger.debug(f"   (dry-run, will not create destination [{dst}])")
            logger.debug(f"Command would be [{' '.join(cmd)}]")
            return dst

        try:
            dst.mkdir()
        except OSError as e:
            raise CopyError(
                f"Unable to create the destination dir [{dst}]: {e}",
                kind=CopyError.CANNOT_CREATE_DESTINATION
            )

        logger.debug(f"Command is [{' '.join(cmd)}]")

        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True
            )
        except OSError as e:
            raise CopyError(
                f"Unable to run {self.program}: {e}",
                kind=CopyError.TOOL_UNAVAILABLE
            )

        if result.stdout:
            logger.debug(result.stdout.strip())

        if result.returncode != 0:
            stderr = (result.stderr or '').strip()
            raise CopyError(
                f"Rsync reported an error copying [{src}] to [{dst}], rc [{result.returncode}]: {stderr}",
                kind=CopyError.TOOL_FAILED,
                tool_exit_code=result.returncode
            )

        # rsync -a carries the source root's mtime over; purge ages go by creation time
        os.utime(dst)

        logger.debug(f"Backup successfully created in [{dst}]")
        return dst
