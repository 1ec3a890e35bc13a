"""
Data sources that fill a new daily snapshot.

Supports:
- FilesystemSource: Copy a directory tree (deduplicated against 'latest')
- DumpSource: One compressed mysqldump per MariaDB/MySQL database
"""

import os
import logging
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Dict, Any, Optional

from rotabackup import NOTICE
from rotabackup.config import DumpConfig
from .compression import artifact_filename, compress_stream, get_artifact_size, remove_partial, CompressionError
from .copier import SnapshotCopier
from .errors import ConfigError, CopyError, SourceEnumerationError, EXIT_SOURCE, EXIT_CREDENTIALS


logger = logging.getLogger(__name__)


@dataclass
class UnitResult:
    """Outcome for one unit (the source tree, or one database)."""
    name: str
    success: bool
    path: Optional[Path] = None
    error: Optional[str] = None
    size: Optional[int] = None


class FilesystemSource:
    """
    Handler for local directory trees.

    The tree is copied with the snapshot copier, hard linking unchanged files
    against the previous snapshot.
    """

    def __init__(self, source_dir, copier: SnapshotCopier):
        """
        Initialize filesystem source handler.

        Args:
            source_dir: Directory whose content is backed up
            copier: Copier used for the deduplicated copy
        """
        self.source_dir = Path(source_dir).expanduser().absolute()
        self.copier = copier

    @property
    def required_externals(self) -> tuple:
        return (self.copier.program,)

    def describe(self) -> str:
        return f"source dir [{self.source_dir}]"

    def validate(self):
        """
        Check that the source directory can be read.

        Raises:
            ConfigError: If the directory is missing, not a directory or unreadable
        """
        if not self.source_dir.is_dir():
            raise ConfigError(
                f"Source directory [{self.source_dir}] does not exist or is not a directory",
                exit_code=EXIT_SOURCE
            )
        if not os.access(self.source_dir, os.R_OK | os.X_OK):
            raise ConfigError(
                f"Source directory [{self.source_dir}] exists, but is not readable to me",
                exit_code=EXIT_SOURCE
            )

    def populate(self, dest_dir, link_ref=None) -> List[UnitResult]:
        """
        Copy the source tree into a new snapshot directory.

        Args:
            dest_dir: Snapshot directory to create
            link_ref: Previous snapshot to deduplicate against (optional)

        Returns:
            Single-element list with the result for the tree

        Raises:
            CopyError: If the copy fails
        """
        dest_dir = Path(dest_dir)
        self.copier.copy(self.source_dir, dest_dir, link_ref)
        return [UnitResult(name=str(self.source_dir), success=True, path=dest_dir)]


class DumpSource:
    """
    Handler for MariaDB/MySQL databases.

    Writes one compressed dump per database into the snapshot directory.
    A failing database is logged and skipped; the rest are still dumped.
    """

    dump_program = 'mysqldump'
    show_program = 'mysqlshow'

    def __init__(self, config: DumpConfig, dry_run: bool = False):
        """
        Initialize dump source handler.

        Args:
            config: Connection and dump settings
            dry_run: If True, list databases but do not create or dump anything
        """
        self.config = config
        self.dry_run = dry_run

    @property
    def required_externals(self) -> tuple:
        externals = (SnapshotCopier.program, self.dump_program)
        if not self.config.databases:
            externals += (self.show_program,)
        return externals

    def describe(self) -> str:
        dbs = ','.join(self.config.databases) if self.config.databases else '(all)'
        return f"databases [{dbs}] on [{self.config.host}:{self.config.port}]"

    def validate(self):
        """
        Check that the credentials file can be read.

        Raises:
            ConfigError: If the credentials file is missing or unreadable
        """
        creds = self.config.credentials_file
        if not creds.is_file():
            raise ConfigError(
                f"Credentials file [{creds}] does not exist or is not a file",
                exit_code=EXIT_CREDENTIALS
            )
        if not os.access(creds, os.R_OK):
            raise ConfigError(
                f"Credentials file [{creds}] exists, but is not readable to me",
                exit_code=EXIT_CREDENTIALS
            )

    def _connection_args(self) -> List[str]:
        # --defaults-extra-file must come first
        return [
            f"--defaults-extra-file={self.config.credentials_file}",
            f"--host={self.config.host}",
            f"--port={self.config.port}",
        ]

    def build_dump_command(self, database: str) -> List[str]:
        return [self.dump_program] + self._connection_args() + list(self.config.dump_options) + [database]

    def list_units(self) -> List[str]:
        """
        Databases to back up.

        Returns:
            Configured databases, or all databases on the server except the
            system schemas

        Raises:
            SourceEnumerationError: If no list was configured and the server
                cannot be queried
        """
        if self.config.databases:
            return list(self.config.databases)

        logger.log(NOTICE, "No databases specified, will backup all but some system DBs")
        cmd = [self.show_program] + self._connection_args()
        logger.debug(f"Executing [{' '.join(cmd)}]")

        try:
            result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        except OSError as e:
            raise SourceEnumerationError(f"No databases specified, and unable to run {self.show_program}: {e}")

        if result.returncode != 0:
            raise SourceEnumerationError(
                f"No databases specified, and unable to retrieve a list of DBs. "
                f"RC returned by {self.show_program}: [{result.returncode}] {result.stderr.strip()}"
            )

        databases = parse_database_list(result.stdout, exclude=self.config.system_databases)
        if not databases:
            raise SourceEnumerationError("No databases specified, and the server reported none to back up")

        return databases

    def populate(self, dest_dir, link_ref=None) -> List[UnitResult]:
        """
        Dump every database into a new snapshot directory.

        Args:
            dest_dir: Snapshot directory to create
            link_ref: Unused; dumps are always written fresh

        Returns:
            One result per database

        Raises:
            SourceEnumerationError: If the databases cannot be determined
            CopyError: If the snapshot directory cannot be created
        """
        dest_dir = Path(dest_dir)
        databases = self.list_units()
        for database in databases:
            logger.debug(f"Will backup: [{database}]")

        if self.dry_run:
            logger.debug(f"   (dry-run, will not create destination [{dest_dir}])")
            return [UnitResult(name=database, success=True) for database in databases]

        try:
            dest_dir.mkdir()
        except OSError as e:
            raise CopyError(
                f"Unable to create the destination dir [{dest_dir}]: {e}",
                kind=CopyError.CANNOT_CREATE_DESTINATION
            )

        return [self._dump_database(database, dest_dir) for database in databases]

    def _dump_database(self, database: str, dest_dir: Path) -> UnitResult:
        """
        Run mysqldump for one database and compress its output.

        Returns:
            UnitResult; failures are logged, never raised
        """
        logger.info(f"Backing up database [{database}]")
        artifact = dest_dir / artifact_filename(database, self.config.compression)
        cmd = self.build_dump_command(database)
        logger.debug(f"Command is [{' '.join(cmd)}]")

        try:
            # stderr goes to a file so a chatty dump cannot block on a full pipe
            with tempfile.TemporaryFile() as errors:
                process = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=errors)
                try:
                    compress_stream(process.stdout, artifact, self.config.compression)
                finally:
                    process.stdout.close()
                    returncode = process.wait()
                errors.seek(0)
                stderr = errors.read().decode('utf-8', errors='replace').strip()
        except (OSError, CompressionError) as e:
            remove_partial(artifact)
            logger.error(f"Error backing up [{database}]: {e}")
            return UnitResult(name=database, success=False, error=str(e))

        if returncode != 0:
            remove_partial(artifact)
            message = f"{self.dump_program} rc [{returncode}]: {stderr}"
            logger.error(f"Error backing up [{database}]! {message}")
            return UnitResult(name=database, success=False, error=message)

        try:
            size = get_artifact_size(artifact)
        except CompressionError as e:
            logger.error(f"Error backing up [{database}]: {e}")
            return UnitResult(name=database, success=False, error=str(e))

        logger.debug(f"Done with [{database}], [{size}] bytes in [{artifact.name}]")
        return UnitResult(name=database, success=True, path=artifact, size=size)


def parse_database_list(output: str, exclude=()) -> List[str]:
    """
    Extract database names from mysqlshow's table output.

    Args:
        output: stdout of mysqlshow
        exclude: Names to drop (system schemas)

    Returns:
        Database names in server order
    """
    databases = []
    for line in output.splitlines():
        line = line.strip()
        if not line.startswith('|'):
            continue
        name = line.strip('|').strip()
        if not name or name == 'Databases' or name in exclude:
            continue
        databases.append(name)
    return databases


def create_source(source_type: str, config: Dict[str, Any], copier: SnapshotCopier):
    """
    Factory function to create appropriate source handler.

    Args:
        source_type: 'file' or 'db'
        config: Configuration dict for the source
        copier: Copier shared with tier promotion

    Returns:
        FilesystemSource or DumpSource instance

    Raises:
        ValueError: If source_type is invalid
    """
    if source_type == 'file':
        return FilesystemSource(config['source_dir'], copier)
    elif source_type == 'db':
        return DumpSource(DumpConfig(**config), dry_run=copier.dry_run)
    else:
        raise ValueError(f"Invalid source type: {source_type}")
