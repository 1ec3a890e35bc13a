"""
Command line interface.

    rotabackup file [options] -s </directory/to/backup> -d </backup/root>
    rotabackup db   [options] -C </path/to/credentials> -d </backup/root>
"""

import sys
import argparse
import logging
from logging.handlers import SysLogHandler

from rotabackup import configure_logging, __version__
from rotabackup.config import Config, BackupConfig, RetentionPolicy
from rotabackup.backup.compression import COMPRESSION_FORMATS
from rotabackup.backup.copier import SnapshotCopier
from rotabackup.backup.errors import EXIT_OK, EXIT_USAGE
from rotabackup.backup.executor import BackupExecutor
from rotabackup.backup.sources import create_source
from rotabackup.scheduler import run_scheduled


logger = logging.getLogger(__name__)

EXIT_CODES = """\
Exit codes:
   0 - no errors
   1 - source dir missing/unreadable, or no list of databases
   2 - backup root missing, not a directory or not writable
   3 - daily/weekly/monthly dirs not writable and cannot be created
   4 - unable to create the directory for this backup
   5 - error creating/updating the "latest" link
   6 - needed external programs missing
   7 - invalid command line
   8 - credentials file missing or unreadable
 >100 - rsync errors; subtract 100 to get the rsync return code
        (128 + N if rsync was killed by signal N)
"""

EPILOG = """\
Resulting directory structure:

  <Backup Root>
  +--daily
  |   +--latest --> 2015-04-02.223000
  |   +--2015-03-30.223000
  |   +--2015-04-02.223000
  +--weekly
  |   +--2015-03-30.223000
  +--monthly
      +--2015-04-01.223000

Unchanged files are hard links to the previous backup (rsync --link-dest),
and weekly/monthly copies share their files with the daily backup.
"""


class ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with the documented usage error code."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def _int_range(low: int, high: int):
    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"not a number: {value!r}")
        if not low <= number <= high:
            raise argparse.ArgumentTypeError(f"must be {low}..{high}, got {number}")
        return number
    return parse


weekday = _int_range(1, 7)
day_of_month = _int_range(1, 31)
port_number = _int_range(1, 65535)


def database_list(value: str):
    databases = tuple(name.strip() for name in value.split(',') if name.strip())
    if not databases:
        raise argparse.ArgumentTypeError("empty database list")
    return databases


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('-d', dest='backup_root', required=True, metavar='<directory>',
                        help='destination directory (backup root)')
    common.add_argument('-w', dest='day_weekly', type=weekday, default=Config.DAY_WEEKLY, metavar='<week day>',
                        help='day of the week (1..7; 1=Monday) to do the weekly (default: %(default)s)')
    common.add_argument('-m', dest='day_monthly', type=day_of_month, default=Config.DAY_MONTHLY, metavar='<day>',
                        help='day of the month to do the monthly (default: %(default)s)')
    common.add_argument('-D', dest='keep_daily', type=non_negative_int, default=Config.KEEP_DAYS_DAILY,
                        metavar='<# days>', help='days to keep the daily backups (default: %(default)s)')
    common.add_argument('-W', dest='keep_weekly', type=non_negative_int, default=Config.KEEP_DAYS_WEEKLY,
                        metavar='<# days>', help='days to keep the weekly backups (default: %(default)s)')
    common.add_argument('-M', dest='keep_monthly', type=non_negative_int, default=Config.KEEP_DAYS_MONTHLY,
                        metavar='<# days>', help='days to keep the monthly backups (default: %(default)s)')
    common.add_argument('-t', dest='infotext', default='', metavar='<text>',
                        help='text added to the "Start" and "Finished" log entries')
    common.add_argument('-l', dest='log_facility', choices=sorted(SysLogHandler.facility_names),
                        metavar='<facility>', help='also log to syslog with this facility (e.g. local7)')
    common.add_argument('-L', dest='log_file', default=Config.LOG_FILE, metavar='<file>',
                        help='also log to this (rotating) file')
    common.add_argument('-v', dest='verbosity', action='count', default=0,
                        help='increase verbosity (up to 3x)')
    common.add_argument('-z', dest='dry_run', action='store_true',
                        help='do a dry-run (automatically sets -vvv)')
    common.add_argument('--cron', metavar='<expression>',
                        help='keep running and back up on this crontab schedule, e.g. "30 22 * * *"')
    common.add_argument('--no-acls', dest='preserve_acls', action='store_false',
                        help='do not preserve ACLs (rsync -A)')
    common.add_argument('--no-xattrs', dest='preserve_xattrs', action='store_false',
                        help='do not preserve extended attributes (rsync -X)')
    return common


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog='rotabackup',
        description='Backups with daily/weekly/monthly rotation, deduplicated via rsync hard links.',
        epilog=EXIT_CODES,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    common = _common_options()
    subparsers = parser.add_subparsers(dest='variant', metavar='{file,db}', parser_class=ArgumentParser)
    subparsers.required = True

    file_parser = subparsers.add_parser(
        'file', parents=[common], help='back up a directory tree',
        epilog=EPILOG, formatter_class=argparse.RawDescriptionHelpFormatter
    )
    file_parser.add_argument('-s', dest='source_dir', required=True, metavar='<directory>',
                             help='source directory')

    db_parser = subparsers.add_parser(
        'db', parents=[common], help='back up MariaDB/MySQL databases',
        epilog=EPILOG + "\nWithout -s, all databases BUT information_schema and performance_schema\n"
                        "are backed up. Name them explicitly to include them.\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    db_parser.add_argument('-C', dest='credentials_file', required=True, metavar='<file>',
                           help='config file holding the credentials (mysql --defaults-extra-file)')
    db_parser.add_argument('-s', dest='databases', type=database_list, metavar='<list of dbs>',
                           help='comma separated list of databases to back up (default: all but system DBs)')
    db_parser.add_argument('-H', dest='host', default=Config.MYSQL_HOST, metavar='<host name>',
                           help='MariaDB host to back up (default: %(default)s)')
    db_parser.add_argument('-P', dest='port', type=port_number, default=Config.MYSQL_PORT, metavar='<port #>',
                           help='port to connect to (default: %(default)s)')
    db_parser.add_argument('-Z', dest='compression', choices=COMPRESSION_FORMATS, default=Config.DUMP_COMPRESSION,
                           help='compression of the dump files (default: %(default)s)')

    return parser


def build_config(args) -> BackupConfig:
    return BackupConfig(
        backup_root=args.backup_root,
        retention=RetentionPolicy(
            daily=args.keep_daily,
            weekly=args.keep_weekly,
            monthly=args.keep_monthly
        ),
        day_weekly=args.day_weekly,
        day_monthly=args.day_monthly,
        infotext=args.infotext,
        dry_run=args.dry_run,
        preserve_acls=args.preserve_acls,
        preserve_xattrs=args.preserve_xattrs
    )


def source_config(args) -> dict:
    if args.variant == 'file':
        return {'source_dir': args.source_dir}
    return {
        'credentials_file': args.credentials_file,
        'databases': args.databases,
        'host': args.host,
        'port': args.port,
        'compression': args.compression,
    }


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    verbosity = 3 if args.dry_run else args.verbosity
    try:
        configure_logging(verbosity, log_file=args.log_file, syslog_facility=args.log_facility,
                          tag=f"{parser.prog}-{args.variant}")
    except OSError as e:
        print(f"{parser.prog}: error: cannot open log file [{args.log_file}]: {e}", file=sys.stderr)
        return EXIT_USAGE

    config = build_config(args)
    copier = SnapshotCopier(
        dry_run=config.dry_run,
        preserve_acls=config.preserve_acls,
        preserve_xattrs=config.preserve_xattrs
    )
    source = create_source(args.variant, source_config(args), copier)

    def job():
        return BackupExecutor(config, source, copier).execute()

    if args.cron:
        try:
            run_scheduled(job, args.cron)
        except ValueError as e:
            logger.error(f"Invalid crontab expression [{args.cron}]: {e}")
            return EXIT_USAGE
        return EXIT_OK

    return job().exit_code


def run():
    sys.exit(main())
