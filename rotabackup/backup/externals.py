"""
Pre-flight check for external programs.
"""

import shutil
from typing import Iterable, List

from .errors import DependencyMissingError


def find_missing(programs: Iterable[str]) -> List[str]:
    """Return the programs that cannot be found on PATH, in order, without duplicates."""
    missing = []
    for program in programs:
        if program not in missing and shutil.which(program) is None:
            missing.append(program)
    return missing


def check_externals(programs: Iterable[str]):
    """
    Make sure every program is installed.

    Raises:
        DependencyMissingError: Naming all missing programs
    """
    missing = find_missing(programs)
    if missing:
        raise DependencyMissingError(missing)
