"""
Compression of dump artifacts.

Supports:
- gz: Gzip
- bz2: Bzip2
- xz: LZMA
- none: Uncompressed
"""

import os
import bz2
import gzip
import lzma
from pathlib import Path
from typing import BinaryIO


class CompressionError(Exception):
    """Raised when writing a compressed artifact fails."""
    pass


# format -> (extension, opener)
FORMAT_MAP = {
    'gz': ('.gz', gzip.open),
    'bz2': ('.bz2', bz2.open),
    'xz': ('.xz', lzma.open),
    'none': ('', open),
}

COMPRESSION_FORMATS = tuple(FORMAT_MAP)

CHUNK_SIZE = 1024 * 1024


def artifact_filename(unit_name: str, compression_format: str = 'gz', suffix: str = '.sql') -> str:
    """
    Build the artifact filename for a unit.

    Format: {unit_name}{suffix}{ext}, e.g. shop.sql.gz

    Args:
        unit_name: Name of the dumped unit (database)
        compression_format: Compression format
        suffix: Extension of the uncompressed content

    Returns:
        Filename (without path)

    Raises:
        ValueError: If compression_format is invalid
    """
    if compression_format not in FORMAT_MAP:
        raise ValueError(
            f"Invalid compression format: {compression_format}. "
            f"Valid options: {list(FORMAT_MAP.keys())}"
        )

    extension, _ = FORMAT_MAP[compression_format]
    return f"{unit_name}{suffix}{extension}"


def compress_stream(stream: BinaryIO, output_path, compression_format: str = 'gz') -> int:
    """
    Write a byte stream to a (compressed) file.

    Args:
        stream: Readable binary stream, e.g. a subprocess' stdout
        output_path: File to create
        compression_format: Format to use ('gz', 'bz2', 'xz', 'none')

    Returns:
        Number of uncompressed bytes written

    Raises:
        CompressionError: If writing fails
        ValueError: If compression_format is invalid
    """
    if compression_format not in FORMAT_MAP:
        raise ValueError(
            f"Invalid compression format: {compression_format}. "
            f"Valid options: {list(FORMAT_MAP.keys())}"
        )

    _, opener = FORMAT_MAP[compression_format]
    output_path = Path(output_path)
    written = 0

    try:
        with opener(output_path, 'wb') as out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
                written += len(chunk)
        return written
    except Exception as e:
        # Clean up partial artifact on failure
        remove_partial(output_path)
        raise CompressionError(f"Failed to write {output_path}: {e}")


def remove_partial(path):
    """Remove a partially written artifact, ignoring a missing file."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def get_artifact_size(path) -> int:
    """
    Get the size of an artifact file in bytes.

    Raises:
        CompressionError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(path)
    except FileNotFoundError:
        raise CompressionError(f"Artifact not found: {path}")
    except OSError as e:
        raise CompressionError(f"Failed to get artifact size: {e}")
