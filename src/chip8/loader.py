"""CHIP-8 Program Loader

Reads program images from disk.
"""

import logging
from pathlib import Path
from typing import Union


logger = logging.getLogger(__name__)


class ProgramLoadError(Exception):
    """Exception raised when a program image cannot be read."""
    pass


def load_program_file(filename: Union[str, Path]) -> bytes:
    """Read a program image.

    Args:
        filename: Path to the program file

    Returns:
        The raw program bytes

    Raises:
        ProgramLoadError: If the file cannot be read
    """
    path = Path(filename)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        raise ProgramLoadError(f"Program file not found: {path}")
    except OSError as e:
        raise ProgramLoadError(f"Could not read program '{path}': {e}")

    logger.debug("Loaded %s (%d bytes)", path, len(data))
    return data
