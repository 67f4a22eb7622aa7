"""
Wordlist and target file helpers.
"""

from pathlib import Path
from typing import List

from credtest.core.exceptions import ConfigurationError


def read_lines(path: str) -> List[str]:
    """
    Read a wordlist, one entry per line.

    Lines are stripped and empty lines are skipped; order is preserved.

    Raises:
        ConfigurationError: If the file cannot be read
    """
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return [line.strip() for line in f if line.strip()]
    except OSError as e:
        raise ConfigurationError(f"Cannot read wordlist {path}: {e.strerror or str(e)}")


def resolve_target(value: str) -> str:
    """
    Return the target address.

    If `value` names an existing file, its first non-empty line is used.
    """
    if Path(value).is_file():
        targets = read_lines(value)
        if not targets:
            raise ConfigurationError(f"Target file {value} is empty")
        return targets[0]
    return value
