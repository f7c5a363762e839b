"""
Exceptions for Jobwatch Monitor

Author: Jobwatch Team
SPDX-License-Identifier: BUSL-1.1
"""


class CollectionError(Exception):
    """Raised when the process table itself cannot be enumerated."""


class RotationError(OSError):
    """Raised when the series file could not be renamed during rotation.

    The writer has already reopened the original path, so callers can keep
    appending to the un-rotated file.
    """
