"""
Scoped working directories for external registration runs.

Every call gets its own uniquely named directory, which is removed when
the context exits, whether normally or through an exception.
"""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from affine_registration.core.exceptions import ResourceProvisioningError

logger = logging.getLogger(__name__)


@contextmanager
def scoped_working_directory(
    root: Optional[Union[str, Path]] = None,
    prefix: str = "affine_registration_"
) -> Iterator[Path]:
    """
    Create a private working directory for the duration of a ``with`` block.

    Args:
        root: Parent directory (system temporary directory when None)
        prefix: Directory name prefix

    Yields:
        Path of the created directory

    Raises:
        ResourceProvisioningError: If the directory cannot be created
    """
    location = str(root) if root is not None else tempfile.gettempdir()
    try:
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=root))
    except OSError as e:
        raise ResourceProvisioningError(location, reason=e.strerror or str(e)) from e

    logger.debug(f"Created working directory {path}")
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        logger.debug(f"Removed working directory {path}")
