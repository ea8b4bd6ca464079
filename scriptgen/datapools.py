import logging
import os
from typing import Iterable, List, Optional, Tuple

from scriptgen.errors import UnreadableParameterSourceError
from scriptgen.models import DataPool

logger = logging.getLogger(__name__)


def _read_source(path: str) -> Tuple[List[str], str]:
    """Return the header tokens and the untouched text after the header line."""
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise UnreadableParameterSourceError(f"Error in file '{os.path.basename(path)}': {e}", path=path) from e
    if not content.strip():
        raise UnreadableParameterSourceError(f"Error in file '{os.path.basename(path)}': file is empty.", path=path)
    header = content.splitlines()[0]
    if not header.strip():
        raise UnreadableParameterSourceError(
            f"Error in file '{os.path.basename(path)}': first line holds no column names.", path=path)
    remainder = content[len(header):]
    # drop the header line terminator (\n, \r\n or \r)
    if remainder.startswith("\r\n"):
        remainder = remainder[2:]
    elif remainder[:1] in ("\n", "\r"):
        remainder = remainder[1:]
    return header.split(","), remainder


def remove_working_files(routes: Iterable[str]) -> List[str]:
    """Delete working copies, returning the ones that could not be removed."""
    failed = []
    for route in routes:
        if not os.path.exists(route):
            continue
        try:
            os.remove(route)
        except OSError as e:
            logger.warning(f"Unable to delete '{os.path.basename(route)}': {e}")
            failed.append(route)
    return failed


def import_data_pool(path: str, working_dir: str) -> DataPool:
    """Build a DataPool from a comma-header CSV and copy the rest of the file to ``working_dir``."""
    file_name = os.path.basename(path)
    columns, rows = _read_source(path)
    working_file = os.path.join(working_dir, file_name)
    with open(working_file, "w", encoding="utf-8", newline="") as f:
        f.write(rows)
    logger.info(f"Data pool '{file_name}' imported with columns {columns}")
    return DataPool(name=os.path.splitext(file_name)[0], file_name=file_name, columns=columns)


def import_data_pools(paths: Iterable[str], working_dir: Optional[str] = None) -> List[DataPool]:
    """Import every parameter source of a batch.

    When one source fails, the working files already written for earlier
    sources of the batch are deleted and the error propagates. The failing
    source's own working file is left alone.
    """
    working_dir = working_dir or os.getcwd()
    data_pools: List[DataPool] = []
    routes: List[str] = []
    for path in paths:
        if not path:
            continue
        try:
            data_pool = import_data_pool(path, working_dir)
        except UnreadableParameterSourceError as e:
            logger.error(f"Aborting data pool import: {e}")
            remove_working_files(routes)
            raise
        data_pools.append(data_pool)
        routes.append(os.path.join(working_dir, data_pool.file_name))
    return data_pools
