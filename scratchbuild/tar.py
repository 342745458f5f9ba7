import io
import logging
import tarfile
from pathlib import Path

logger = logging.getLogger(__name__)


def tar_directory(path: Path) -> bytes:
    """Return an uncompressed tar stream of the files in `path`

    Subdirectories are not supported. Entries are added in name order so the
    same directory always gives the same layer digest.
    """
    if not path.is_dir():
        raise ValueError(f"{path} is not a directory")
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for entry in sorted(path.iterdir()):
            if entry.is_dir():
                raise ValueError(f"directories ({entry.name}) are not currently supported")
            logger.debug("Adding %s", entry)
            tar.add(entry, arcname=f"./{entry.name}", recursive=False)
    return buffer.getvalue()
