"""Zip archive creation and extraction."""

import os
import shutil
import zipfile


class IllegalPathError(ValueError):
    """An archive entry would be extracted outside the target directory."""


def zip_files(files: list[str], output: str) -> None:
    """Write ``files`` into a new deflate-compressed archive at ``output``.

    Each entry is stored under the path it was given by.
    """
    with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name in files:
            archive.write(name, arcname=name, compress_type=zipfile.ZIP_DEFLATED)


def unzip_file(src: str, dest_dir: str) -> list[str]:
    """Extract the archive ``src`` into ``dest_dir``.

    Returns the paths of every extracted entry in archive order. Raises
    IllegalPathError for entries that escape ``dest_dir``.
    """
    extracted: list[str] = []
    root = os.path.normpath(dest_dir) + os.sep
    with zipfile.ZipFile(src) as archive:
        for info in archive.infolist():
            target = os.path.normpath(os.path.join(dest_dir, info.filename))
            if not target.startswith(root):
                raise IllegalPathError(f"Illegal file path: {target}")
            extracted.append(target)

            if info.is_dir():
                os.makedirs(target, exist_ok=True)
                continue

            mode = (info.external_attr >> 16) & 0o777 or 0o666
            fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
            with open(fd, "wb") as out, archive.open(info) as member:
                shutil.copyfileobj(member, out)
    return extracted