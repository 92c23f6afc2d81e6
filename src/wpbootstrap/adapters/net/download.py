"""
Download adapter — fetch files and unpack archives over HTTP(S).

Artifacts are always "latest": no version pinning, no checksum.
Archives are streamed to a temporary file, then extracted with an
optional number of leading path components stripped (like
``tar --strip-components``).
"""

from __future__ import annotations

import logging
import os
import tarfile
import tempfile
import urllib.request
import zipfile
from pathlib import Path, PurePosixPath

from wpbootstrap import __version__
from wpbootstrap.adapters.base import Adapter, ExecutionContext
from wpbootstrap.core.models.action import Receipt

logger = logging.getLogger(__name__)

USER_AGENT = f"wp-bootstrap/{__version__}"

_CHUNK = 64 * 1024


class ArchiveError(Exception):
    """Raised when an archive cannot be unpacked safely."""


def _fmt_size(n: int) -> str:
    """Human-readable byte count."""
    size = float(n)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{size:.1f} TB"


def detect_format(url: str) -> str:
    """Guess the archive format from the URL path."""
    path = url.split("?", 1)[0].lower()
    if path.endswith((".tar.gz", ".tgz")):
        return "tar.gz"
    if path.endswith(".zip"):
        return "zip"
    return ""


def download_file(url: str, dest: Path, *, timeout: float = 120) -> int:
    """Stream ``url`` into ``dest``.

    Returns:
        Number of bytes written.

    Raises:
        urllib.error.URLError / OSError on network or disk failure.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    written = 0
    with urllib.request.urlopen(req, timeout=timeout) as resp, open(dest, "wb") as f:
        while True:
            chunk = resp.read(_CHUNK)
            if not chunk:
                break
            f.write(chunk)
            written += len(chunk)
    logger.info("Downloaded %s (%s)", url, _fmt_size(written))
    return written


def _strip(name: str, strip: int) -> str | None:
    """Drop ``strip`` leading components; None if nothing is left.

    Raises:
        ArchiveError: For absolute paths or parent-directory escapes.
    """
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        raise ArchiveError(f"Unsafe path in archive: {name}")
    parts = [p for p in path.parts if p not in ("", ".")][strip:]
    if not parts:
        return None
    return "/".join(parts)


def extract_tar(archive: Path, dest: Path, *, strip: int = 0) -> int:
    """Extract a gzipped tarball into ``dest``. Returns the member count."""
    dest.mkdir(parents=True, exist_ok=True)
    count = 0
    with tarfile.open(archive, "r:gz") as tf:
        for member in tf.getmembers():
            stripped = _strip(member.name, strip)
            if stripped is None:
                continue
            member.name = stripped
            if member.islnk():
                linked = _strip(member.linkname, strip)
                if linked is None:
                    continue
                member.linkname = linked
            tf.extract(member, dest, filter="data")
            count += 1
    return count


def extract_zip(archive: Path, dest: Path, *, strip: int = 0) -> int:
    """Extract a zip archive into ``dest``. Returns the entry count."""
    dest.mkdir(parents=True, exist_ok=True)
    count = 0
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            stripped = _strip(info.filename, strip)
            if stripped is None:
                continue
            target = dest / stripped
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as out:
                    while True:
                        chunk = src.read(_CHUNK)
                        if not chunk:
                            break
                        out.write(chunk)
                mode = (info.external_attr >> 16) & 0o777
                if mode:
                    os.chmod(target, mode)
            count += 1
    return count


class DownloadAdapter(Adapter):
    """Fetch a file or an archive.

    Action params:
        operation (str): 'fetch' (single file) or 'archive' (download + extract).
        url (str): Source URL.
        dest (str): Target file ('fetch') or directory ('archive').
        mode (int): Permission bits for the fetched file.
        strip_components (int): Leading path components to drop ('archive').
        format (str): 'tar.gz' or 'zip'; detected from the URL if absent.
        timeout (float): Network timeout in seconds (default: 120).
    """

    @property
    def name(self) -> str:
        return "download"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if operation not in ("fetch", "archive"):
            return False, f"Unknown operation '{operation}'. Valid: archive, fetch"
        for key in ("url", "dest"):
            if not context.params.get(key):
                return False, f"Missing required param: '{key}'"
        if operation == "archive":
            fmt = context.params.get("format") or detect_format(context.params["url"])
            if fmt not in ("tar.gz", "zip"):
                return False, f"Cannot tell archive format of {context.params['url']}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.params
        url = params["url"]
        dest = Path(params["dest"])
        timeout = params.get("timeout", 120)

        try:
            if params["operation"] == "fetch":
                size = download_file(url, dest, timeout=timeout)
                if params.get("mode") is not None:
                    dest.chmod(params["mode"])
                return Receipt.success(
                    adapter=self.name,
                    action_id=context.action.id,
                    output=f"Downloaded {_fmt_size(size)} to {dest}",
                    metadata={"url": url, "path": str(dest), "size_bytes": size},
                )
            return self._archive(context, url, dest, timeout)
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Download failed: {e}",
                metadata={"url": url, "path": str(dest)},
            )

    def _archive(
        self, ctx: ExecutionContext, url: str, dest: Path, timeout: float,
    ) -> Receipt:
        fmt = ctx.params.get("format") or detect_format(url)
        strip = int(ctx.params.get("strip_components", 0))
        suffix = ".zip" if fmt == "zip" else ".tar.gz"

        fd, tmp_name = tempfile.mkstemp(suffix=suffix, prefix="wpb-")
        os.close(fd)
        tmp = Path(tmp_name)
        try:
            size = download_file(url, tmp, timeout=timeout)
            if fmt == "zip":
                count = extract_zip(tmp, dest, strip=strip)
            else:
                count = extract_tar(tmp, dest, strip=strip)
        finally:
            tmp.unlink(missing_ok=True)

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Extracted {count} entries ({_fmt_size(size)}) to {dest}",
            metadata={"url": url, "path": str(dest), "size_bytes": size, "entries": count},
        )
