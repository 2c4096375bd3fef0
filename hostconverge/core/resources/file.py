"""
File handler — exact content, optional mode and ownership.

Writes are atomic: content goes to a temporary file in the target
directory, is fsynced, gets its mode/owner, and is renamed over the
target with ``os.replace``. A failure at any point leaves the old file
untouched and removes the temporary file.

Cleanup policy:
    - Missing parent directories are created.
    - With ``backup: true`` a file whose content is about to change is
      copied to ``<path>.bak`` first (the previous .bak is replaced).
    - When only mode/owner/group differ, metadata is fixed in place
      and the content is not rewritten.
"""

from __future__ import annotations

import grp
import logging
import os
import pwd
import shutil
import stat
import tempfile
from pathlib import Path

from hostconverge.core.errors import ApplyError, ProbeUnavailableError
from hostconverge.core.models.outcome import ObservedState
from hostconverge.core.models.resource import FileResource, ResourceKind
from hostconverge.core.resources.base import ResourceHandler

logger = logging.getLogger(__name__)

_DEFAULT_MODE = 0o644


def _user_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _group_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


def _resolve_uid(owner: str | None) -> int:
    if owner is None:
        return -1
    if owner.isdigit():
        return int(owner)
    try:
        return pwd.getpwnam(owner).pw_uid
    except KeyError as e:
        raise ApplyError(f"Unknown user '{owner}'") from e


def _resolve_gid(group: str | None) -> int:
    if group is None:
        return -1
    if group.isdigit():
        return int(group)
    try:
        return grp.getgrnam(group).gr_gid
    except KeyError as e:
        raise ApplyError(f"Unknown group '{group}'") from e


def atomic_write(path: Path, data: bytes, mode: int, uid: int = -1, gid: int = -1) -> None:
    """Replace ``path`` with ``data`` so readers never see a partial file."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp, mode)
        if uid != -1 or gid != -1:
            os.chown(tmp, uid, gid)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


class FileHandler(ResourceHandler[FileResource]):
    kind = ResourceKind.FILE

    def check(self, resource: FileResource) -> ObservedState:
        path = self.host_path(resource.path)

        try:
            st = path.stat()
        except FileNotFoundError:
            return ObservedState.drift(f"{path} is missing", exists=False)
        except PermissionError as e:
            raise ProbeUnavailableError(f"Cannot stat {path}: {e}") from e

        if not stat.S_ISREG(st.st_mode):
            return ObservedState.drift(f"{path} exists but is not a regular file", exists=True, regular=False)

        try:
            content_differs = path.read_bytes() != resource.content.encode("utf-8")
        except PermissionError as e:
            raise ProbeUnavailableError(f"Cannot read {path}: {e}") from e

        mode = stat.S_IMODE(st.st_mode)
        owner = _user_name(st.st_uid)
        group = _group_name(st.st_gid)

        diffs = []
        if content_differs:
            diffs.append("content differs")
        if resource.mode_bits is not None and mode != resource.mode_bits:
            diffs.append(f"mode {mode:04o} != {resource.mode_bits:04o}")
        if resource.owner is not None and resource.owner not in (owner, str(st.st_uid)):
            diffs.append(f"owner {owner} != {resource.owner}")
        if resource.group is not None and resource.group not in (group, str(st.st_gid)):
            diffs.append(f"group {group} != {resource.group}")

        current = {
            "exists": True,
            "regular": True,
            "content_differs": content_differs,
            "mode": f"{mode:04o}",
            "owner": owner,
            "group": group,
        }
        if diffs:
            return ObservedState.drift(f"{path}: {', '.join(diffs)}", **current)
        return ObservedState.in_sync(str(path), **current)

    def apply(self, resource: FileResource) -> str:
        observed = self.check(resource)
        if observed.converged:
            return observed.detail

        path = self.host_path(resource.path)
        if observed.current.get("regular") is False:
            raise ApplyError(f"{path} exists but is not a regular file; refusing to replace it")

        uid = _resolve_uid(resource.owner)
        gid = _resolve_gid(resource.group)
        exists = observed.current["exists"]

        if exists and not observed.current["content_differs"]:
            if resource.mode_bits is not None:
                os.chmod(path, resource.mode_bits)
            if uid != -1 or gid != -1:
                os.chown(path, uid, gid)
            logger.debug("Fixed metadata of %s", path)
            return f"fixed metadata of {path}"

        path.parent.mkdir(parents=True, exist_ok=True)

        if exists and resource.backup:
            backup = path.with_name(path.name + ".bak")
            shutil.copy2(path, backup)
            logger.info("Backed up %s to %s", path, backup)

        if resource.mode_bits is not None:
            mode = resource.mode_bits
        elif exists:
            mode = int(observed.current["mode"], 8)
        else:
            mode = _DEFAULT_MODE

        atomic_write(path, resource.content.encode("utf-8"), mode, uid, gid)
        return f"{'updated' if exists else 'created'} {path}"

    def describe(self, resource: FileResource, observed: ObservedState) -> str:
        path = self.host_path(resource.path)
        if not observed.current.get("exists"):
            return f"create {path}"
        if observed.current.get("content_differs"):
            return f"rewrite {path}"
        return f"fix metadata of {path}"
