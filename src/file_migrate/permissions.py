"""Copy access-control metadata from source items to their destination counterparts.

Propagation is best effort: a failure on one item is logged and counted, the copied
content is kept, and the walk continues with the next item.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from file_migrate.errors import PermissionApplyFailed

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PosixPermissions:
    """Mode bits and ownership of one POSIX filesystem entry."""

    mode: int
    uid: int
    gid: int


@dataclass(frozen=True, slots=True)
class PermissionReport:
    """Aggregate result of propagating permissions across one job."""

    applied: int
    failed: int
    failures: tuple[PermissionApplyFailed, ...] = ()


class PermissionBackend(Protocol):
    def read(self, path: Path) -> object: ...

    def apply(self, source: Path, destination: Path) -> None: ...


class PosixPermissionBackend:
    """Ownership and mode bits via `os.chown` / `os.chmod`, never following links."""

    def read(self, path: Path) -> PosixPermissions:
        info = os.lstat(path)
        return PosixPermissions(mode=stat.S_IMODE(info.st_mode), uid=info.st_uid, gid=info.st_gid)

    def apply(self, source: Path, destination: Path) -> None:
        snapshot = self.read(source)
        current = self.read(destination)
        # chown may clear setuid/setgid bits, so ownership goes first.
        if (current.uid, current.gid) != (snapshot.uid, snapshot.gid):
            os.chown(destination, snapshot.uid, snapshot.gid, follow_symlinks=False)
        if os.path.islink(destination):
            return
        os.chmod(destination, snapshot.mode)


class WindowsAclBackend:
    """Owner, group, DACL and optionally SACL via the Win32 security API."""

    def __init__(self, include_audit: bool = False) -> None:
        import pywintypes
        import win32security

        self._pywintypes = pywintypes
        self._win32security = win32security
        info = (
            win32security.OWNER_SECURITY_INFORMATION
            | win32security.GROUP_SECURITY_INFORMATION
            | win32security.DACL_SECURITY_INFORMATION
        )
        if include_audit:
            info |= win32security.SACL_SECURITY_INFORMATION
        self._info = info
        self._include_audit = include_audit

    def _descriptor(self, path: Path):
        return self._win32security.GetNamedSecurityInfo(str(path), self._win32security.SE_FILE_OBJECT, self._info)

    def read(self, path: Path) -> str:
        """Return the security descriptor as SDDL text for comparison."""

        try:
            descriptor = self._descriptor(path)
            return self._win32security.ConvertSecurityDescriptorToStringSecurityDescriptor(
                descriptor, self._win32security.SDDL_REVISION_1, self._info
            )
        except self._pywintypes.error as exc:
            raise OSError(f"Could not read security descriptor of {path}: {exc}") from exc

    def apply(self, source: Path, destination: Path) -> None:
        security = self._win32security
        try:
            descriptor = self._descriptor(source)
            control, _revision = descriptor.GetSecurityDescriptorControl()
            flags = self._info
            if control & security.SE_DACL_PROTECTED:
                flags |= security.PROTECTED_DACL_SECURITY_INFORMATION
            else:
                flags |= security.UNPROTECTED_DACL_SECURITY_INFORMATION
            security.SetNamedSecurityInfo(
                str(destination),
                security.SE_FILE_OBJECT,
                flags,
                descriptor.GetSecurityDescriptorOwner(),
                descriptor.GetSecurityDescriptorGroup(),
                descriptor.GetSecurityDescriptorDacl(),
                descriptor.GetSecurityDescriptorSacl() if self._include_audit else None,
            )
        except self._pywintypes.error as exc:
            raise OSError(f"Could not apply security descriptor to {destination}: {exc}") from exc


def default_permission_backend(include_audit: bool = False) -> PermissionBackend:
    """Win32 ACLs on Windows, mode bits and ownership elsewhere."""

    if os.name == "nt":
        return WindowsAclBackend(include_audit=include_audit)
    return PosixPermissionBackend()


def read_permissions(path: Path, backend: PermissionBackend | None = None) -> object:
    """Export the permission metadata of one entry for comparison."""

    return (backend or default_permission_backend()).read(path)


def _iter_pairs(source: Path, destination: Path):
    """Yield (source, destination) for the root and every descendant, iteratively."""

    yield source, destination
    if not source.is_dir() or source.is_symlink():
        return
    pending: list[tuple[Path, Path]] = [(source, destination)]
    while pending:
        source_dir, destination_dir = pending.pop()
        try:
            names = sorted(os.listdir(source_dir))
        except OSError:
            continue
        for name in names:
            child_source = source_dir / name
            child_destination = destination_dir / name
            yield child_source, child_destination
            if child_source.is_dir() and not child_source.is_symlink() and not child_source.is_junction():
                pending.append((child_source, child_destination))


class PermissionPropagator:
    """Apply source permissions to each destination counterpart that exists."""

    def __init__(self, backend: PermissionBackend | None = None, logger: logging.Logger | None = None) -> None:
        self.backend = backend or default_permission_backend()
        self._logger = logger or LOGGER

    def apply_one(self, source: Path, destination: Path) -> None:
        """Apply permissions to one entry, raising `PermissionApplyFailed` on error."""

        try:
            self.backend.apply(source, destination)
        except OSError as exc:
            raise PermissionApplyFailed(str(exc), source=source, destination=destination) from exc

    def propagate(self, source: Path, destination: Path) -> PermissionReport:
        applied = 0
        failures: list[PermissionApplyFailed] = []
        for item_source, item_destination in _iter_pairs(source, destination):
            if not os.path.lexists(item_destination):
                continue
            try:
                self.apply_one(item_source, item_destination)
            except PermissionApplyFailed as exc:
                failures.append(exc)
                self._logger.warning("permissions.apply_failed %s error=%s", exc.context(), exc.message)
                continue
            applied += 1
        return PermissionReport(applied=applied, failed=len(failures), failures=tuple(failures))
