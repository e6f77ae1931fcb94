#!/usr/bin/env python3
"""Capture filesystem metadata as archive header records.

Metadata is read with lstat, so symlinks are recorded as links rather
than as their targets. Owner and group names come from an IdentityResolver;
an id without a name leaves the name empty and keeps the numeric id.

Example:
    >>> header = capture("/home/me/.bashrc", name=".bashrc")
    >>> header.entry_type
    <ArchiveEntryType.REGULAR: b'0'>
    >>> tarinfo = header.to_tarinfo()
"""

import grp
import os
import pwd
import stat
import tarfile
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from stagebackup.core.constants import ArchiveEntryType


class IdentityResolver(Protocol):
    """Maps numeric owner and group ids to names."""

    def user_name(self, uid: int) -> str:
        ...

    def group_name(self, gid: int) -> str:
        ...


class SystemIdentityResolver:
    """Resolve ids through the system user and group databases.

    Lookups are memoized for the lifetime of the resolver; unknown ids map
    to an empty string.
    """

    def __init__(self):
        self._users: Dict[int, str] = {}
        self._groups: Dict[int, str] = {}

    def user_name(self, uid: int) -> str:
        if uid not in self._users:
            try:
                self._users[uid] = pwd.getpwuid(uid).pw_name
            except (KeyError, OverflowError):
                self._users[uid] = ""
        return self._users[uid]

    def group_name(self, gid: int) -> str:
        if gid not in self._groups:
            try:
                self._groups[gid] = grp.getgrgid(gid).gr_name
            except (KeyError, OverflowError):
                self._groups[gid] = ""
        return self._groups[gid]


class StaticIdentityResolver:
    """Resolve ids from fixed tables, for tests and reproducible archives."""

    def __init__(
        self, users: Optional[Dict[int, str]] = None, groups: Optional[Dict[int, str]] = None
    ):
        self._users = dict(users or {})
        self._groups = dict(groups or {})

    def user_name(self, uid: int) -> str:
        return self._users.get(uid, "")

    def group_name(self, gid: int) -> str:
        return self._groups.get(gid, "")


def _pax_time(value: float) -> str:
    return f"{value:.9f}".rstrip("0").rstrip(".")


@dataclass(frozen=True)
class ArchiveHeader:
    """Metadata block written ahead of a file's content in the archive."""

    path: str
    mode: int
    uid: int
    gid: int
    uname: str
    gname: str
    size: int
    entry_type: ArchiveEntryType
    linkname: str
    mtime: float
    atime: float
    ctime: float
    devmajor: int = 0
    devminor: int = 0

    @property
    def has_body(self) -> bool:
        """Only regular files carry content after the header."""
        return self.entry_type is ArchiveEntryType.REGULAR

    @property
    def body_size(self) -> int:
        return self.size if self.has_body else 0

    def to_tarinfo(self) -> tarfile.TarInfo:
        """Build the equivalent tar header.

        Access and change times are stored as PAX extended records.
        """
        info = tarfile.TarInfo(self.path)
        info.type = self.entry_type.value
        info.mode = stat.S_IMODE(self.mode)
        info.uid = self.uid
        info.gid = self.gid
        info.uname = self.uname
        info.gname = self.gname
        info.size = self.body_size
        info.mtime = self.mtime
        info.linkname = self.linkname
        if self.entry_type.is_device:
            info.devmajor = self.devmajor
            info.devminor = self.devminor
        info.pax_headers = {
            "atime": _pax_time(self.atime),
            "ctime": _pax_time(self.ctime),
        }
        return info


def capture(
    path: str, name: Optional[str] = None, resolver: Optional[IdentityResolver] = None
) -> Optional[ArchiveHeader]:
    """Capture the archive header for a filesystem entry.

    Args:
        path: Path to lstat
        name: Name recorded in the archive (default: path)
        resolver: Identity lookups (default: system databases)

    Returns:
        ArchiveHeader, or None if the entry cannot be stat'ed
    """
    try:
        st = os.lstat(path)
    except OSError:
        return None

    resolver = resolver or SystemIdentityResolver()
    entry_type = ArchiveEntryType.from_mode(st.st_mode)

    linkname = ""
    if entry_type is ArchiveEntryType.SYMLINK:
        try:
            linkname = os.readlink(path)
        except OSError:
            linkname = ""

    devmajor = devminor = 0
    if entry_type.is_device:
        devmajor = os.major(st.st_rdev)
        devminor = os.minor(st.st_rdev)

    return ArchiveHeader(
        path=name if name is not None else path,
        mode=st.st_mode,
        uid=st.st_uid,
        gid=st.st_gid,
        uname=resolver.user_name(st.st_uid),
        gname=resolver.group_name(st.st_gid),
        size=st.st_size,
        entry_type=entry_type,
        linkname=linkname,
        mtime=st.st_mtime,
        atime=st.st_atime,
        ctime=st.st_ctime,
        devmajor=devmajor,
        devminor=devminor,
    )
