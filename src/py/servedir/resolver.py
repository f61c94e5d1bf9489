import errno
import os
import re
import stat
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Pattern, TypeAlias
from urllib.parse import unquote_to_bytes

from .listing import Entry, Listing, listing
from .utils.files import contentType

# --
# The resolver maps URL paths to local files and directories. Resolution
# never returns anything outside of the served root: `..` segments are
# resolved against the URL path, then the candidate path is canonicalized
# (resolving symlinks) and checked to be a descendant of the canonical root.

RE_BAD_ESCAPE: Pattern[str] = re.compile(r"%(?![0-9A-Fa-f]{2})")

# Errors that mean the path does not exist as requested
NOT_FOUND_ERRNO: frozenset[int] = frozenset(
	(errno.ENOENT, errno.ENOTDIR, errno.ENAMETOOLONG)
)


class Rejection(Enum):
	"""Why a path was rejected, valued by the matching HTTP status."""

	Malformed = 400
	Forbidden = 403
	NotFound = 404

	@property
	def status(self) -> int:
		return self.value


class ServedRoot(NamedTuple):
	"""The canonical, absolute directory that is served."""

	path: str

	@staticmethod
	def Make(path: Path | str) -> "ServedRoot":
		canonical: str = os.path.realpath(os.path.abspath(path))
		if not os.path.isdir(canonical):
			raise ValueError(f"Served root is not a directory: {path}")
		return ServedRoot(canonical)

	def contains(self, path: str) -> bool:
		"""Tells if the given canonical path is the root or one of its
		descendants."""
		return os.path.commonpath([self.path, path]) == self.path


class File(NamedTuple):
	path: Path
	size: int
	contentType: str

	@property
	def name(self) -> str:
		return self.path.name


class Directory(NamedTuple):
	path: Path
	listing: Listing

	@property
	def entries(self) -> tuple[Entry, ...]:
		return self.listing.entries


class Rejected(NamedTuple):
	reason: Rejection
	message: str


ResolvedTarget: TypeAlias = File | Directory | Rejected


def decodePath(requestPath: str) -> list[str] | None:
	"""Percent-decodes the given URL path and splits it into segments,
	dropping empty and `.` segments. Returns `None` when the path has a
	malformed escape or contains a NUL byte. Bytes that are not valid
	UTF-8 are kept as surrogates, like `os.fsdecode` does, so that any name
	found on disk can be requested. Note that `..` segments are kept."""
	if RE_BAD_ESCAPE.search(requestPath):
		return None
	decoded: str = unquote_to_bytes(requestPath).decode("utf8", "surrogateescape")
	if "\x00" in decoded:
		return None
	return [_ for _ in decoded.split("/") if _ and _ != "."]


def normalizeSegments(segments: list[str]) -> list[str] | None:
	"""Resolves `..` segments against their preceding segment, so that the
	URL path of a target is the one it is listed under. Returns `None` when
	the path climbs above the root."""
	res: list[str] = []
	for segment in segments:
		if segment != "..":
			res.append(segment)
		elif res:
			res.pop()
		else:
			return None
	return res


def isHiddenPath(root: ServedRoot, canonical: str) -> bool:
	"""Tells if the canonical path goes through a dot-prefixed entry of the
	root, which may be reached through a visible symlink."""
	relative: str = os.path.relpath(canonical, root.path)
	return relative != "." and any(_.startswith(".") for _ in relative.split(os.sep))


def resolve(
	root: ServedRoot, requestPath: str, *, hidden: bool = True
) -> ResolvedTarget:
	"""Resolves the given (raw) URL path within the served root. Expected
	failures are returned as `Rejected`, a `ListingError` is raised when a
	resolved directory can't be read."""
	decoded = decodePath(requestPath)
	if decoded is None:
		return Rejected(Rejection.Malformed, "Malformed request path")
	segments = normalizeSegments(decoded)
	if segments is None:
		return Rejected(Rejection.Forbidden, "Path climbs above the served root")
	if not hidden and any(_.startswith(".") for _ in segments):
		return Rejected(Rejection.NotFound, "Hidden path")
	# The containment check comes first, so that paths outside of the root
	# are always forbidden, whether they exist or not.
	canonical: str = os.path.realpath(os.path.join(root.path, *segments))
	if not root.contains(canonical):
		return Rejected(Rejection.Forbidden, "Path is outside of the served root")
	if not hidden and isHiddenPath(root, canonical):
		return Rejected(Rejection.NotFound, "Path leads to a hidden entry")
	try:
		st = os.stat(canonical)
	except OSError as e:
		return (
			Rejected(Rejection.NotFound, "Path does not exist")
			if e.errno in NOT_FOUND_ERRNO
			else Rejected(Rejection.Forbidden, "Path is not accessible")
		)
	if stat.S_ISREG(st.st_mode):
		# The type is derived from the requested name, which may be a link
		return File(
			Path(canonical),
			st.st_size,
			contentType(segments[-1] if segments else canonical),
		)
	elif stat.S_ISDIR(st.st_mode):
		return Directory(
			Path(canonical),
			listing(canonical, "/".join(segments), hidden=hidden),
		)
	else:
		return Rejected(Rejection.Forbidden, "Path is not a file or directory")


# EOF
