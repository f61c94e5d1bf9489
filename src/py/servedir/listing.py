import os
import posixpath
import stat
from pathlib import Path
from typing import NamedTuple


class ListingError(Exception):
	"""Raised when a directory can't be read, for instance because
	permissions were revoked or it was removed after it was resolved."""

	def __init__(self, message: str, path: Path | str | None = None):
		super().__init__(message)
		self.message: str = message
		self.path: Path | str | None = path


class Entry(NamedTuple):
	"""A child of a listed directory."""

	name: str
	isDirectory: bool
	# Absent for directories
	size: int | None = None
	updatedAt: float | None = None

	@staticmethod
	def FromDirEntry(item: os.DirEntry[str]) -> "Entry":
		try:
			# Symlinks are followed, so a link to a directory is listed
			# as a directory.
			st = item.stat()
		except OSError:
			# Dangling link, or a child removed while listing
			return Entry(name=item.name, isDirectory=False)
		is_dir: bool = stat.S_ISDIR(st.st_mode)
		return Entry(
			name=item.name,
			isDirectory=is_dir,
			size=None if is_dir else st.st_size,
			updatedAt=st.st_mtime,
		)

	@property
	def isHidden(self) -> bool:
		return self.name.startswith(".")


class Listing(NamedTuple):
	"""The contents of a directory, along with its URL path and the URL path
	of its parent (`None` at the served root)."""

	path: str
	parent: str | None
	entries: tuple[Entry, ...]


def sortKey(entry: Entry) -> tuple[bool, str, str]:
	"""Directories first, then names in case-insensitive order, ties being
	broken by the case-sensitive order."""
	return (not entry.isDirectory, entry.name.casefold(), entry.name)


def listEntries(directory: Path | str, *, hidden: bool = True) -> list[Entry]:
	"""Reads the given directory and returns its entries, sorted with
	`sortKey`. Dot-prefixed entries are only included when `hidden` is
	true. The directory is read on each call, nothing is cached."""
	try:
		with os.scandir(directory) as items:
			entries = [
				Entry.FromDirEntry(_)
				for _ in items
				if hidden or not _.name.startswith(".")
			]
	except OSError as e:
		raise ListingError(
			f"Unable to list directory: {e.strerror or e}", directory
		) from e
	return sorted(entries, key=sortKey)


def normalizePath(path: str) -> str:
	"""Normalizes a decoded URL path to an absolute path with no trailing
	slash, except for the root."""
	res = posixpath.normpath("/" + path.lstrip("/"))
	# POSIX allows a leading `//`, which we don't want
	return "/" + res.lstrip("/")


def parentPath(path: str) -> str | None:
	path = normalizePath(path)
	return None if path == "/" else posixpath.dirname(path)


def listing(
	directory: Path | str,
	path: str,
	*,
	hidden: bool = True,
	entries: list[Entry] | None = None,
) -> Listing:
	"""Creates the listing of the given local `directory` available at the
	given URL `path`."""
	path = normalizePath(path)
	return Listing(
		path=path,
		parent=parentPath(path),
		entries=tuple(
			listEntries(directory, hidden=hidden) if entries is None else entries
		),
	)


# EOF
