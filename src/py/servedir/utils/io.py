from typing import BinaryIO, Iterator
from pathlib import Path
from .json import json
from .primitives import TPrimitive

DEFAULT_ENCODING: str = "utf8"
EOL: bytes = b"\r\n"
# Size of the chunks used to stream files, bounded so that a large file is
# never loaded in memory as a whole.
CHUNK_SIZE: int = 64_000


def asWritable(value: str | bytes | bytearray | TPrimitive) -> bytes:
	if isinstance(value, bytes):
		return value
	elif isinstance(value, bytearray):
		return bytes(value)
	elif isinstance(value, str):
		return value.encode(DEFAULT_ENCODING)
	else:
		return json(value)


def iterFile(
	file: Path | str | BinaryIO, size: int = CHUNK_SIZE
) -> Iterator[bytes]:
	"""Lazily iterates on the contents of the given file (path or open
	binary file), yielding chunks of at most `size` bytes. The file is
	closed once exhausted or when the generator is closed."""
	f: BinaryIO = open(file, "rb") if isinstance(file, (str, Path)) else file
	try:
		while chunk := f.read(size):
			yield chunk
	finally:
		f.close()


class LineParser:
	"""Accumulates fed bytes until an end of line is found."""

	__slots__ = ["buffer", "line", "eol", "eolsize", "offset"]

	def __init__(self) -> None:
		self.buffer: bytearray = bytearray()
		self.line: bytes | None = None
		self.offset: int = 0
		self.eol: bytes = EOL
		self.eolsize: int = len(EOL)

	@property
	def pending(self) -> int:
		"""The number of bytes buffered without an end of line yet."""
		return len(self.buffer)

	def reset(self, eol: bytes = EOL) -> "LineParser":
		self.buffer.clear()
		self.line = None
		self.offset = 0
		self.eol = eol
		self.eolsize = len(eol)
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		"""Returns the matching line and how many bytes were read in chunk
		from start. When line is None, then the whole chunk has been
		buffered."""
		pos = len(self.buffer)
		self.buffer += chunk[start:]
		end = self.buffer.find(self.eol, self.offset)
		if end == -1:
			self.offset = max(0, len(self.buffer) - self.eolsize + 1)
			return None, len(chunk) - start
		else:
			self.line = bytes(self.buffer[:end])
			self.buffer.clear()
			self.offset = 0
			return self.line, (end - pos) + self.eolsize


# EOF
