import re
from typing import Iterator, ClassVar, Literal, Pattern, TypeAlias, Union
from ..utils.io import LineParser
from .model import (
	HTTPRequest,
	HTTPRequestLine,
	HTTPHeaders,
	HTTPBodyBlob,
	HTTPProcessingStatus,
	headername,
)

# Type alias for what the parser produces
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
]

# Request lines and header lines longer than that are rejected, so that a
# client can't make the server buffer an unbounded amount of data.
MAX_LINE: int = 16_384
MAX_HEADERS: int = 128

RE_METHOD: Pattern[str] = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
RE_PROTOCOL: Pattern[str] = re.compile(r"^HTTP/\d\.\d$")
RE_ABSOLUTE: Pattern[str] = re.compile(r"^[A-Za-z][A-Za-z0-9+\-.]*://[^/]*")


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[bool | None, int]:
		"""Returns `True` when a request line was parsed, `False` when the
		line is malformed and `None` when more data is needed."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return (False if self.line.pending > MAX_LINE else None), read
		elif not line:
			# Empty lines before a request line are ignored (RFC 9112 §2.2)
			return None, read
		try:
			ln: str = line.decode("ascii")
		except UnicodeDecodeError:
			return False, read
		parts: list[str] = ln.split(" ")
		if len(parts) != 3:
			return False, read
		method, target, protocol = parts
		if not (target and RE_METHOD.match(method) and RE_PROTOCOL.match(protocol)):
			return False, read
		# Absolute-form targets (`http://host/path`) are reduced to their path
		if m := RE_ABSOLUTE.match(target):
			target = target[m.end() :] or "/"
		path, _, query = target.partition("?")
		self.value = HTTPRequestLine(method, path, query, protocol)
		return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line", "isValid"]

	def __init__(self) -> None:
		super().__init__()
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None
		self.isValid: bool = True

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		self.isValid = True
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the number of bytes read. When the value is `None`, no
		header has been extracted, when the value is `False` it's the empty
		line ending the headers, otherwise it's the parsed header name.
		Malformed headers set `isValid` to `False`."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			if self.line.pending > MAX_LINE:
				self.isValid = False
				return False, read
			return None, read
		elif not line:
			# An empty line denotes the end of headers
			return False, read
		# Header values are opaque bytes, latin-1 maps them one to one
		ln: str = line.decode("latin-1")
		i = ln.find(":")
		if i <= 0 or len(self.headers) >= MAX_HEADERS:
			self.isValid = False
			return False, read
		h = ln[:i].strip().lower()
		v = ln[i + 1 :].strip()
		if h == "content-length":
			if not v.isdigit():
				self.isValid = False
				return False, read
			self.contentLength = int(v)
		elif h == "content-type":
			self.contentType = v
		elif h == "transfer-encoding":
			# Request bodies are never used, we only support skipping
			# bodies with a known length.
			self.isValid = False
			return False, read
		n: str = headername(h)
		self.headers[n] = v
		return n, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodySkipParser:
	"""Skips the body of a request with a Content-Length, as request bodies
	are not used by the server."""

	__slots__ = ["remaining"]

	def __init__(self) -> None:
		self.remaining: int = 0

	def reset(self, length: int = 0) -> "BodySkipParser":
		self.remaining = length
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		read: int = min(len(chunk) - start, self.remaining)
		self.remaining -= read
		return (True if self.remaining == 0 else None), read


class HTTPParser:
	"""A stateful, incremental HTTP request parser. Once a malformed
	request is found, the parser yields `HTTPProcessingStatus.BadFormat` and
	ignores any further input."""

	METHOD_HAS_BODY: ClassVar[set[str]] = {"POST", "PUT", "PATCH"}

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.body: BodySkipParser = BodySkipParser()
		self.parser: MessageParser | HeadersParser | BodySkipParser = self.message
		self.requestLine: HTTPRequestLine | None = None
		self.requestHeaders: HTTPHeaders | None = None
		self.isFailed: bool = False

	def fail(self) -> HTTPProcessingStatus:
		self.isFailed = True
		return HTTPProcessingStatus.BadFormat

	def request(self) -> HTTPRequest:
		line = self.requestLine
		headers = self.requestHeaders or HTTPHeaders({})
		if line is None:
			raise RuntimeError("Parser has no request line")
		self.parser = self.message.reset()
		self.requestLine = None
		self.requestHeaders = None
		return HTTPRequest(
			method=line.method,
			path=line.path,
			query=parseQuery(line.query),
			headers=headers,
			protocol=line.protocol,
			body=HTTPBodyBlob(),
		)

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size and not self.isFailed:
			# The underlying parsers keep a buffer of partial lines, so a
			# chunk never needs to be fed twice.
			if self.parser is self.message:
				parsed, read = self.message.feed(chunk, offset)
				offset += read
				if parsed is False:
					yield self.fail()
				elif parsed:
					self.requestLine = self.message.flush()
					if self.requestLine:
						yield self.requestLine
					self.parser = self.headers
			elif self.parser is self.headers:
				name, read = self.headers.feed(chunk, offset)
				offset += read
				if name is False:
					if not self.headers.isValid:
						yield self.fail()
						break
					headers = self.headers.flush()
					self.requestHeaders = headers
					yield headers
					if headers.contentLength:
						self.parser = self.body.reset(headers.contentLength)
						yield HTTPProcessingStatus.Body
					elif (
						self.requestLine
						and self.requestLine.method in self.METHOD_HAS_BODY
						and headers.contentLength is None
					):
						# A body without a length can't be delimited
						yield self.fail()
					else:
						yield self.request()
			else:
				done, read = self.body.feed(chunk, offset)
				offset += read
				if done:
					yield self.request()


def parseQuery(text: str) -> dict[str, str]:
	res: dict[str, str] = {}
	for item in text.split("&"):
		if not item:
			continue
		kv = item.split("=", 1)
		if len(kv) == 1:
			res[item] = ""
		else:
			res[kv[0]] = kv[1]
	return res


# EOF
