import inspect
from functools import lru_cache
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterator
from enum import Enum
from typing import (
	Any,
	Callable,
	NamedTuple,
	TypeAlias,
	TypeVar,
)

from ..utils.io import DEFAULT_ENCODING, asWritable
from .api import ResponseFactory
from .status import HTTP_STATUS

T = TypeVar("T")

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------

# Header names come from clients, so the cache must stay bounded
HEADER_NAMES_CACHE: int = 256


@lru_cache(maxsize=HEADER_NAMES_CACHE)
def headername(name: str) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	return "-".join(_.capitalize() for _ in name.lower().split("-"))


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""To be raised by handlers to generate an error response, by
	default a 500."""

	def __init__(
		self,
		message: str,
		status: int | None = None,
		contentType: str | None = None,
	):
		super().__init__(message)
		self.message: str = message
		self.status: int | None = status
		self.contentType: str | None = contentType


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a body as bytes."""

	payload: bytes = b""
	length: int = 0

	@staticmethod
	def FromBytes(data: bytes) -> "HTTPBodyBlob":
		return HTTPBodyBlob(payload=data, length=len(data))


class HTTPBodyStream(NamedTuple):
	"""An HTTP body that is generated from a lazy, single-pass stream."""

	stream: Iterator[str | bytes]


class HTTPBodyAsyncStream(NamedTuple):
	"""An HTTP body that is generated from an asynchronous stream."""

	stream: AsyncIterator[str | bytes]


# The different types of bodies that are managed
THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyStream | HTTPBodyAsyncStream


class HTTPBody:
	"""Contains helpers to work with bodies."""

	@staticmethod
	async def Load(body: THTTPBody | None) -> bytes:
		"""Loads the whole body in memory, this is meant for testing
		and small bodies only."""
		if body is None:
			return b""
		elif isinstance(body, HTTPBodyBlob):
			return body.payload
		elif isinstance(body, HTTPBodyStream):
			return b"".join(asWritable(_) for _ in body.stream)
		else:
			res = bytearray()
			async for _ in body.stream:
				res += asWritable(_)
			return bytes(res)

	@staticmethod
	def Close(body: THTTPBody | None) -> None:
		"""Closes the underlying stream, if any, releasing its resources."""
		if isinstance(body, HTTPBodyStream):
			close = getattr(body.stream, "close", None)
			if close:
				close()


class HTTPBodyWriter(ABC):
	"""A generic writer for bodies. Streams are written chunk by chunk, so
	that the pace of the reads follows the pace of the writes."""

	__slots__ = ["written"]

	def __init__(self) -> None:
		self.written: int = 0

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._write(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._write(body.payload)
		elif isinstance(body, HTTPBodyStream):
			# The stream is closed even if the client went away mid-transfer,
			# so that open files are released right away.
			try:
				for _ in body.stream:
					await self._write(asWritable(_))
			finally:
				HTTPBody.Close(body)
			return True
		elif isinstance(body, HTTPBodyAsyncStream):
			try:
				async for _ in body.stream:
					await self._write(asWritable(_))
			finally:
				aclose = getattr(body.stream, "aclose", None)
				if aclose:
					await aclose()
			return True
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _write(self, chunk: bytes) -> bool:
		if chunk:
			self.written += len(chunk)
			return await self._writeBytes(chunk)
		return True

	@abstractmethod
	async def _writeBytes(self, chunk: bytes) -> bool: ...


class HTTPBodyBuffer(HTTPBodyWriter):
	"""A writer that accumulates what is written in memory."""

	__slots__ = ["data"]

	def __init__(self) -> None:
		super().__init__()
		self.data: bytearray = bytearray()

	async def _writeBytes(self, chunk: bytes) -> bool:
		self.data += chunk
		return True


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"_headers",
		"_body",
		"_onClose",
	]

	@staticmethod
	def Make(
		method: str,
		uri: str,
		headers: dict[str, str] | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPRequest":
		"""Creates a request from a method and a request target like
		`/path?format=json`, which is mostly useful for testing."""
		# Imported here as the parser depends on this module
		from .parser import parseQuery

		path, _, query = uri.partition("?")
		return HTTPRequest(
			method=method.upper(),
			path=path,
			query=parseQuery(query) if query else {},
			headers=HTTPHeaders({headername(k): v for k, v in (headers or {}).items()}),
			protocol=protocol,
		)

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None,
		headers: HTTPHeaders,
		body: HTTPBodyBlob | None = None,
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		self._headers: HTTPHeaders = headers
		self._body: HTTPBodyBlob | None = body
		self._onClose: Callable[[HTTPRequest], None] | None = None

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	@property
	def body(self) -> HTTPBodyBlob:
		return self._body or HTTPBodyBlob()

	@property
	def contentType(self) -> str | None:
		return self._headers.contentType

	@property
	def contentLength(self) -> int | None:
		return self._headers.contentLength

	@property
	def keepAlive(self) -> bool:
		connection: str = (self.header("Connection") or "").lower()
		if self.protocol == "HTTP/1.0":
			return connection == "keep-alive"
		else:
			return connection != "close"

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	def param(
		self,
		name: str,
		default: T | None = None,
	) -> str | T | None:
		return self.query.get(name, default) if self.query else default

	def onClose(
		self, callback: Callable[["HTTPRequest"], None] | None
	) -> "HTTPRequest":
		self._onClose = callback
		return self

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol=self.protocol,
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"shouldClose",
		"_onClose",
	]

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects. The content can
		be text, bytes, or a (possibly asynchronous) iterator of chunks."""
		body: THTTPBody | None = None
		if content is None:
			pass
		elif isinstance(content, str):
			body = HTTPBodyBlob.FromBytes(content.encode(DEFAULT_ENCODING))
		elif isinstance(content, bytes):
			body = HTTPBodyBlob.FromBytes(content)
		elif inspect.isgenerator(content) or isinstance(content, Iterator):
			body = HTTPBodyStream(content)
		elif inspect.isasyncgen(content) or isinstance(content, AsyncIterator):
			body = HTTPBodyAsyncStream(content)
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		if isinstance(body, HTTPBodyBlob):
			contentLength = body.length
		res_headers: dict[str, str] = {}
		if contentType is not None:
			res_headers["Content-Type"] = contentType
		if contentLength is not None:
			res_headers["Content-Length"] = str(contentLength)
		for k, v in (headers or {}).items():
			res_headers[headername(k)] = v
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				res_headers,
				contentType=contentType or res_headers.get("Content-Type"),
				contentLength=contentLength,
			),
			body=body,
			protocol=protocol,
			# Streams without a known length are delimited by the
			# connection close.
			shouldClose=body is not None
			and not isinstance(body, HTTPBodyBlob)
			and "Content-Length" not in res_headers,
		)

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
		shouldClose: bool = False,
	):
		super().__init__()
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self._onClose: Callable[[HTTPResponse], None] | None = None
		self.shouldClose: bool = shouldClose

	@property
	def contentType(self) -> str | None:
		return self.getHeader("Content-Type")

	@property
	def contentLength(self) -> int | None:
		value = self.getHeader("Content-Length")
		return None if value is None else int(value)

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		if value is None:
			self.headers.headers.pop(headername(name), None)
		else:
			self.headers.headers[headername(name)] = str(value)
		return self

	def setHeaders(self, headers: dict[str, str | int | None]) -> "HTTPResponse":
		for k, v in headers.items():
			self.setHeader(k, v)
		return self

	def discardBody(self) -> "HTTPResponse":
		"""Drops the body while keeping the headers, as required to answer
		`HEAD` requests."""
		HTTPBody.Close(self.body)
		self.body = None
		return self

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [f"{self.protocol} {self.status} {message}"]
		for k, v in self.headers.headers.items():
			lines.append(f"{headername(k)}: {v}")
		if self.shouldClose and "Connection" not in self.headers.headers:
			lines.append("Connection: close")
		lines.append("")
		lines.append("")
		return "\r\n".join(lines).encode("latin-1")

	def onClose(
		self, callback: Callable[["HTTPResponse"], None] | None
	) -> "HTTPResponse":
		self._onClose = callback
		return self

	def close(self) -> None:
		"""Releases the resources held by the response."""
		HTTPBody.Close(self.body)
		if self._onClose:
			callback, self._onClose = self._onClose, None
			callback(self)

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
