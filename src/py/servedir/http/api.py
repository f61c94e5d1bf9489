from abc import ABC, abstractmethod
from typing import Any, Generic, Iterable, Iterator, TypeVar

from ..utils.json import json
from .status import HTTP_STATUS

T = TypeVar("T")

# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------

# --
# == HTTP Request Response API
#
# Defines the high level API functions (orthogonal to the underlying model)
# to create responses. Error responses always have generic bodies, so that
# no server-side detail (like a local path) leaks to the client.


class ResponseFactory(ABC, Generic[T]):
	@abstractmethod
	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> T: ...

	def error(
		self,
		status: int,
		content: str | None = None,
		contentType: str = "text/plain; charset=utf-8",
		headers: dict[str, str] | None = None,
	) -> T:
		message = HTTP_STATUS.get(status, "Server Error")
		return self.respond(
			content=message if content is None else content,
			contentType=contentType,
			status=status,
			message=message,
			headers=headers,
		)

	def badRequest(self, content: str | None = None) -> T:
		return self.error(400, content)

	def forbidden(self, content: str | None = None) -> T:
		return self.error(403, content)

	def notFound(self, content: str | None = None) -> T:
		return self.error(404, content)

	def notAllowed(self, allowed: Iterable[str]) -> T:
		return self.error(405, headers={"Allow": ", ".join(allowed)})

	def fail(self, content: str | None = None, *, status: int = 500) -> T:
		return self.error(status, content)

	def returns(
		self,
		value: Any,
		headers: dict[str, str] | None = None,
		*,
		status: int = 200,
		contentType: str = "application/json",
	) -> T:
		payload: bytes = json(value)
		return self.respond(
			payload,
			contentType=contentType,
			contentLength=len(payload),
			headers=headers,
			status=status,
		)

	def respondHTML(
		self, html: str | bytes, status: int = 200
	) -> T:
		return self.respond(
			content=html, contentType="text/html; charset=utf-8", status=status
		)

	def respondStream(
		self,
		stream: Iterator[bytes],
		contentType: str,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
	) -> T:
		"""Responds with a lazy stream of chunks. Without a `contentLength`,
		the connection will be closed at the end of the response."""
		return self.respond(
			content=stream,
			contentType=contentType,
			contentLength=contentLength,
			headers=headers,
			status=status,
		)

	def respondEmpty(self, status: int, headers: dict[str, str] | None = None) -> T:
		return self.respond(content=None, status=status, headers=headers)


# EOF
