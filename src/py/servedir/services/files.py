from pathlib import Path
from typing import ClassVar

from .. import config
from ..decorators import on
from ..features.cors import CORSPolicy, setCORSHeaders
from ..http.model import HTTPRequest, HTTPResponse
from ..listing import ListingError
from ..model import Service
from ..render import LISTING_FORMATS
from ..resolver import (
	Directory,
	File,
	Rejected,
	Rejection,
	ResolvedTarget,
	ServedRoot,
	resolve,
)
from ..utils.files import contentDisposition
from ..utils.io import iterFile
from ..utils.logging import exception, warning


class FileService(Service):
	"""A service to browse and download files from a local directory. Only
	`GET` and `HEAD` are supported, other methods are answered with a 405."""

	ALLOWED_METHODS: ClassVar[tuple[str, ...]] = ("GET", "HEAD")

	def __init__(
		self,
		root: str | Path | None = None,
		*,
		hidden: bool | None = None,
		cors: str | None = None,
		prefix: str | None = None,
	):
		# The root is canonicalized once, and then only read.
		self.root: ServedRoot = ServedRoot.Make(
			root if root is not None else config.ROOT
		)
		self.hidden: bool = config.SHOW_HIDDEN if hidden is None else hidden
		self.cors: CORSPolicy | None = CORSPolicy.Make(
			config.CORS_ORIGIN if cors is None else cors
		)
		super().__init__(prefix=prefix)

	@on(GET_HEAD=("/", "/{path:any}"))
	def read(self, request: HTTPRequest, path: str = "") -> HTTPResponse:
		return self.handle(request, path)

	@on(priority=-1, ANY=("/", "/{path:any}"))
	def notAllowed(self, request: HTTPRequest, path: str = "") -> HTTPResponse:
		return self.decorate(request.notAllowed(self.ALLOWED_METHODS))

	def decorate(self, response: HTTPResponse) -> HTTPResponse:
		"""Applies the CORS policy, if any, to the response."""
		return setCORSHeaders(response, self.cors) if self.cors else response

	def handle(self, request: HTTPRequest, path: str | None = None) -> HTTPResponse:
		"""Resolves the given path (relative to the mount prefix, defaulting
		to the request's path) and responds with the file, the directory
		listing or the matching error."""
		if request.method not in self.ALLOWED_METHODS:
			return self.decorate(request.notAllowed(self.ALLOWED_METHODS))
		path = request.path if path is None else path
		try:
			target: ResolvedTarget = resolve(self.root, path, hidden=self.hidden)
			response = self.respond(request, target)
		except ListingError as e:
			exception(e, "Directory could not be listed")
			response = request.fail()
		if request.method == "HEAD":
			response.discardBody()
		return self.decorate(response)

	def respond(self, request: HTTPRequest, target: ResolvedTarget) -> HTTPResponse:
		if isinstance(target, File):
			return self.respondFile(request, target)
		elif isinstance(target, Directory):
			return self.respondDirectory(request, target)
		else:
			return self.respondRejected(request, target)

	def respondFile(self, request: HTTPRequest, file: File) -> HTTPResponse:
		headers: dict[str, str] = {"Content-Disposition": contentDisposition(file.name)}
		if request.method == "HEAD":
			return request.respond(
				contentType=file.contentType,
				contentLength=file.size,
				headers=headers,
			)
		try:
			f = open(file.path, "rb")
		except OSError as e:
			exception(e, "File could not be opened")
			return request.fail()
		# The file is closed when the stream is exhausted or closed, and
		# when the response is done with, in case the stream never started.
		return request.respondStream(
			iterFile(f),
			contentType=file.contentType,
			contentLength=file.size,
			headers=headers,
		).onClose(lambda _: f.close())

	def respondDirectory(
		self, request: HTTPRequest, directory: Directory
	) -> HTTPResponse:
		fmt = LISTING_FORMATS.get(
			str(request.param("format", "html")), LISTING_FORMATS["html"]
		)
		return request.respond(
			fmt.render(directory.listing, self.prefix or "/"),
			contentType=fmt.contentType,
		)

	def respondRejected(
		self, request: HTTPRequest, rejected: Rejected
	) -> HTTPResponse:
		if rejected.reason is Rejection.Forbidden:
			# The local path stays in the server logs
			warning(rejected.message, Path=request.path)
		# Bodies are generic, so that no local path is disclosed.
		return request.error(rejected.reason.status)


# EOF
