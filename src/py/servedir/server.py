import asyncio
import socket
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, Callable, NamedTuple

from .config import HOST, LOG_REQUESTS, PORT
from .http.model import (
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .utils.limits import LimitType, unlimit
from .utils.logging import (
	LogLevel,
	debug,
	error,
	event,
	exception,
	info,
	logged,
	warning,
)


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8081
	backlog: int = 1_024
	# This is the polling timeout for accepting new requests, so that the
	# condition and the state are checked regularly.
	polling: float = 1.0
	readsize: int = 4_096
	# Idle connections are closed after that many seconds
	keepalive: float = 60.0
	logRequests: bool = True
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True
	# Called with the bound port once the server is listening
	onReady: Callable[[int], None] | None = None


OPTIONS: ServerOptions = ServerOptions()


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with AIO sockets."""

	__slots__ = ["client", "loop"]

	def __init__(
		self,
		client: "socket.socket",
		loop: asyncio.AbstractEventLoop,
	) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(self, chunk: bytes) -> bool:
		# This suspends until the chunk is sent, so a slow client only
		# slows down its own transfer.
		await self.loop.sock_sendall(self.client, chunk)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly, with one task per
	connection."""

	@classmethod
	async def OnRequest(
		cls,
		app: Application,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		"""Asynchronous worker, processing the requests of a connection in
		the context of an application, until the connection is to be
		closed."""
		size: int = options.readsize
		buffer = bytearray(size)
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		req_count: int = 0
		res_count: int = 0
		try:
			parser: HTTPParser = HTTPParser()
			writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)
			while keep_alive:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=options.keepalive,
					)
				except TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				# NOTE: With HTTP pipelining, we may receive more than one
				# request in the same payload.
				for atom in parser.feed(bytes(buffer[:n])):
					if atom is HTTPProcessingStatus.BadFormat:
						status = atom
						warning("Malformed request", Client=f"{id(client):x}")
						res = app.error(400)
						await writer.write(res.head())
						await writer.write(res.body)
						keep_alive = False
						break
					elif isinstance(atom, HTTPRequest):
						req_count += 1
						res = await cls.SendResponse(atom, app, writer, options)
						res_count += 1
						if (
							res.shouldClose
							or res.getHeader("Connection") == "close"
							or not atom.keepAlive
						):
							keep_alive = False
							break
			if status is HTTPProcessingStatus.Timeout and req_count != res_count:
				warning(
					"Client timed out",
					Status=status.name,
					Requests=req_count,
					Responses=res_count,
				)
		except (BrokenPipeError, ConnectionResetError):
			# Client did an early close
			debug("Client closed the connection", Client=f"{id(client):x}")
		except Exception as e:
			exception(e)
		finally:
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		app: Application,
		writer: HTTPBodyWriter,
		options: ServerOptions = OPTIONS,
	) -> HTTPResponse:
		"""Processes the request within the application and sends a
		response using the given writer. Exceptions raised while processing
		are logged and answered with a 500, connection errors propagate
		once the response's resources are released."""
		req: HTTPRequest = request
		res: HTTPResponse
		try:
			res = await app.process(req)
		except Exception as e:
			exception(e, f"Could not process request {req.method} {req.path}")
			res = app.error(500)
		try:
			await writer.write(res.head())
			# The body is never sent in response to a `HEAD`.
			if req.method == "HEAD":
				res.discardBody()
			else:
				await writer.write(res.body)
		finally:
			res.close()
			if req._onClose:
				try:
					req._onClose(req)
				except Exception as e:
					# NOTE: close handler failed
					exception(e)
		if options.logRequests:
			event(
				req.method,
				req.path,
				Status=res.status,
			)
		return res

	@classmethod
	async def Serve(
		cls,
		app: Application,
		options: ServerOptions = OPTIONS,
	) -> None:
		"""Main server coroutine."""
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		try:
			server.bind((options.host, options.port))
		except OSError as e:
			server.close()
			error(
				f"Unable to bind to {options.host}:{options.port}, aborting.",
				"HOSTPORTERR",
			)
			raise e from e
		# The port may be ephemeral (port 0)
		port: int = server.getsockname()[1]

		# The argument is the backlog of connections that will be accepted before
		# they are refused.
		server.listen(options.backlog)
		# This is what we need to use it with asyncio
		server.setblocking(False)

		tasks: set[asyncio.Task[None]] = set()
		loop = asyncio.get_running_loop()

		# Manage server state
		state = ServerState()
		# Signal handlers can only be registered from the main thread.
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, lambda: state.stop())
			loop.add_signal_handler(SIGTERM, lambda: state.stop())
		loop.set_exception_handler(state.onException)

		info(
			"Server listening",
			icon="🚀",
			Host=options.host,
			Port=port,
		)
		await app.start()
		if options.onReady:
			options.onReady(port)

		try:
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
				except TimeoutError:
					continue
				except OSError as e:
					# This can be: [OSError] [Errno 24] Too many open files
					if e.errno == 24:
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				client.setblocking(False)
				logged(LogLevel.Debug) and debug(
					"Accepted connection", Client=f"{id(client):x}"
				)
				task = loop.create_task(
					cls.OnRequest(app, client, loop=loop, options=options)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)
			await app.stop()


def run(
	*components: Application | Service,
	host: str = HOST,
	port: int = PORT,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	polling: float = OPTIONS.polling,
	logRequests: bool = LOG_REQUESTS,
	keepalive: float = OPTIONS.keepalive,
	onReady: Callable[[int], None] | None = None,
) -> None:
	"""High level function to run the server."""
	unlimit(LimitType.Files)
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
		onReady=onReady,
	)
	app = mount(*components)
	try:
		asyncio.run(AIOSocketServer.Serve(app, options))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
