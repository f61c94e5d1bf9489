import asyncio
import os
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import pytest

from servedir import HTTPRequest, HTTPResponse, Service, on
from servedir.model import Application, mount
from servedir.server import AIOSocketServer, ServerOptions
from servedir.services.files import FileService

T = TypeVar("T")


class Failing(Service):
	@on(priority=1, GET="/boom")
	def boom(self, request: HTTPRequest) -> HTTPResponse:
		raise RuntimeError("Boom")


def serve(app: Application, client: Callable[[int], Awaitable[T]]) -> T:
	"""Runs the server on an ephemeral loopback port for as long as the
	client coroutine runs."""

	async def main() -> T:
		loop = asyncio.get_running_loop()
		ready: asyncio.Future[int] = loop.create_future()
		running: list[bool] = [True]
		server = asyncio.create_task(
			AIOSocketServer.Serve(
				app,
				ServerOptions(
					host="127.0.0.1",
					port=0,
					polling=0.05,
					keepalive=5.0,
					logRequests=False,
					stopSignals=False,
					condition=lambda: running[0],
					onReady=ready.set_result,
				),
			)
		)
		try:
			port = await asyncio.wait_for(ready, timeout=5.0)
			return await asyncio.wait_for(client(port), timeout=30.0)
		finally:
			running[0] = False
			await server

	return asyncio.run(main())


async def fetch(
	port: int, request: bytes
) -> tuple[int, dict[str, str], bytes]:
	"""Sends the raw request and reads the response until the server
	closes the connection."""
	reader, writer = await asyncio.open_connection("127.0.0.1", port)
	try:
		writer.write(request)
		await writer.drain()
		data = await reader.read()
	finally:
		writer.close()
	head, _, body = data.partition(b"\r\n\r\n")
	lines = head.decode("latin-1").split("\r\n")
	headers = dict(_.split(": ", 1) for _ in lines[1:])
	return int(lines[0].split(" ")[1]), headers, body


def get(path: str, method: str = "GET") -> bytes:
	return f"{method} {path} HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n".encode()


@pytest.fixture
def tree(tmp_path: Path) -> Path:
	(tmp_path / "a.bin").write_bytes(b"a" * 3_000_000)
	(tmp_path / "b.bin").write_bytes(os.urandom(3_000_000))
	(tmp_path / "hello.txt").write_text("Hello")
	return tmp_path


def test_concurrent_downloads(tree: Path):
	async def client(port: int) -> list[tuple[int, dict[str, str], bytes]]:
		return await asyncio.gather(
			fetch(port, get("/a.bin")),
			fetch(port, get("/b.bin")),
			fetch(port, get("/")),
		)

	(sa, ha, a), (sb, hb, b), (sl, _, listing) = serve(
		mount(FileService(tree)), client
	)
	assert sa == sb == sl == 200
	assert a == (tree / "a.bin").read_bytes()
	assert b == (tree / "b.bin").read_bytes()
	assert ha["Content-Length"] == hb["Content-Length"] == "3000000"
	assert b"a.bin" in listing and b"b.bin" in listing


def test_keep_alive(tree: Path):
	async def client(port: int) -> list[bytes]:
		reader, writer = await asyncio.open_connection("127.0.0.1", port)
		bodies: list[bytes] = []
		try:
			for _ in range(2):
				writer.write(b"GET /hello.txt HTTP/1.1\r\nHost: localhost\r\n\r\n")
				await writer.drain()
				head = await reader.readuntil(b"\r\n\r\n")
				assert head.startswith(b"HTTP/1.1 200 OK\r\n")
				assert b"Content-Length: 5\r\n" in head
				bodies.append(await reader.readexactly(5))
		finally:
			writer.close()
		return bodies

	assert serve(mount(FileService(tree)), client) == [b"Hello", b"Hello"]


def test_head(tree: Path):
	async def client(port: int) -> tuple[int, dict[str, str], bytes]:
		return await fetch(port, get("/a.bin", "HEAD"))

	status, headers, body = serve(mount(FileService(tree)), client)
	assert status == 200
	assert headers["Content-Length"] == "3000000"
	assert body == b""


def test_bad_request(tree: Path):
	async def client(port: int) -> tuple[int, dict[str, str], bytes]:
		return await fetch(port, b"NOT A REQUEST LINE\r\n\r\n")

	status, headers, body = serve(mount(FileService(tree, cors="*")), client)
	assert status == 400
	assert headers["Connection"] == "close"
	assert headers["Content-Type"] == "text/plain; charset=utf-8"
	assert headers["Access-Control-Allow-Origin"] == "*"
	assert body == b"Bad Request"


def test_errors_are_isolated(tree: Path):
	async def client(port: int) -> list[tuple[int, dict[str, str], bytes]]:
		return [await fetch(port, get(_)) for _ in ("/boom", "/hello.txt")]

	(s0, h0, b0), (s1, _, b1) = serve(
		mount(Failing(), FileService(tree, cors="*")), client
	)
	assert s0 == 500 and b0 == b"Internal Server Error"
	assert h0["Connection"] == "close"
	assert h0["Access-Control-Allow-Origin"] == "*"
	assert s1 == 200 and b1 == b"Hello"


def test_escape_is_forbidden(tree: Path):
	async def client(port: int) -> tuple[int, dict[str, str], bytes]:
		return await fetch(port, get("/../../etc/passwd"))

	status, _, body = serve(mount(FileService(tree)), client)
	assert status == 403
	assert body == b"Forbidden"


# EOF
