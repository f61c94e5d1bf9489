import asyncio
import os
from pathlib import Path

import pytest

from servedir.http.model import HTTPBody, HTTPRequest, HTTPResponse
from servedir.model import Application, mount
from servedir.services.files import FileService
from servedir.utils.io import CHUNK_SIZE
from servedir.utils.json import unjson


def process(app: Application, method: str, uri: str) -> tuple[HTTPResponse, bytes]:
	"""Processes the request and loads the response body, like the server
	would when sending it."""

	async def main() -> tuple[HTTPResponse, bytes]:
		res = await app.process(HTTPRequest.Make(method, uri))
		try:
			return res, await HTTPBody.Load(res.body)
		finally:
			res.close()

	return asyncio.run(main())


@pytest.fixture
def tree(tmp_path: Path) -> Path:
	root = tmp_path / "root"
	(root / "docs").mkdir(parents=True)
	(root / "docs" / "readme.txt").write_text("Hello, World!")
	(root / "big.bin").write_bytes(os.urandom(CHUNK_SIZE * 3 + 7))
	(root / ".env").write_text("SECRET=1")
	(tmp_path / "secret.txt").write_text("secret")
	return root


@pytest.fixture
def app(tree: Path) -> Application:
	return mount(FileService(tree, hidden=True, cors="*"))


def test_empty_root(tmp_path: Path):
	app = mount(FileService(tmp_path, cors=""))
	res, body = process(app, "GET", "/")
	assert res.status == 200
	assert res.contentType == "text/html; charset=utf-8"
	assert b"../" not in body
	assert b"0 entries" in body
	res, body = process(app, "GET", "/?format=json")
	assert unjson(body) == {"path": "/", "parent": None, "entries": []}


def test_listing(app: Application):
	res, body = process(app, "GET", "/docs/")
	assert res.status == 200
	assert b"readme.txt" in body
	assert b'href="/docs/readme.txt"' in body
	assert b"../" in body
	res, body = process(app, "GET", "/docs?format=json")
	assert res.contentType == "application/json"
	data = unjson(body)
	assert data["path"] == "/docs" and data["parent"] == "/"
	assert [_["name"] for _ in data["entries"]] == ["readme.txt"]


def test_file(app: Application, tree: Path):
	res, body = process(app, "GET", "/docs/readme.txt")
	assert res.status == 200
	assert body == b"Hello, World!"
	assert res.contentType == "text/plain; charset=utf-8"
	assert res.contentLength == 13
	assert res.getHeader("Content-Disposition") == (
		"inline; filename=\"readme.txt\"; filename*=UTF-8''readme.txt"
	)
	res, body = process(app, "GET", "/big.bin")
	assert res.contentType == "application/octet-stream"
	assert body == (tree / "big.bin").read_bytes()


def test_file_is_streamed(app: Application, tree: Path):
	async def main() -> list[bytes]:
		res = await app.process(HTTPRequest.Make("GET", "/big.bin"))
		try:
			assert res.body is not None
			return [_ for _ in res.body.stream]
		finally:
			res.close()

	chunks = asyncio.run(main())
	assert len(chunks) == 4
	assert all(len(_) <= CHUNK_SIZE for _ in chunks)


def test_head(app: Application):
	res, body = process(app, "HEAD", "/docs/readme.txt")
	assert res.status == 200
	assert res.body is None and body == b""
	assert res.contentLength == 13
	res, body = process(app, "HEAD", "/docs/")
	assert res.status == 200 and body == b""
	assert res.contentType == "text/html; charset=utf-8"
	assert (res.contentLength or 0) > 0
	res, body = process(app, "HEAD", "/missing")
	assert res.status == 404 and body == b""


def test_not_found(app: Application):
	res, body = process(app, "GET", "/does/not/exist")
	assert res.status == 404
	assert body == b"Not Found"


def test_traversal(app: Application, tree: Path):
	for uri in ("/../secret.txt", "/%2e%2e/secret.txt", "/docs/../../secret.txt"):
		res, body = process(app, "GET", uri)
		assert res.status == 403
		assert body == b"Forbidden"


def test_symlink_escape(app: Application, tree: Path):
	os.symlink(tree.parent / "secret.txt", tree / "link.txt")
	res, body = process(app, "GET", "/link.txt")
	assert res.status == 403
	assert str(tree.parent).encode() not in body
	assert b"secret" not in body


def test_malformed(app: Application):
	res, body = process(app, "GET", "/%zz")
	assert res.status == 400
	assert body == b"Bad Request"


def test_not_allowed(app: Application):
	for method in ("POST", "PUT", "DELETE", "OPTIONS"):
		res, _ = process(app, method, "/docs/readme.txt")
		assert res.status == 405
		assert res.getHeader("Allow") == "GET, HEAD"
		assert res.getHeader("Access-Control-Allow-Origin") == "*"


def test_cors(tree: Path):
	res, _ = process(mount(FileService(tree, cors="*")), "GET", "/missing")
	assert res.getHeader("Access-Control-Allow-Origin") == "*"
	assert res.getHeader("Vary") is None
	res, _ = process(mount(FileService(tree, cors="https://example.com")), "GET", "/")
	assert res.getHeader("Access-Control-Allow-Origin") == "https://example.com"
	assert res.getHeader("Vary") == "Origin"
	res, _ = process(mount(FileService(tree, cors="")), "GET", "/")
	assert res.getHeader("Access-Control-Allow-Origin") is None


def test_hidden(tree: Path):
	app = mount(FileService(tree, hidden=False))
	res, body = process(app, "GET", "/")
	assert b".env" not in body
	res, _ = process(app, "GET", "/.env")
	assert res.status == 404
	res, body = process(mount(FileService(tree, hidden=True)), "GET", "/.env")
	assert res.status == 200 and body == b"SECRET=1"


def test_listing_error(app: Application, tree: Path, monkeypatch: pytest.MonkeyPatch):
	def scandir(path: str) -> None:
		raise PermissionError(13, "Permission denied", path)

	monkeypatch.setattr("servedir.listing.os.scandir", scandir)
	res, body = process(app, "GET", "/docs/")
	assert res.status == 500
	assert body == b"Internal Server Error"
	assert res.getHeader("Access-Control-Allow-Origin") == "*"
	monkeypatch.undo()
	# The server keeps serving
	res, _ = process(app, "GET", "/docs/")
	assert res.status == 200


def test_prefix(tree: Path):
	app = mount(FileService(tree, prefix="/share"))
	res, body = process(app, "GET", "/share/docs/")
	assert res.status == 200
	assert b'href="/share/docs/readme.txt"' in body
	res, body = process(app, "GET", "/share/docs/readme.txt")
	assert body == b"Hello, World!"
	res, _ = process(app, "GET", "/docs/readme.txt")
	assert res.status == 404


def test_prefix_without_slash(tree: Path):
	app = mount(FileService(tree, prefix="/share", cors="*"))
	res, body = process(app, "GET", "/share")
	assert res.status == 200
	assert b'href="/share/docs/"' in body
	res, _ = process(app, "HEAD", "/share")
	assert res.status == 200
	res, _ = process(app, "POST", "/share")
	assert res.status == 405
	# Requests outside of the prefix still get the CORS headers
	res, body = process(app, "GET", "/elsewhere")
	assert res.status == 404 and body == b"Not Found"
	assert res.getHeader("Access-Control-Allow-Origin") == "*"
	res, _ = process(app, "GET", "/sharex")
	assert res.status == 404


def test_non_utf8_name(app: Application, tree: Path):
	with open(os.path.join(os.fsencode(tree), b"caf\xe9.txt"), "wb") as f:
		f.write(b"latin")
	res, body = process(app, "GET", "/")
	assert res.status == 200
	assert b'href="/caf%E9.txt"' in body
	res, body = process(app, "GET", "/caf%E9.txt")
	assert res.status == 200
	assert body == b"latin"
	assert res.getHeader("Content-Disposition") == (
		"inline; filename=\"caf_.txt\"; filename*=UTF-8''caf%E9.txt"
	)


def test_handle(tree: Path):
	service = FileService(tree)
	res = service.handle(HTTPRequest.Make("GET", "/docs/readme.txt"))
	assert res.status == 200
	res.close()
	res = service.handle(HTTPRequest.Make("DELETE", "/docs/readme.txt"))
	assert res.status == 405


# EOF
