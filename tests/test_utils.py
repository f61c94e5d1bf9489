import asyncio
from pathlib import Path
from typing import Iterator

import pytest

from servedir.features.cors import CORSPolicy, setCORSHeaders
from servedir.http.model import (
	HEADER_NAMES_CACHE,
	HTTPBodyBuffer,
	HTTPBodyStream,
	HTTPRequest,
	HTTPResponse,
	headername,
)
from servedir.utils import logging
from servedir.utils.htmpl import H, html, raw
from servedir.utils.io import iterFile
from servedir.utils.limits import LimitType, limit, unlimit


def test_iter_file(tmp_path: Path):
	path = tmp_path / "data"
	path.write_bytes(b"0123456789")
	assert list(iterFile(path, 4)) == [b"0123", b"4567", b"89"]
	with open(path, "rb") as f:
		chunks = iterFile(f, 3)
		assert next(chunks) == b"012"
		# Closing the generator releases the file
		chunks.close()
		assert f.closed


def test_headername():
	assert headername("content-length") == "Content-Length"
	assert headername("X-FORWARDED-FOR") == "X-Forwarded-For"
	# Names sent by clients do not grow the cache without bound
	for i in range(HEADER_NAMES_CACHE * 4):
		headername(f"x-custom-{i}")
	assert headername.cache_info().currsize <= HEADER_NAMES_CACHE
	assert headername("x-custom-0") == "X-Custom-0"


def test_response_head():
	res = HTTPRequest.Make("GET", "/").respond(
		"Hello", contentType="text/plain", headers={"x-extra": "1"}
	)
	assert res.head() == (
		b"HTTP/1.1 200 OK\r\n"
		b"Content-Type: text/plain\r\n"
		b"Content-Length: 5\r\n"
		b"X-Extra: 1\r\n"
		b"\r\n"
	)
	stream = HTTPResponse.Create(iter([b"a"]), contentType="text/plain")
	assert stream.shouldClose
	assert b"Connection: close\r\n" in stream.head()


def test_writer_closes_stream():
	closed: list[bool] = []

	def chunks() -> Iterator[bytes]:
		try:
			yield b"first"
			yield b"second"
		finally:
			closed.append(True)

	class FailingWriter(HTTPBodyBuffer):
		async def _writeBytes(self, chunk: bytes) -> bool:
			await super()._writeBytes(chunk)
			raise BrokenPipeError()

	writer = FailingWriter()
	with pytest.raises(BrokenPipeError):
		asyncio.run(writer.write(HTTPBodyStream(chunks())))
	assert closed == [True]
	assert bytes(writer.data) == b"first"

	writer = HTTPBodyBuffer()
	assert asyncio.run(writer.write(HTTPBodyStream(chunks())))
	assert bytes(writer.data) == b"firstsecond" and writer.written == 11


def test_response_close():
	calls: list[HTTPResponse] = []
	res = HTTPResponse.Create(b"x").onClose(calls.append)
	res.close()
	res.close()
	assert calls == [res]


def test_cors():
	assert CORSPolicy.Make("") is None
	assert CORSPolicy.Make(None) is None
	assert CORSPolicy.Make(" * ") == CORSPolicy("*")
	res = setCORSHeaders(HTTPResponse.Create(b"x"))
	assert res.getHeader("Access-Control-Allow-Origin") == "*"
	assert res.getHeader("Access-Control-Allow-Methods") == "GET, HEAD"


def test_htmpl():
	node = H.a("<b>", href='"quoted"', _="link", hidden=True, disabled=False)
	assert str(node) == '<a href="&quot;quoted&quot;" class="link" hidden>&lt;b&gt;</a>'
	assert str(H.meta(charset="utf-8")) == '<meta charset="utf-8">'
	assert str(H.style(raw("a > b {}"))) == "<style>a > b {}</style>"
	assert "".join(html(H.p("x"), doctype="html")) == "<!DOCTYPE html>\n<p>x</p>"
	with pytest.raises(AttributeError):
		H.blink


def test_logging(capsys: pytest.CaptureFixture[str]):
	previous = logging.LOG_LEVEL
	try:
		logging.setLevel("info")
		logging.debug("Not shown")
		logging.info("Served", Path="/a b", Size=12)
		logging.event("GET", "/", Status=200)
		logging.setLevel(logging.LogLevel.Warning)
		logging.info("Not shown either")
		assert not logging.logged(logging.LogLevel.Info)
		assert logging.logged(logging.LogLevel.Error)
	finally:
		logging.setLevel(previous)
	err = capsys.readouterr().err
	assert "Not shown" not in err
	assert "[servedir]" in err
	assert "Served" in err and "'/a b'" in err and "12" in err
	assert "GET" in err and "200" in err


def test_log_exception(capsys: pytest.CaptureFixture[str]):
	try:
		raise ValueError("Oops")
	except ValueError as e:
		logging.exception(e, "Failed")
	err = capsys.readouterr().err
	assert "Failed: [ValueError] Oops" in err
	assert "test_log_exception" in err


def test_parse_level():
	assert logging.parseLevel("DEBUG") is logging.LogLevel.Debug
	assert logging.parseLevel("nope") is logging.LogLevel.Info
	assert logging.parseLevel(None, logging.LogLevel.Error) is logging.LogLevel.Error


def test_limits():
	before = limit(LimitType.Files)
	after = unlimit(LimitType.Files, maximum=before.soft)
	assert after == before.soft or after is False
	assert limit(LimitType.Files).soft == before.soft


# EOF
