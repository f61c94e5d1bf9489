import asyncio

import pytest

from servedir import HTTPRequest, HTTPRequestError, HTTPResponse, Service, on
from servedir.model import mount
from servedir.routing import Dispatcher, Handler, ParameterChunk, Route, TextChunk

# Routes, with the paths they match and the paths they don't
ROUTES: dict[str, tuple[list[str], list[str]]] = {
	"/post": (["/post"], ["", "/post/", "post", "/poster"]),
	"/post/": (["/post/"], ["", "/post", "/poster/"]),
	"/post/{id}": (["/post/a", "/post/a-b_1"], ["/post/", "/post/a/", "/post/a.b"]),
	"/post/{id:digits}": (["/post/1", "/post/42"], ["/post/a", "/post/-1"]),
	"/files/{path:any}": (["/files/", "/files/a/b%20c"], ["/file", "/files"]),
	"/a.b/{name:segment}": (["/a.b/x y"], ["/axb/x", "/a.b/x/y"]),
}


@pytest.mark.parametrize("route", list(ROUTES))
def test_route_match(route: str):
	ok, not_ok = ROUTES[route]
	r = Route(route)
	for path in ok:
		assert r.match(path) is not None, f"{route} should match {path}"
	for path in not_ok:
		assert r.match(path) is None, f"{route} should not match {path}"


def test_route_parse():
	assert Route.Parse("/post/{id:digits}/") == [
		TextChunk("/post/"),
		ParameterChunk("id", Route.PATTERNS["digits"]),
		TextChunk("/"),
	]
	assert Route("/post/{id:digits}").match("/post/42") == {"id": 42}
	with pytest.raises(ValueError):
		Route.Parse("/{id:unknown}")


class Items(Service):
	@on(GET_HEAD="/items/{name}")
	def item(self, request: HTTPRequest, name: str) -> HTTPResponse:
		return request.respond(name, contentType="text/plain")

	@on(priority=1, GET="/items/special")
	def special(self, request: HTTPRequest) -> HTTPResponse:
		return request.respond("special", contentType="text/plain")

	@on(GET="/missing/{name}")
	async def missing(self, request: HTTPRequest, name: str) -> HTTPResponse:
		raise HTTPRequestError(f"No such item: {name}", status=404)

	@on(priority=-1, ANY="/items/{name}")
	def fallback(self, request: HTTPRequest, name: str) -> HTTPResponse:
		return request.notAllowed(("GET", "HEAD"))

	@property
	def notAHandler(self) -> str:
		raise AssertionError("Properties must not be evaluated")


def test_handlers():
	service = Items()
	assert sorted(_.functor.__name__ for _ in service.handlers) == [
		"fallback",
		"item",
		"missing",
		"special",
	]
	assert Handler.Has(Items.item)
	assert not Handler.Has(Items.__init__)


def test_dispatch():
	dispatcher = Dispatcher()
	for handler in Items().handlers:
		dispatcher.register(handler, "/api")
	route, params = dispatcher.match("GET", "/api/items/thing")
	assert route and route.handler and route.handler.functor.__name__ == "item"
	assert params == {"name": "thing"}
	route, _ = dispatcher.match("GET", "/api/items/special")
	assert route and route.handler and route.handler.functor.__name__ == "special"
	route, _ = dispatcher.match("HEAD", "/api/items/special")
	assert route and route.handler and route.handler.functor.__name__ == "item"
	route, _ = dispatcher.match("DELETE", "/api/items/thing")
	assert route and route.handler and route.handler.functor.__name__ == "fallback"
	assert dispatcher.match("GET", "/items/thing") == (None, None)


class Tree(Service):
	@on(GET=("/", "/{path:any}"))
	def read(self, request: HTTPRequest, path: str = "") -> HTTPResponse:
		return request.respond(path or "root")


def test_dispatch_bare_prefix():
	dispatcher = Dispatcher()
	for handler in Tree().handlers:
		dispatcher.register(handler, "/share/")
	for path in ("/share", "/share/"):
		route, params = dispatcher.match("GET", path)
		assert route and route.handler and params == {}
	route, params = dispatcher.match("GET", "/share/a/b")
	assert route and params == {"path": "a/b"}
	assert dispatcher.match("GET", "/sharex") == (None, None)
	# Without a prefix, only the root is registered
	dispatcher = Dispatcher()
	for handler in Tree().handlers:
		dispatcher.register(handler)
	assert [_.text for _ in dispatcher.routes["GET"]] == ["/", "/{path:any}"]


def test_application():
	app = mount(Items())

	async def main() -> list[HTTPResponse]:
		return [
			await app.process(HTTPRequest.Make(method, path))
			for method, path in (
				("GET", "/items/thing"),
				("GET", "/missing/thing"),
				("PUT", "/items/thing"),
				("GET", "/nowhere"),
			)
		]

	ok, missing, not_allowed, not_found = asyncio.run(main())
	assert ok.status == 200 and ok.contentLength == 5
	assert missing.status == 404
	assert not_allowed.status == 405 and not_allowed.getHeader("Allow") == "GET, HEAD"
	assert not_found.status == 404


def test_mount_twice():
	service = Items()
	app = mount(service)
	assert service.isMounted and service.app is app
	with pytest.raises(RuntimeError):
		app.mount(service)


# EOF
