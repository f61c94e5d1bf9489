from typing import Optional, Iterable, ClassVar

from .routing import Handler, Dispatcher
from .features.cors import CORSPolicy, setCORSHeaders
from .http.model import HTTPRequest, HTTPResponse
from .http.status import HTTP_STATUS
from .utils.logging import debug

# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class Service:
    PREFIX: ClassVar[str] = ""
    # The CORS policy of the service, adopted by the application for the
    # responses that no service produces.
    cors: Optional[CORSPolicy] = None

    def __init__(
        self, name: Optional[str] = None, *, prefix: str | None = None
    ) -> None:
        self.name: str = name or self.__class__.__name__
        self.app: Optional[Application] = None
        self.prefix = prefix or self.PREFIX
        self._handlers: Optional[list[Handler]] = None
        self.init()

    def init(self) -> None:
        pass

    async def start(self) -> None:
        """Can be overridden to do asynchronous pre-start work"""
        pass

    async def stop(self) -> None:
        """Can be overridden to do asynchronous post-stop work"""
        pass

    @property
    def isMounted(self) -> bool:
        return self.app is not None

    @property
    def handlers(self) -> list[Handler]:
        if self._handlers is None:
            self._handlers = list(self.iterHandlers())
        return self._handlers

    def iterHandlers(self) -> Iterable[Handler]:
        # We look up the class attributes, so that properties are not
        # evaluated.
        cls = type(self)
        for name in dir(cls):
            if Handler.Has(getattr(cls, name, None)):
                handler = Handler.Get(getattr(self, name))
                if handler:
                    yield handler

    def __repr__(self) -> str:
        return f"(Service {self.name}{' :mounted' if self.isMounted else ''})"


# -----------------------------------------------------------------------------
#
# APPLICATION
#
# -----------------------------------------------------------------------------


class Application:
    def __init__(
        self,
        services: list[Service] | None = None,
        *,
        cors: Optional[CORSPolicy] = None,
    ) -> None:
        self.dispatcher: Dispatcher = Dispatcher()
        self.cors: Optional[CORSPolicy] = cors
        self.services: list[Service] = []
        for service in services or ():
            self.mount(service)

    async def start(self) -> "Application":
        for srv in self.services:
            await srv.start()
        return self

    async def stop(self) -> "Application":
        for srv in self.services:
            await srv.stop()
        return self

    async def process(self, request: HTTPRequest) -> HTTPResponse:
        route, params = self.dispatcher.match(
            request.method or "GET", request.path or "/"
        )
        if route and route.handler:
            return await route.handler(request, params or {})
        else:
            debug("No route found", Method=request.method, Path=request.path)
            return self.decorate(request.notFound())

    def decorate(self, response: HTTPResponse) -> HTTPResponse:
        return setCORSHeaders(response, self.cors) if self.cors else response

    def error(self, status: int) -> HTTPResponse:
        """Creates the response sent by the server when no request can be
        processed, after which the connection is closed."""
        message: str = HTTP_STATUS.get(status, "Server Error")
        return self.decorate(
            HTTPResponse.Create(
                message,
                contentType="text/plain; charset=utf-8",
                headers={"Connection": "close"},
                status=status,
                message=message,
            )
        )

    def mount(self, service: Service, prefix: Optional[str] = None) -> Service:
        if service.isMounted:
            raise RuntimeError(
                f"Cannot mount service, it is already mounted: {service}"
            )
        for handler in service.handlers:
            self.dispatcher.register(handler, prefix or service.prefix)
        service.app = self
        if self.cors is None:
            self.cors = service.cors
        self.services.append(service)
        return service


def mount(*components: Application | Service) -> Application:
    """Mounts the given services into an application, which is either
    the first given application or a new one."""
    apps: list[Application] = [_ for _ in components if isinstance(_, Application)]
    app: Application = apps[0] if apps else Application()
    for item in components:
        if isinstance(item, Service):
            app.mount(item)
        elif not isinstance(item, Application):
            raise RuntimeError(f"Unsupported component type {type(item)}: {item}")
    return app


# EOF
