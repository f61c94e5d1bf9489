from typing import ClassVar, Union, Callable, TypeVar, Any, cast

T = TypeVar("T")


class Annotation:
    """Defines the attributes used by decorators"""

    ON: ClassVar[str] = "_servedir_on"
    ON_PRIORITY: ClassVar[str] = "_servedir_on_priority"

    @staticmethod
    def Meta(scope: Any) -> dict[str, Any]:
        """Returns the dictionary of meta attributes for the given value,
        bound methods share the meta attributes of their function."""
        target = getattr(scope, "__func__", scope)
        if not hasattr(target, "__dict__"):
            raise RuntimeError(f"Metadata cannot be attached to object: {scope}")
        return cast(dict[str, Any], target.__dict__)


def on(
    priority: int = 0, **methods: Union[str, list[str], tuple[str, ...]]
) -> Callable[[T], T]:
    """The @on decorator wraps an existing method and indicates that it will
    be used to process HTTP requests.

    It takes HTTP methods as keyword arguments, each being either a string
    or a list of strings, each describing an URI pattern (see `Route`) that
    when matched, will trigger the method. Methods can be combined with
    an underscore, like `GET_HEAD`, and `ANY` matches any method.

    For instance:

    >    @on(GET_HEAD='/list/{what:string}')

    implies that the wrapped method is like

    >    def listThings( self, request, what ):
    >        ....

    and it must return a response, typically created with
    `request.respond(...)`."""

    def decorator(function: T) -> T:
        meta = Annotation.Meta(function)
        v = meta.setdefault(Annotation.ON, [])
        meta.setdefault(Annotation.ON_PRIORITY, priority)
        for http_methods, url in list(methods.items()):
            urls = (url,) if isinstance(url, str) else url
            for http_method in http_methods.upper().split("_"):
                for _ in urls:
                    v.append((http_method, _))
        return function

    return decorator


# EOF
