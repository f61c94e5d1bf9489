import time
from typing import Callable, NamedTuple
from urllib.parse import quote

from .listing import Entry, Listing
from .utils.files import formatSize
from .utils.htmpl import H, Node, html, raw
from .utils.json import json

# --
# Renderers turn a `Listing` into a response body. They are pure functions
# of the listing: the same listing always renders to the same bytes.

LISTING_CSS: str = """
:root {
    font-family: sans-serif;
    font-size: 14px;
    line-height: 1.35em;
    padding: 20px;
    background: #F0F0F0;
}
h1 {
    margin-top: 1.25em;
    margin-bottom: 1.25em;
    line-height: 1.25em;
    font-size: 1.5em;
}
nav a {
    padding: 0px 2px;
}
table {
    border-collapse: collapse;
    min-width: 50%;
    background: #FFFFFF;
}
th, td {
    text-align: left;
    padding: 6px 16px;
    border-bottom: 1px solid #E0E0E0;
}
td.size, th.size {
    text-align: right;
}
tr.directory td.name a::before {
    content: "\\1F4C1  ";
}
tr.file td.name a::before {
    content: "\\1F4C4  ";
}
a {
    color: #0060C0;
    text-decoration: none;
}
a:hover {
    text-decoration: underline;
}
"""

TIME_FORMAT: str = "%Y-%m-%d %H:%M:%S"


def displayName(name: str) -> str:
	"""Names that are not valid UTF-8 on disk are displayed with
	replacement characters."""
	return name.encode("utf8", "surrogateescape").decode("utf8", "replace")


def href(*path: str, prefix: str = "/", directory: bool = False) -> str:
	"""Returns the absolute, percent-encoded URL for the given path
	segments, mounted at `prefix`."""
	segments: list[str] = [_ for p in (prefix, *path) for _ in p.split("/") if _]
	url: str = "/".join(quote(_, safe="", errors="surrogateescape") for _ in segments)
	return f"/{url}{'/' if directory and url else ''}"


def formatTime(timestamp: float | None) -> str:
	return "-" if timestamp is None else time.strftime(TIME_FORMAT, time.gmtime(timestamp))


def renderEntry(listing: Listing, entry: Entry, prefix: str) -> Node:
	return H.tr(
		H.td(
			H.a(
				displayName(entry.name) + ("/" if entry.isDirectory else ""),
				href=href(listing.path, entry.name, prefix=prefix, directory=entry.isDirectory),
			),
			_="name",
		),
		H.td("Directory" if entry.isDirectory else "File", _="type"),
		H.td("-" if entry.size is None else formatSize(entry.size), _="size"),
		H.td(formatTime(entry.updatedAt), _="modified"),
		_="directory" if entry.isDirectory else "file",
	)


def renderBreadcrumbs(listing: Listing, prefix: str) -> Node:
	segments: list[str] = [_ for _ in listing.path.split("/") if _]
	crumbs: list[Node | str] = [H.a("/", href=href(prefix=prefix, directory=True))]
	for i, segment in enumerate(segments):
		crumbs.append(
			H.a(displayName(segment), href=href(*segments[: i + 1], prefix=prefix, directory=True))
		)
		crumbs.append("/")
	return H.nav(*crumbs)


def renderHTML(listing: Listing, *, prefix: str = "/") -> bytes:
	"""Renders the listing as a self-contained HTML document."""
	rows: list[Node] = []
	if listing.parent is not None:
		rows.append(
			H.tr(
				H.td(
					H.a("../", href=href(listing.parent, prefix=prefix, directory=True)),
					_="name",
				),
				H.td("Directory", _="type"),
				H.td("-", _="size"),
				H.td("-", _="modified"),
				_="directory parent",
			)
		)
	rows += [renderEntry(listing, _, prefix) for _ in listing.entries]
	title: str = f"Index of {displayName(listing.path)}"
	return "".join(
		html(
			H.html(
				H.head(
					H.meta(charset="utf-8"),
					H.meta(
						name="viewport",
						content="width=device-width, initial-scale=1.0",
					),
					H.title(title),
					H.style(raw(LISTING_CSS)),
				),
				H.body(
					H.h1(title),
					renderBreadcrumbs(listing, prefix),
					H.table(
						H.thead(
							H.tr(
								H.th("Name"),
								H.th("Type"),
								H.th("Size", _="size"),
								H.th("Modified"),
							)
						),
						H.tbody(*rows),
					),
					H.p(
						H.small(
							f"{len(listing.entries)} entr{'y' if len(listing.entries) == 1 else 'ies'}"
						)
					),
				),
				lang="en",
			),
			doctype="html",
		)
	).encode("utf8")


def renderJSON(listing: Listing) -> bytes:
	"""Renders the listing as a JSON document."""
	return json(
		{
			"path": listing.path,
			"parent": listing.parent,
			"entries": [
				{
					"name": _.name,
					"type": "directory" if _.isDirectory else "file",
					"size": _.size,
					"updatedAt": _.updatedAt,
				}
				for _ in listing.entries
			],
		}
	)


class ListingFormat(NamedTuple):
	contentType: str
	render: Callable[[Listing, str], bytes]


LISTING_FORMATS: dict[str, ListingFormat] = {
	"html": ListingFormat(
		"text/html; charset=utf-8", lambda listing, prefix: renderHTML(listing, prefix=prefix)
	),
	"json": ListingFormat("application/json", lambda listing, prefix: renderJSON(listing)),
}


# EOF
