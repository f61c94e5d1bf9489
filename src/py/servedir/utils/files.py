from pathlib import PurePath
from urllib.parse import quote

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

# Static extension to content type table. We don't use the `mimetypes`
# module as its results depend on the host's configuration.
MIME_TYPES: dict[str, str] = {
	"html": "text/html; charset=utf-8",
	"htm": "text/html; charset=utf-8",
	"css": "text/css; charset=utf-8",
	"js": "application/javascript; charset=utf-8",
	"mjs": "application/javascript; charset=utf-8",
	"json": "application/json; charset=utf-8",
	"xml": "application/xml; charset=utf-8",
	"txt": "text/plain; charset=utf-8",
	"md": "text/markdown; charset=utf-8",
	"csv": "text/csv; charset=utf-8",
	"py": "text/x-python; charset=utf-8",
	"sh": "text/x-shellscript; charset=utf-8",
	"yaml": "application/yaml; charset=utf-8",
	"yml": "application/yaml; charset=utf-8",
	"toml": "application/toml; charset=utf-8",
	"png": "image/png",
	"jpg": "image/jpeg",
	"jpeg": "image/jpeg",
	"gif": "image/gif",
	"webp": "image/webp",
	"svg": "image/svg+xml",
	"ico": "image/x-icon",
	"pdf": "application/pdf",
	"wasm": "application/wasm",
	"zip": "application/zip",
	"tar": "application/x-tar",
	"gz": "application/gzip",
	"bz2": "application/x-bzip2",
	"7z": "application/x-7z-compressed",
	"mp4": "video/mp4",
	"webm": "video/webm",
	"mp3": "audio/mpeg",
	"wav": "audio/wav",
	"ogg": "audio/ogg",
	"woff": "font/woff",
	"woff2": "font/woff2",
	"ttf": "font/ttf",
}

SIZE_UNITS: tuple[str, ...] = ("B", "KB", "MB", "GB", "TB")


def contentType(path: PurePath | str) -> str:
	"""Returns the content type for the given path, based on its last
	extension only."""
	name: str = path.name if isinstance(path, PurePath) else PurePath(path).name
	_, dot, ext = name.rpartition(".")
	# Dotfiles like `.bashrc` have no extension
	if not (dot and _):
		return DEFAULT_CONTENT_TYPE
	return MIME_TYPES.get(ext.lower(), DEFAULT_CONTENT_TYPE)


def formatSize(size: int) -> str:
	"""Formats a size in bytes using binary units, like `1.5 KB`."""
	value: float = float(size)
	unit: int = 0
	while value >= 1024 and unit < len(SIZE_UNITS) - 1:
		value /= 1024
		unit += 1
	return f"{size} {SIZE_UNITS[0]}" if unit == 0 else f"{value:.1f} {SIZE_UNITS[unit]}"


def contentDisposition(name: str, disposition: str = "inline") -> str:
	"""Returns a `Content-Disposition` header value for the given file name,
	with an ASCII fallback and the RFC 5987 UTF-8 encoded name."""
	fallback: str = "".join(
		c if 0x20 <= ord(c) < 0x7F and c not in '"\\' else "_" for c in name
	)
	encoded: str = quote(name, safe="", errors="surrogateescape")
	return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


# EOF
