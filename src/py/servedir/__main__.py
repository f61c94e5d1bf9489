import argparse
import sys
from typing import Callable

from . import config
from .resolver import ServedRoot
from .server import run
from .services.files import FileService
from .utils.logging import LogLevel, error, info, setLevel


def banner(service: FileService, host: str) -> Callable[[int], None]:
	"""Returns a callback that announces the served directory once the
	server is listening on its port."""

	def announce(port: int) -> None:
		info(
			f"Serving {service.root.path} on http://{host}:{port}/",
			icon="📂",
			Hidden=service.hidden,
			CORS=service.cors.origin if service.cors else None,
		)

	return announce


def main(args: list[str] | None = None) -> int:
	parser = argparse.ArgumentParser(
		prog="servedir",
		description="Serves a local directory over HTTP, for browsing and download",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument(
		"root",
		metavar="ROOT",
		nargs="?",
		default=config.ROOT,
		help="The directory to serve",
	)
	parser.add_argument(
		"portArg",
		metavar="PORT",
		nargs="?",
		type=int,
		default=None,
		help="The port to listen on",
	)
	parser.add_argument(
		"-p",
		"--port",
		action="store",
		dest="port",
		type=int,
		help="Specifies the port, takes precedence over PORT",
		default=None,
	)
	parser.add_argument(
		"-H",
		"--host",
		action="store",
		dest="host",
		help="Specifies the address to bind to",
		default=config.HOST,
	)
	parser.add_argument(
		"--hide-hidden",
		action="store_true",
		dest="hideHidden",
		help="Neither lists nor serves dot-prefixed entries",
		default=not config.SHOW_HIDDEN,
	)
	parser.add_argument(
		"--cors",
		action="store",
		dest="cors",
		metavar="ORIGIN",
		help="The value of the Access-Control-Allow-Origin header",
		default=config.CORS_ORIGIN,
	)
	parser.add_argument(
		"--no-cors",
		action="store_true",
		dest="noCORS",
		help="Disables the CORS headers",
	)
	parser.add_argument(
		"-q",
		"--quiet",
		action="store_true",
		dest="quiet",
		help="Only logs warnings and errors, not requests",
	)
	options = parser.parse_args(args=args)

	if options.quiet:
		setLevel(LogLevel.Warning)
	try:
		root = ServedRoot.Make(options.root)
	except ValueError as e:
		error(str(e), "ROOTERR", Root=options.root)
		return 1
	cors: str = "" if options.noCORS else options.cors
	service = FileService(root.path, hidden=not options.hideHidden, cors=cors)
	port: int = (
		options.port
		if options.port is not None
		else options.portArg
		if options.portArg is not None
		else config.PORT
	)
	try:
		run(
			service,
			host=options.host,
			port=port,
			logRequests=config.LOG_REQUESTS and not options.quiet,
			onReady=banner(service, options.host),
		)
	except OSError:
		# The server already logged why it could not bind
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())

# EOF
