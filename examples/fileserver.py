"""
Shared Folder Example

This mounts two directories under their own prefixes, along with a small
service that reports what is shared.
Features shown:
- Mounting `FileService` under a prefix
- Hiding dot-prefixed entries
- A CORS policy restricted to one origin
- Listing directories as JSON with `?format=json`

Usage:
    python fileserver.py [PUBLIC] [PRIVATE]

Test with:
    curl http://localhost:8081/public/
    curl http://localhost:8081/public/?format=json
    curl -I http://localhost:8081/private/
"""

import sys

from servedir import HTTPRequest, HTTPResponse, Service, on, run
from servedir.services.files import FileService
from servedir.utils.logging import info


class Shares(Service):
	def __init__(self, *shares: FileService):
		super().__init__()
		self.shares = shares

	@on(GET_HEAD="/")
	def index(self, request: HTTPRequest) -> HTTPResponse:
		return request.returns(
			[{"prefix": _.prefix, "hidden": _.hidden} for _ in self.shares]
		)


if __name__ == "__main__":
	public = FileService(
		sys.argv[1] if len(sys.argv) > 1 else ".", prefix="/public", hidden=False
	)
	private = FileService(
		sys.argv[2] if len(sys.argv) > 2 else ".",
		prefix="/private",
		cors="http://localhost:3000",
	)
	info("Sharing folders", Public=public.root.path, Private=private.root.path)
	run(Shares(public, private), public, private)

# EOF
