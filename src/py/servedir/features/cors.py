from typing import NamedTuple
from ..http.model import HTTPResponse

# SEE: http://stackoverflow.com/questions/16386148/why-browser-do-not-follow-redirects-using-xmlhttprequest-and-cors/20854800#20854800


class CORSPolicy(NamedTuple):
	"""The CORS headers applied uniformly to every response of a service."""

	origin: str = "*"
	headers: tuple[str, ...] = ()
	methods: tuple[str, ...] = ("GET", "HEAD")

	@staticmethod
	def Make(origin: str | None) -> "CORSPolicy | None":
		"""Returns a policy for the given origin, or `None` (no CORS headers)
		when the origin is empty."""
		origin = origin.strip() if origin else None
		return CORSPolicy(origin) if origin else None


def setCORSHeaders(
	response: HTTPResponse,
	policy: CORSPolicy = CORSPolicy(),
) -> HTTPResponse:
	"""Returns the given response with the CORS headers set from the policy.

	See <https://en.wikipedia.org/wiki/Cross-origin_resource_sharing>
	"""
	response.setHeaders(
		{
			"Access-Control-Allow-Origin": policy.origin,
			"Access-Control-Allow-Headers": ",".join(policy.headers)
			if policy.headers
			else "*",
			"Access-Control-Allow-Methods": ", ".join(policy.methods),
		}
	)
	# A specific origin means the response varies with the request's origin
	if policy.origin != "*":
		response.setHeader("Vary", "Origin")
	return response


# EOF
