from os import getenv


def flag(name: str, default: bool) -> bool:
	value = getenv(name)
	return default if value is None else value.strip().lower() in ("1", "true", "yes", "on")


PORT: int = int(getenv("PORT", 8081))

# The server is meant to share a directory on the local network
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

# The directory that is served, the current one by default
ROOT: str = getenv("SERVEDIR_ROOT", ".")

LOG_REQUESTS: bool = flag("SERVEDIR_LOG_REQUESTS", True)

# Dot-prefixed entries are listed and served unless disabled
SHOW_HIDDEN: bool = flag("SERVEDIR_SHOW_HIDDEN", True)

# The value of `Access-Control-Allow-Origin`, an empty value disables CORS
CORS_ORIGIN: str = getenv("SERVEDIR_CORS", "*")

# EOF
