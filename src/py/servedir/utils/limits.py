from typing import NamedTuple
from enum import Enum
import resource


class LimitType(Enum):
	Files = resource.RLIMIT_NOFILE
	FileSize = resource.RLIMIT_FSIZE


REASONABLE_LIMITS: dict[LimitType, int] = {
	# Each connection and each streamed file holds a descriptor
	LimitType.Files: 10 * 10240,
	LimitType.FileSize: int(1e12),
}


class Limit(NamedTuple):
	type: LimitType
	soft: int
	hard: int


def limit(scope: LimitType) -> Limit:
	return Limit(scope, *resource.getrlimit(scope.value))


def unlimit(
	scope: LimitType, ratio: float = 1.0, *, maximum: int | None = 0
) -> int | bool:
	"""Raises the soft limit for the given scope towards the hard limit,
	capped to a reasonable maximum. Returns the new limit, or `False` when
	it could not be changed."""
	lm = limit(scope)
	if lm.soft == resource.RLIM_INFINITY:
		return lm.soft
	hard: int = lm.hard
	if hard == resource.RLIM_INFINITY:
		hard = REASONABLE_LIMITS.get(scope, lm.soft)
	target = int(lm.soft + ratio * (hard - lm.soft))
	# Darwin has really high limits that will lead to OverflowErrors.
	maximum = REASONABLE_LIMITS.get(scope) if maximum == 0 else maximum
	if maximum:
		target = min(maximum, target)
	if target <= lm.soft:
		return lm.soft
	try:
		resource.setrlimit(scope.value, (target, lm.hard))
		return target
	except (ValueError, OSError):
		return False


# EOF
