from enum import Enum


class TokenScope(str, Enum):
    """What a stateful token may be used for.

    A token is only ever accepted by the operation matching its scope, so an
    activation token sent as a bearer credential is rejected like any other
    unknown token.
    """

    activation = "activation"
    authentication = "authentication"


class Permission(str, Enum):
    """Permission codes stored in the ``permissions`` table."""

    movies_read = "movie:read"
    movies_write = "movie:write"


# Granted to every newly registered account
DEFAULT_PERMISSIONS = [Permission.movies_read]
