# Overview: Typed failures raised by the ledger services and mapped to HTTP status codes by the routes.

from ..validation import ValidationError, ConflictError


class NotFoundError(LookupError):
    """A sale, product, register or supplier referenced by id does not exist."""


class InvalidQuantityError(ValidationError):
    """Non-positive reposicion, zero ajuste, or a sale line with a bad quantity."""


class InvalidAmountError(ValidationError):
    """Non-positive amount on a cash movement or a register close."""


class RegisterAlreadyOpenError(ConflictError):
    """Another cash register session is already open."""


class RegisterAlreadyClosedError(ConflictError):
    """The register session was closed before."""


class RegisterNotOpenError(ConflictError):
    """Cash movements can only be posted to an open session."""


def error_status(exc: Exception) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    return 400
