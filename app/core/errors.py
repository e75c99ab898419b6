"""Domain exceptions raised by services and translated by routers."""


class NotFoundError(LookupError):
    """A requested entity does not exist or is not owned by the user."""


class InvalidRequestError(ValueError):
    """The request cannot be processed with the given input."""
