# discount_engine/core/errors.py


class DiscountError(Exception):
    """Base error for the discount engine. `type` names the error kind."""

    type = "unknown_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidDataError(DiscountError):
    type = "invalid_data"


class NotFoundError(DiscountError):
    type = "not_found"


class NotAllowedError(DiscountError):
    type = "not_allowed"


class DuplicateError(DiscountError):
    type = "duplicate_error"
