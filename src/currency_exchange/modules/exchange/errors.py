from __future__ import annotations

from fastapi import status


class ExchangeError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class Forbidden(ExchangeError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ExchangeError):
    status_code = status.HTTP_404_NOT_FOUND


class CurrencyNotFound(NotFound):
    def __init__(self, code: str) -> None:
        super().__init__(f"Currency {code} not found")
        self.code = code


class DuplicateCode(ExchangeError):
    status_code = status.HTTP_409_CONFLICT


class DuplicateCurrency(DuplicateCode):
    def __init__(self, code: str) -> None:
        super().__init__(f"Currency {code} already exists")
        self.code = code


class InvalidInput(ExchangeError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidAmount(InvalidInput):
    pass


class InactiveCurrency(ExchangeError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, code: str) -> None:
        super().__init__(f"Currency {code} is inactive")
        self.code = code


class ConcurrentModification(ExchangeError):
    status_code = status.HTTP_409_CONFLICT


class Unavailable(ExchangeError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
