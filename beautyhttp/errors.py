"""Exceptions that a route handler raises to answer with an HTTP error status."""

from __future__ import annotations

from http import HTTPStatus


class HttpError(Exception):
    """Base of all HTTP errors; ``status`` is the response status to send."""

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ClientError(HttpError):
    """A 4xx error."""

    status = HTTPStatus.BAD_REQUEST


class ServerError(HttpError):
    """A 5xx error."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR


class BadRequest(ClientError):
    status = HTTPStatus.BAD_REQUEST


class Unauthorized(ClientError):
    status = HTTPStatus.UNAUTHORIZED


class Forbidden(ClientError):
    status = HTTPStatus.FORBIDDEN


class InternalServerError(ServerError):
    status = HTTPStatus.INTERNAL_SERVER_ERROR


class NotImplementedStatus(ServerError):
    status = HTTPStatus.NOT_IMPLEMENTED


class BadGateway(ServerError):
    status = HTTPStatus.BAD_GATEWAY


class ServiceUnavailable(ServerError):
    status = HTTPStatus.SERVICE_UNAVAILABLE