import pytest

from beautyhttp.errors import (
    BadGateway,
    BadRequest,
    ClientError,
    Forbidden,
    HttpError,
    InternalServerError,
    NotImplementedStatus,
    ServerError,
    ServiceUnavailable,
    Unauthorized,
)


def test_empty_exception():
    ex = HttpError()
    assert ex.message == ""
    assert str(ex) == ""


@pytest.mark.parametrize(
    "cls, base, code",
    [
        (BadRequest, ClientError, 400),
        (Unauthorized, ClientError, 401),
        (Forbidden, ClientError, 403),
        (InternalServerError, ServerError, 500),
        (NotImplementedStatus, ServerError, 501),
        (BadGateway, ServerError, 502),
        (ServiceUnavailable, ServerError, 503),
    ],
)
def test_status_codes_and_hierarchy(cls, base, code):
    ex = cls("message")
    assert ex.status == code
    assert issubclass(cls, base)
    assert issubclass(cls, HttpError)


def test_raise_and_catch_by_base():
    error = BadRequest("This is a bad request")
    assert error.message == "This is a bad request"
    assert error.status == 400
    with pytest.raises(ClientError) as info:
        raise error
    assert info.value.message == "This is a bad request"