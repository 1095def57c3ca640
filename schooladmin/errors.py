"""Error taxonomy and the JSON envelope shared by every route."""
from flask import jsonify


class ApiError(Exception):
    """A failure that maps straight onto an HTTP status and envelope.

    Extra keyword arguments (``required``, ``details``, ``message``) are copied
    into the response body next to ``error``.
    """

    status = 500

    def __init__(self, error, status=None, **extra):
        super().__init__(error)
        self.error = error
        if status is not None:
            self.status = status
        self.extra = {key: value for key, value in extra.items() if value is not None}

    def to_dict(self):
        payload = {'success': False, 'error': self.error}
        payload.update(self.extra)
        return payload


class ValidationError(ApiError):
    status = 400


class Unauthorized(ApiError):
    status = 401


class Forbidden(ApiError):
    status = 403


class NotFound(ApiError):
    status = 404


class Conflict(ApiError):
    status = 409


def ok(data=None, message=None, status=200, pagination=None):
    payload = {'success': True}
    if message:
        payload['message'] = message
    if data is not None:
        payload['data'] = data
    if pagination is not None:
        payload['pagination'] = pagination
    return jsonify(payload), status


def fail(status, error, **extra):
    return jsonify(ApiError(error, status=status, **extra).to_dict()), status
