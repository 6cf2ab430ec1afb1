class ActionError(Exception):
    kind = 'UpstreamFailure'

    def __init__(self, message=None):
        super().__init__(message or self.kind)
        self.message = message or self.kind


class NotAuthenticated(ActionError):
    kind = 'NotAuthenticated'


class UpstreamFailure(ActionError):
    kind = 'UpstreamFailure'


class NotFound(ActionError):
    kind = 'NotFound'


class InvalidInput(ActionError):
    kind = 'InvalidInput'


HTTP_STATUS = {
    NotAuthenticated.kind: 401,
    NotFound.kind: 404,
    InvalidInput.kind: 400,
    UpstreamFailure.kind: 502,
}


def from_store_error(err):
    if err.status == 401:
        return NotAuthenticated(err.message)
    if err.status == 404:
        return NotFound(err.message)
    return UpstreamFailure(err.message)
