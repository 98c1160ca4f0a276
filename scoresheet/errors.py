class ScoresheetError(Exception):
    """Base class for errors the API reports to callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ScoresheetError):
    """Bad input: missing fields, bad column config, non-numeric score, ..."""

    status_code = 400


class NoCriteriaError(ValidationError):
    """A grade was requested but the subject has no grading criteria."""


class NotFoundError(ScoresheetError):
    status_code = 404


class SessionNotFoundError(NotFoundError):
    """Missing, unknown or expired session. Reported as 401 and clears the cookie."""

    status_code = 401


class AuthFailure(ScoresheetError):
    """Bad credentials. Unknown users get the same message on purpose."""

    status_code = 401


class PersistenceError(ScoresheetError):
    status_code = 500
