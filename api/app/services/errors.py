class MatchingError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(MatchingError):
    status_code = 400


class NotFoundError(MatchingError):
    status_code = 404


class PersistenceConflict(MatchingError):
    """A pair is already recorded. RunMatching treats this as a skip."""

    status_code = 409


class UpstreamStoreError(MatchingError):
    status_code = 503
