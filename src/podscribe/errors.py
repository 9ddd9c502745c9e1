class ScribeError(Exception):
    pass


class TranscriptionError(ScribeError):
    pass


class TransientBackendError(ScribeError):
    """Rate limit or 5xx from a backend without an SDK error type of its own."""


class UnsupportedInputError(ScribeError):
    pass


class AllEnginesFailedError(ScribeError):
    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        details = "; ".join(f"{code}: {message}" for code, message in self.errors.items())
        super().__init__(f"All engines failed: {details}")


class ReconciliationError(ScribeError):
    pass


class EmptyOutputError(ReconciliationError):
    pass


class MediaError(ScribeError):
    pass


class UnknownEngineError(ValueError):
    pass
