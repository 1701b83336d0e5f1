class RoloError(Exception):
    """Base class for errors raised inside rolo."""


class BackendUnavailable(RoloError):
    """A single retrieval backend failed or timed out.

    Raised inside the executor's backend guard and recovered there: the
    failing side contributes an empty result set and the other side carries on.
    """

    def __init__(self, backend: str, cause: BaseException | None = None):
        self.backend = backend
        self.cause = cause
        detail = f": {cause!r}" if cause is not None else ""
        super().__init__(f"{backend} backend unavailable{detail}")


class TotalExecutionFailure(RoloError):
    """Both the requested strategy and the semantic retry failed."""
