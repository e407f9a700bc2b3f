"""Exception taxonomy for the evolution pipeline."""


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ProviderUnavailable(PipelineError):
    """A game provider could not be reached or answered with a non-2xx status."""

    def __init__(self, provider: str, reason: str, status_code: int | None = None):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.status_code = status_code


class MalformedRecord(PipelineError):
    """A single provider record could not be normalized into a GameRecord."""


class PredictionRejected(PipelineError):
    """No usable evaluation basis; the game must not be persisted."""

    def __init__(self, game_id: str | None, reason: str):
        super().__init__(reason if game_id is None else f"{game_id}: {reason}")
        self.game_id = game_id
        self.reason = reason


class BatchSetupError(PipelineError):
    """Unrecoverable failure (persistence unreachable, missing credentials)."""
