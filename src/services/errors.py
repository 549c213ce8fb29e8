"""Exception hierarchy for the storyboard core.

The API layer maps these onto HTTP status codes in one place; services raise
them and never format responses themselves.
"""


class StoryboardError(Exception):
    """Base class for storyboard errors."""

    pass


class EntitlementError(StoryboardError):
    """The caller's plan does not include a paid feature."""

    def __init__(self, feature: str, message: str | None = None):
        self.feature = feature
        super().__init__(message or f"{feature} is not enabled, please upgrade")


class UpstreamServiceError(StoryboardError):
    """An image, vision or speech provider failed or returned nothing."""

    pass


class RecordNotFoundError(StoryboardError):
    """A requested record does not exist."""

    kind = "Record"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"{self.kind} {record_id} not found")


class SceneNotFoundError(RecordNotFoundError):
    kind = "Scene"


class ScriptNotFoundError(RecordNotFoundError):
    kind = "Script"


class VoiceoverNotFoundError(RecordNotFoundError):
    kind = "Voiceover"


class AuthorizationError(StoryboardError):
    """A record exists but belongs to a different user."""

    def __init__(self, kind: str, record_id: str, user_id: str):
        self.kind = kind
        self.record_id = record_id
        self.user_id = user_id
        super().__init__(f"User {user_id} does not own {kind.lower()} {record_id}")
