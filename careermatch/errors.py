"""
Error types for CareerMatch.
"""

from typing import List, Optional


class CareerMatchError(Exception):
    """Base class for all CareerMatch errors."""
    pass


class ProviderUnavailable(CareerMatchError):
    """The embedding provider could not be reached or returned a server error."""
    pass


class ProviderRateLimited(CareerMatchError):
    """The embedding provider rejected the request with a rate limit."""
    pass


class EmbeddingGenerationFailed(CareerMatchError):
    """An embedding could not be produced for an entity."""

    def __init__(self, message: str, entity_kind: Optional[str] = None,
                 entity_id: Optional[int] = None):
        super().__init__(message)
        self.entity_kind = entity_kind
        self.entity_id = entity_id


class DimensionMismatch(CareerMatchError):
    """Two vectors of different dimensionality were compared."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vector dimension mismatch: {left} vs {right}")
        self.left = left
        self.right = right


class ProfileNotFound(CareerMatchError):
    """No profile exists with the given id."""

    def __init__(self, profile_id: int):
        super().__init__(f"Profile {profile_id} not found")
        self.profile_id = profile_id


class NoActiveProfile(CareerMatchError):
    """The user has no active profile."""

    def __init__(self, user_id: str):
        super().__init__(f"No active profile found for user {user_id}")
        self.user_id = user_id


class ProfileEmbeddingMissing(CareerMatchError):
    """A profile has no stored embedding to score against."""

    def __init__(self, profile_id: int):
        super().__init__(f"Profile {profile_id} has no embedding")
        self.profile_id = profile_id


class PartialBatchFailure(CareerMatchError):
    """Some jobs could not be scored during a batch run."""

    def __init__(self, profile_id: int, failures: List[tuple]):
        super().__init__(
            f"{len(failures)} job(s) failed while scoring profile {profile_id}"
        )
        self.profile_id = profile_id
        self.failures = failures


class AuthenticationFailed(CareerMatchError):
    """A bearer token was missing, malformed or rejected."""
    pass
