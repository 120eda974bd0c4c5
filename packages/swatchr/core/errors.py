"""Exception hierarchy for swatchr.

Remote failures come from ``swatchr.core.api.http.errors`` (ApiError and
subclasses), which also derive from SwatchrError.
"""


class SwatchrError(Exception):
    """Base exception for all swatchr errors."""

    pass


class CachePersistenceError(SwatchrError):
    """Writing the change-detection cache to disk failed."""


class CheckpointPersistenceError(SwatchrError):
    """Writing or deleting the batch checkpoint failed."""


class ConfigDiscoveryError(SwatchrError):
    """A config path or directory could not be resolved."""


class ConfigLoadError(SwatchrError):
    """A config file exists but could not be parsed or validated."""


class CollectionNotFoundError(SwatchrError):
    """A named variable collection is absent from the fetched file data."""

    def __init__(self, collection: str, file_id: str) -> None:
        self.collection = collection
        self.file_id = file_id
        super().__init__(f"Variable collection '{collection}' not found in file {file_id}")


class DownloadJobCancelledError(SwatchrError):
    """A queued download job was dropped before it ran."""

    def __init__(self, job_id: str, config_id: str) -> None:
        self.job_id = job_id
        self.config_id = config_id
        super().__init__(f"Download job {job_id} for config '{config_id}' was cancelled")


class UnknownDownloadJobError(SwatchrError):
    """No result is held for the requested job id (never submitted or evicted)."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Unknown download job: {job_id}")
