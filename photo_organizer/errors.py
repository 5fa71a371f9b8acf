"""Exceptions raised while organizing an upload batch."""


class PhotoOrganizerError(Exception):
    pass


class MetadataDecodeError(PhotoOrganizerError):
    """No decoder could read a tag set; never leaves the extractor."""


class EmptyBatchError(PhotoOrganizerError):
    pass


class UploadLimitError(PhotoOrganizerError):
    """Batch has too many files or one file is over the size ceiling."""


class PlacementExhaustionError(PhotoOrganizerError):
    pass


class ArchiveBuildError(PhotoOrganizerError):
    def __init__(self, message: str, bytes_emitted: int = 0):
        super().__init__(message)
        self.bytes_emitted = bytes_emitted

    @property
    def partial(self) -> bool:
        return self.bytes_emitted > 0


class TransportAbortError(PhotoOrganizerError):
    """The consumer went away before the archive was fully delivered."""


class ResourceReleaseError(PhotoOrganizerError):
    pass
