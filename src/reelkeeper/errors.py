"""Error types raised by Reelkeeper."""


class ReelKeeperError(Exception):
    """Base class for all Reelkeeper errors."""


class MissingCredentialError(ReelKeeperError):
    """No API credential is stored but the operation needs one."""


class InvalidCredentialError(ReelKeeperError):
    """An empty or malformed credential was supplied."""


class InvalidCategoryError(ReelKeeperError):
    """A category name is empty after trimming."""


class DuplicateCategoryError(ReelKeeperError):
    """A category with the same name already exists."""

    def __init__(self, name: str):
        super().__init__(f"Category already exists: {name}")
        self.name = name


class ClassificationUnavailableError(ReelKeeperError):
    """Both the primary and the secondary model failed."""


class PersistenceError(ReelKeeperError):
    """The key-value layer rejected a read or a write."""


class PipelineBusyError(ReelKeeperError):
    """A shared item is already pending selection."""


class PipelineStateError(ReelKeeperError):
    """An operation was called in the wrong pipeline state."""
