"""Pipeline error taxonomy."""


class PipelineError(Exception):
    """Base class for all lead intelligence pipeline errors."""


class NotFoundError(PipelineError):
    """A lead, task, alert, playbook or sync id has no matching record."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ValidationError(PipelineError):
    """Input rejected before any write happened."""


class InvalidTransitionError(ValidationError):
    """A status change that the lifecycle does not allow."""

    def __init__(self, entity: str, current: str, requested: str):
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(f"{entity} cannot move from '{current}' to '{requested}'")


class RepositoryError(PipelineError):
    """The persistence boundary failed."""


class ConcurrencyError(RepositoryError):
    """Conditional write lost against a concurrent writer."""


class DuplicateIdentityError(RepositoryError):
    """Insert collided with an existing lead identity."""


class DeliveryError(PipelineError):
    """One alert channel failed to deliver."""

    def __init__(self, channel: str, message: str):
        self.channel = channel
        super().__init__(f"{channel}: {message}")


class SyncError(PipelineError):
    """External CRM sync failed. Recorded on the sync row, never raised to callers."""
