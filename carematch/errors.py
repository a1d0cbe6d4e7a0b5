"""Exception types raised by CareMatch components."""


class CareMatchError(Exception):
    """Base class for all CareMatch errors."""


class ExternalServiceError(CareMatchError):
    """The semantic-match service failed, timed out, or returned malformed output."""


class UnknownCanonicalIdError(CareMatchError):
    """A canonical id was referenced that does not exist for the given key."""

    def __init__(self, key: str, canonical_id: str):
        super().__init__(f"Unknown canonical id '{canonical_id}' for {key}")
        self.key = key
        self.canonical_id = canonical_id


class NotFoundError(CareMatchError):
    """A candidate or requisition could not be located by id."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id
