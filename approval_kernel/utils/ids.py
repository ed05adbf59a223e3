"""Request id parsing shared by services and selectors."""

from uuid import UUID

from approval_kernel.exceptions import NotFoundError


def coerce_request_id(request_id: UUID | str) -> UUID:
    """Parse a request id, reporting malformed ids as not found."""
    if isinstance(request_id, UUID):
        return request_id
    try:
        return UUID(str(request_id))
    except ValueError:
        raise NotFoundError(str(request_id)) from None
