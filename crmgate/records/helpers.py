"""Shared helpers for the record routers."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from crmgate.errors import BadRequest, CRMError, UpstreamFailure

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


@contextmanager
def upstream_errors(message: str) -> Iterator[None]:
    """Turn unexpected errors inside the block into an UpstreamFailure.

    :param message: The ``error`` text of the resulting 500 response
    """
    try:
        yield
    except CRMError:
        raise
    except Exception as e:
        LOGGER.error("%s (%s: %s)", message, type(e).__name__, e)
        raise UpstreamFailure(message, e) from e


def parse_ids(ids: str | None) -> list[int]:
    """Parse a comma separated ``ids`` query parameter.

    :raises BadRequest: If the parameter is missing or not all integers
    """
    if not ids:
        raise BadRequest("No IDs provided.")
    try:
        return [int(part) for part in ids.split(",")]
    except ValueError as e:
        raise BadRequest("Invalid ID format provided.") from e
