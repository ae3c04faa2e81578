"""Effekt common utilities.

Shared code across Effekt worker processes.
"""

from effekt_common.logging import (
    setup_logging,
    get_logger,
    bind_request_id,
    generate_request_id,
    get_or_create_request_id,
    unbind_request_id,
    REQUEST_ID_HEADER,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "bind_request_id",
    "generate_request_id",
    "get_or_create_request_id",
    "unbind_request_id",
    "REQUEST_ID_HEADER",
]
