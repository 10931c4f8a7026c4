"""
Utility helpers for the CGM flow

Simple utility functions for session identifiers and storage keys.
"""

import uuid

from cgm_flow.config import STORAGE_KEY


def generate_session_id(short=True):
    """
    Generate unique flow session identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID.

    Returns:
        str: Session ID

    Examples:
        >>> generate_session_id()
        'a3f7e2b9'

        >>> generate_session_id(short=False)
        'a3f7e2b9c1d2e3f4a5b6c7d8e9f0a1b2'
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def session_storage_key(session_id, prefix=STORAGE_KEY):
    """
    Build the persistence key for one browser session

    Examples:
        >>> session_storage_key('a3f7e2b9')
        'cgm-flow-state:a3f7e2b9'
    """
    return f"{prefix}:{session_id}"
