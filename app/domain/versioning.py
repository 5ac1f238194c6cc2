"""Version tokens for optimistic concurrency.

A token is an opaque stamp stored on every mutable row. Writers send back the
token they read; the store only applies the write when the stored token still
matches, and stamps a fresh one. Tokens carry no ordering, only identity.
"""

import uuid

TOKEN_LENGTH = 32


def new_version_token() -> str:
    return uuid.uuid4().hex


def tokens_match(stored: str | None, expected: str | None) -> bool:
    if stored is None or expected is None:
        return False
    return stored == expected
