"""
Identifier creation. Store-assigned ids are time-ordered UUIDv7 values, which
the standard library does not provide before python 3.14.
"""

from uuid import UUID as UUID

from uuid_extensions import uuid7 as uuid7

__ALL__ = ["UUID", "uuid7"]
