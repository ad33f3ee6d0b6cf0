"""
Meta functionality for the database.
"""

from .category import CategoryShare
from .credential import Credential, CredentialGroupShare
from .group import Group, GroupMember

ALL_TABLES = (
    Group,
    GroupMember,
    CategoryShare,
    Credential,
    CredentialGroupShare,
)
