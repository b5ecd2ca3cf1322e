"""
Existence-guarded LDAP directory access built on python-ldap.
"""

from .config import DirectoryConfig
from .exceptions import (  # noqa: A004
    AlreadyExistsError,
    AuthenticationError,
    ConnectionError,
    DirectoryError,
    InvalidMoveError,
    MutationError,
    PreconditionError,
    SearchError,
)
from .mutator import (
    AttributeChange,
    ChangeOperation,
    add_attribute,
    add_entry,
    apply_changes,
    move_entry,
    remove_attribute,
    remove_entry,
    set_attribute,
)
from .query import (
    Entry,
    Scope,
    build_filter,
    exists_at_dn,
    exists_by_base_scope,
    get_entry,
    query,
    search,
)
from .session import DirectorySession

__version__ = "1.0.0"

__all__ = [
    "AlreadyExistsError",
    "AttributeChange",
    "AuthenticationError",
    "ChangeOperation",
    "ConnectionError",
    "DirectoryConfig",
    "DirectoryError",
    "DirectorySession",
    "Entry",
    "InvalidMoveError",
    "MutationError",
    "PreconditionError",
    "Scope",
    "SearchError",
    "add_attribute",
    "add_entry",
    "apply_changes",
    "build_filter",
    "exists_at_dn",
    "exists_by_base_scope",
    "get_entry",
    "move_entry",
    "query",
    "remove_attribute",
    "remove_entry",
    "search",
    "set_attribute",
]
