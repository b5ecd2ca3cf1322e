"""
Existence-guarded directory mutations.

LDAP gives us no transactions, so each function here looks before it leaps:
it checks whether the entry (or entries) it is about to touch exist, and
only sends the mutation when that matches what the operation needs.

=====================  ==============================  ===========  =======================
Operation              Needs                           Otherwise    On violation
=====================  ==============================  ===========  =======================
set_attribute          entry at dn                     no-op        --
add_attribute          entry at dn                     no-op        --
remove_attribute       entry at dn                     no-op        --
apply_changes          entry at dn                     no-op        --
remove_entry           entry at dn                     no-op        --
add_entry              no entry at dn                  --           AlreadyExistsError
move_entry             entry at old_dn, none at new    --           InvalidMoveError
=====================  ==============================  ===========  =======================

Changes against a missing entry succeed vacuously, so deletes are idempotent.
Creating and moving are strict: silently creating over an existing entry, or
moving onto one, would break DN uniqueness.

The check and the mutation are two separate exchanges with the server and
nothing locks the window between them.  If two callers race to create the
same DN, the loser gets :py:exc:`AlreadyExistsError` from the server instead
of from our check.
"""

import enum
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from ldap.dn import dn2str, str2dn

from ldapguard import ldap

from .exceptions import AlreadyExistsError, InvalidMoveError, MutationError
from .query import exists_at_dn
from .session import DirectorySession, requires_session
from .typing import AddModlist, AttributeValue, AttributeValues, ModifyModList

logger = logging.getLogger(__name__)


class ChangeOperation(enum.IntEnum):
    """What an :py:class:`AttributeChange` does, valued as python-ldap's ``MOD_*``."""

    ADD = ldap.MOD_ADD  # type: ignore[attr-defined]
    DELETE = ldap.MOD_DELETE  # type: ignore[attr-defined]
    REPLACE = ldap.MOD_REPLACE  # type: ignore[attr-defined]


def encode_values(values: AttributeValues) -> list[bytes]:
    """
    Normalize attribute values to the list of bytes python-ldap wants.

    A single value (``str``, ``bytes`` or ``int``) becomes a one element list;
    ``None`` becomes an empty list.  Strings and ints are encoded as UTF-8.
    """
    values = _as_list(values)
    return [v if isinstance(v, bytes) else str(v).encode("utf-8") for v in values]


@dataclass
class AttributeChange:
    """
    One change to one attribute.

    ``DELETE`` removes the whole attribute and ignores :py:attr:`values`;
    ``REPLACE`` overwrites every value; ``ADD`` appends to the existing values.
    """

    operation: ChangeOperation
    name: str
    values: list[AttributeValue] = field(default_factory=list)

    @classmethod
    def replace(cls, name: str, values: AttributeValues) -> "AttributeChange":
        return cls(ChangeOperation.REPLACE, name, _as_list(values))

    @classmethod
    def add(cls, name: str, values: AttributeValues) -> "AttributeChange":
        return cls(ChangeOperation.ADD, name, _as_list(values))

    @classmethod
    def delete(cls, name: str) -> "AttributeChange":
        return cls(ChangeOperation.DELETE, name)

    def to_modlist_entry(self) -> tuple[int, str, list[bytes] | None]:
        """
        Return this change as a python-ldap ``modify_s`` modlist item.
        """
        if self.operation == ChangeOperation.DELETE:
            return (int(self.operation), self.name, None)
        return (int(self.operation), self.name, encode_values(self.values))


def _as_list(values: AttributeValues) -> list[AttributeValue]:
    if values is None:
        return []
    if isinstance(values, (list, tuple, set, frozenset)):
        return list(values)
    return [values]


def modify_modlist(changes: Iterable[AttributeChange]) -> ModifyModList:
    return [change.to_modlist_entry() for change in changes]  # type: ignore[misc]


def add_modlist(attributes: Mapping[str, AttributeValues]) -> AddModlist:
    """
    Build an ``add_s`` modlist from an attribute mapping.

    Attributes with no values are left out, as
    :py:func:`ldap.modlist.addModlist` does.
    """
    _modlist: AddModlist = []
    for name, values in attributes.items():
        encoded = encode_values(values)
        if encoded:
            _modlist.append((name, encoded))
    return _modlist


def split_dn(dn: str) -> tuple[str, str]:
    """
    Split ``dn`` into its first RDN and its parent DN.

    Example:
        >>> split_dn("uid=t1,ou=people,dc=example,dc=com")
        ('uid=t1', 'ou=people,dc=example,dc=com')

    Raises:
        MutationError: ``dn`` is not a valid DN

    """
    try:
        rdns = str2dn(dn)
    except ldap.DECODING_ERROR as e:  # type: ignore[attr-defined]
        msg = f"Not a valid DN: {dn!r}"
        raise MutationError.from_ldap_error(msg, e, dn=dn) from e
    if not rdns:
        msg = "Cannot split the empty DN"
        raise MutationError(msg, dn=dn)
    return dn2str(rdns[:1]), dn2str(rdns[1:])


# -----------------------
# Attribute changes
# -----------------------


@requires_session
def apply_changes(
    session: DirectorySession, dn: str, changes: Iterable[AttributeChange]
) -> bool:
    """
    Send ``changes`` as one modify, if there is an entry at ``dn``.

    Args:
        session: an open session
        dn: the entry to modify
        changes: the changes to make, applied by the server in order

    Raises:
        MutationError: the server rejected the modify

    Returns:
        ``True`` if the modify was sent, ``False`` if there was no entry at
        ``dn`` (or no changes) and nothing was sent.

    """
    _modlist = modify_modlist(changes)
    if not _modlist:
        logger.debug("ldapguard.mutator.modify.no-changes dn=%s", dn)
        return False
    if not exists_at_dn(session, dn):
        logger.debug("ldapguard.mutator.modify.absent dn=%s", dn)
        return False
    try:
        session.connection.modify_s(dn, _modlist)
    except ldap.LDAPError as e:  # type: ignore[attr-defined]
        msg = f"Modify of {dn} failed"
        raise MutationError.from_ldap_error(msg, e, dn=dn) from e
    logger.info(
        "ldapguard.mutator.modify.success dn=%s attributes=%s",
        dn,
        ",".join(item[1] for item in _modlist),
    )
    return True


@requires_session
def set_attribute(
    session: DirectorySession, dn: str, name: str, values: AttributeValues
) -> bool:
    """
    Replace every value of ``name`` on ``dn`` with ``values``.

    Does nothing if there is no entry at ``dn``.

    Returns:
        ``True`` if the change was sent.

    """
    return apply_changes(session, dn, [AttributeChange.replace(name, values)])


@requires_session
def add_attribute(
    session: DirectorySession, dn: str, name: str, values: AttributeValues
) -> bool:
    """
    Append ``values`` to ``name`` on ``dn``.  Does nothing if there is no entry
    at ``dn``.
    """
    return apply_changes(session, dn, [AttributeChange.add(name, values)])


@requires_session
def remove_attribute(session: DirectorySession, dn: str, name: str) -> bool:
    """
    Remove ``name`` and all its values from ``dn``.  Does nothing if there is
    no entry at ``dn``.
    """
    return apply_changes(session, dn, [AttributeChange.delete(name)])


# -----------------------
# Entries
# -----------------------


@requires_session
def add_entry(
    session: DirectorySession, dn: str, attributes: Mapping[str, AttributeValues]
) -> None:
    """
    Create an entry at ``dn``.

    Args:
        session: an open session
        dn: where to create the entry
        attributes: attribute names to values, including ``objectClass``

    Raises:
        AlreadyExistsError: there is already an entry at ``dn``, either
            according to our check or according to the server
        MutationError: the server rejected the add for any other reason

    """
    if exists_at_dn(session, dn):
        logger.warning("ldapguard.mutator.add_entry.exists dn=%s", dn)
        msg = f"An entry already exists at {dn}"
        raise AlreadyExistsError(msg, dn=dn)
    try:
        session.connection.add_s(dn, add_modlist(attributes))
    except ldap.ALREADY_EXISTS as e:  # type: ignore[attr-defined]
        # Somebody created it between our check and our add
        logger.warning("ldapguard.mutator.add_entry.lost-race dn=%s", dn)
        msg = f"An entry already exists at {dn}"
        raise AlreadyExistsError.from_ldap_error(msg, e, dn=dn) from e
    except ldap.LDAPError as e:  # type: ignore[attr-defined]
        msg = f"Add of {dn} failed"
        raise MutationError.from_ldap_error(msg, e, dn=dn) from e
    logger.info("ldapguard.mutator.add_entry.success dn=%s", dn)


@requires_session
def remove_entry(session: DirectorySession, dn: str) -> bool:
    """
    Delete the entry at ``dn``, if there is one.

    Raises:
        MutationError: the server rejected the delete, e.g. because the entry
            has children

    Returns:
        ``True`` if the delete was sent, ``False`` if there was nothing to
        delete.

    """
    if not exists_at_dn(session, dn):
        logger.debug("ldapguard.mutator.remove_entry.absent dn=%s", dn)
        return False
    try:
        session.connection.delete_s(dn)
    except ldap.LDAPError as e:  # type: ignore[attr-defined]
        msg = f"Delete of {dn} failed"
        raise MutationError.from_ldap_error(msg, e, dn=dn) from e
    logger.info("ldapguard.mutator.remove_entry.success dn=%s", dn)
    return True


@requires_session
def move_entry(session: DirectorySession, old_dn: str, new_dn: str) -> None:
    """
    Rename and/or move the entry at ``old_dn`` so that it lives at ``new_dn``.

    ``new_dn`` is split into its first RDN and its parent; the parent is only
    sent to the server when it differs from the current one.

    Args:
        session: an open session
        old_dn: the entry to move
        new_dn: where it should end up

    Raises:
        InvalidMoveError: there is no entry at ``old_dn``, or there already is
            one at ``new_dn``
        MutationError: the server rejected the rename

    """
    if not exists_at_dn(session, old_dn):
        logger.warning(
            "ldapguard.mutator.move_entry.source-absent old_dn=%s new_dn=%s",
            old_dn,
            new_dn,
        )
        msg = f"Cannot move {old_dn}: no such entry"
        raise InvalidMoveError(msg, dn=old_dn, new_dn=new_dn)
    if exists_at_dn(session, new_dn):
        logger.warning(
            "ldapguard.mutator.move_entry.target-exists old_dn=%s new_dn=%s",
            old_dn,
            new_dn,
        )
        msg = f"Cannot move {old_dn}: an entry already exists at {new_dn}"
        raise InvalidMoveError(msg, dn=old_dn, new_dn=new_dn)
    newrdn, new_parent = split_dn(new_dn)
    _, old_parent = split_dn(old_dn)
    newsuperior = None
    if str2dn(new_parent) != str2dn(old_parent):
        newsuperior = new_parent
    try:
        session.connection.rename_s(old_dn, newrdn, newsuperior)
    except ldap.LDAPError as e:  # type: ignore[attr-defined]
        msg = f"Move of {old_dn} to {new_dn} failed"
        raise MutationError.from_ldap_error(msg, e, dn=old_dn) from e
    logger.info("ldapguard.mutator.move_entry.success old_dn=%s new_dn=%s", old_dn, new_dn)
