"""
Read-only searches and existence checks.

Every search is fully materialized: the functions here return a list of
:py:class:`Entry` objects once the server has sent its final result, never a
lazy stream.  A search whose base DN does not exist comes back as an empty
list rather than an error.
"""

import enum
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from ldap_filter import Filter

from ldapguard import ldap

from .exceptions import PreconditionError, SearchError
from .session import DirectorySession, requires_session
from .typing import EntryValue, LDAPData

logger = logging.getLogger(__name__)

#: The filter that matches any entry, whatever its attributes
MATCH_ALL = "(objectClass=*)"
#: Request no attributes at all (RFC 4511 section 4.5.1.8)
NO_ATTRS = "1.1"


class Scope(enum.IntEnum):
    """Search scopes, valued as the python-ldap constants."""

    BASE = ldap.SCOPE_BASE  # type: ignore[attr-defined]
    ONELEVEL = ldap.SCOPE_ONELEVEL  # type: ignore[attr-defined]
    SUBTREE = ldap.SCOPE_SUBTREE  # type: ignore[attr-defined]


def _decode_value(value: bytes | str) -> EntryValue:
    if not isinstance(value, bytes):
        return value
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value


@dataclass
class Entry:
    """
    One directory entry: its DN and its attributes.

    Attribute names keep the case the server sent, but lookups through
    :py:meth:`get` and ``entry[name]`` ignore case, as LDAP does.
    """

    dn: str
    attributes: dict[str, list[EntryValue]] = field(default_factory=dict)

    @classmethod
    def from_ldap(cls, data: LDAPData) -> "Entry":
        """
        Build an :py:class:`Entry` from a python-ldap ``(dn, attrs)`` tuple.

        Values are decoded as UTF-8.  Values that are not valid UTF-8, such as
        ``jpegPhoto`` or ``objectGUID``, are kept as the raw ``bytes``.
        """
        dn, attrs = data
        return cls(
            dn=dn,
            attributes={
                name: [_decode_value(value) for value in values]
                for name, values in attrs.items()
            },
        )

    def _key(self, name: str) -> str | None:
        lowered = name.lower()
        for key in self.attributes:
            if key.lower() == lowered:
                return key
        return None

    def get(
        self, name: str, default: list[EntryValue] | None = None
    ) -> list[EntryValue] | None:
        key = self._key(name)
        if key is None:
            return default
        return self.attributes[key]

    def __getitem__(self, name: str) -> list[EntryValue]:
        key = self._key(name)
        if key is None:
            raise KeyError(name)
        return self.attributes[key]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self.attributes)


def build_filter(**attributes: str) -> str:
    """
    Build an equality filter from keyword arguments.

    Several keyword arguments are ANDed together; no arguments gives a filter
    that matches every entry.

    Example:
        >>> build_filter(uid="t1")
        '(uid=t1)'
        >>> build_filter(objectClass="inetOrgPerson", uid="t1")
        '(&(objectClass=inetOrgPerson)(uid=t1))'

    Returns:
        An LDAP filter string.

    """
    if not attributes:
        return MATCH_ALL
    chain = [
        Filter.attribute(name).equal_to(str(value))
        for name, value in attributes.items()
    ]
    if len(chain) == 1:
        return chain[0].to_string()
    return Filter.AND(chain).simplify().to_string()


@requires_session
def search(
    session: DirectorySession,
    basedn: str,
    searchfilter: str = MATCH_ALL,
    scope: Scope = Scope.SUBTREE,
    attributes: list[str] | None = None,
) -> list[Entry]:
    """
    Search the directory.

    Args:
        session: an open session
        basedn: the DN to search from
        searchfilter: the LDAP filter string; passed through untouched
        scope: how far below ``basedn`` to look
        attributes: the attributes to return; ``None`` means all of them

    Raises:
        PreconditionError: ``session`` is missing or closed
        SearchError: the server reported anything other than ``noSuchObject``

    Returns:
        Every matching entry, in the order the server sent them.  Empty if
        nothing matched or ``basedn`` does not exist.

    """
    logger.debug(
        "ldapguard.query.search basedn=%s filter=%s scope=%s",
        basedn,
        searchfilter,
        Scope(scope).name,
    )
    try:
        data = session.connection.search_s(
            basedn, int(scope), filterstr=searchfilter, attrlist=attributes
        )
    except ldap.NO_SUCH_OBJECT:  # type: ignore[attr-defined]
        logger.debug("ldapguard.query.search.no-such-object basedn=%s", basedn)
        return []
    except ldap.LDAPError as e:  # type: ignore[attr-defined]
        msg = f"Search for {searchfilter} under {basedn} failed"
        raise SearchError.from_ldap_error(msg, e, dn=basedn) from e
    # Active Directory appends referral references, which have no attribute
    # dict; drop them
    return [Entry.from_ldap(obj) for obj in data if isinstance(obj[1], dict)]


@requires_session
def query(
    session: DirectorySession,
    searchfilter: str,
    attributes: list[str] | None = None,
) -> list[Entry]:
    """
    Search the whole subtree under the session's base DN.

    Raises:
        PreconditionError: the session has no base DN

    """
    if not session.basedn:
        msg = "query() needs a DirectorySession with a basedn"
        raise PreconditionError(msg)
    return search(session, session.basedn, searchfilter, Scope.SUBTREE, attributes)


@requires_session
def exists_at_dn(session: DirectorySession, dn: str) -> bool:
    """
    Return ``True`` if there is an entry at exactly ``dn``.

    A base-scope search for ``(objectClass=*)`` matches an entry if and only
    if it exists, whatever attributes it has.  This is the check the guarded
    mutations use.
    """
    return bool(search(session, dn, MATCH_ALL, Scope.BASE, [NO_ATTRS]))


@requires_session
def exists_by_base_scope(session: DirectorySession, dn: str) -> bool:
    """
    Return ``True`` if a subtree search rooted at ``dn`` finds anything.

    ``dn`` is always used as the search base, never as a filter.  Prefer
    :py:func:`exists_at_dn`, which asks exactly one question.
    """
    return bool(search(session, dn, MATCH_ALL, Scope.SUBTREE, [NO_ATTRS]))


@requires_session
def get_entry(
    session: DirectorySession, dn: str, attributes: list[str] | None = None
) -> Entry | None:
    """
    Fetch the entry at exactly ``dn``.

    Returns:
        The :py:class:`Entry`, or ``None`` if there is no entry at ``dn``.

    """
    results = search(session, dn, MATCH_ALL, Scope.BASE, attributes)
    if not results:
        return None
    return results[0]
