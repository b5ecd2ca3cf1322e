"""
Exceptions raised by ldapguard.

Every exception derives from :py:class:`DirectoryError`.  Errors that wrap a
python-ldap failure keep the server's result dictionary on
:py:attr:`DirectoryError.diagnostic` and chain the original exception, so
``desc``, ``info`` and ``result`` are available to callers that need them.
"""

from typing import Any

from ldapguard import ldap


def diagnostic_from(exc: BaseException) -> dict[str, Any] | None:
    """
    Pull the result dictionary out of a python-ldap exception.

    python-ldap raises its errors with a single dict argument holding keys
    like ``desc``, ``info``, ``result`` and ``matched``.

    Args:
        exc: the exception raised by python-ldap

    Returns:
        A copy of the result dictionary, or ``None`` if ``exc`` has none.

    """
    if isinstance(exc, ldap.LDAPError) and exc.args and isinstance(exc.args[0], dict):
        return dict(exc.args[0])
    return None


class DirectoryError(Exception):
    """
    Base class for everything ldapguard raises.

    Args:
        message: a human readable description of the failure

    Keyword Args:
        dn: the DN the failed operation targeted, if any
        diagnostic: the python-ldap result dictionary, if the failure came from
            the server

    """

    def __init__(
        self,
        message: str,
        dn: str | None = None,
        diagnostic: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        #: The DN the failed operation targeted
        self.dn = dn
        #: The python-ldap result dictionary (``desc``, ``info``, ...)
        self.diagnostic = diagnostic

    @classmethod
    def from_ldap_error(
        cls, message: str, exc: BaseException, dn: str | None = None
    ) -> "DirectoryError":
        """
        Build an instance of ``cls`` that carries the diagnostic of ``exc``.
        """
        return cls(message, dn=dn, diagnostic=diagnostic_from(exc))

    def __str__(self) -> str:
        parts = [self.message]
        if self.dn:
            parts.append(f"dn={self.dn}")
        if self.diagnostic:
            desc = self.diagnostic.get("desc")
            info = self.diagnostic.get("info")
            if desc:
                parts.append(f"desc={desc}")
            if info:
                parts.append(f"info={info}")
        return " ".join(parts)


class ConnectionError(DirectoryError):  # noqa: A001
    """
    The server could not be reached, or the connection could not be released.
    """


class AuthenticationError(DirectoryError):
    """The server rejected our bind."""


class SearchError(DirectoryError):
    """
    The server reported a search failure other than ``noSuchObject``.
    """


class MutationError(DirectoryError):
    """
    The server rejected an add, modify, delete or rename.
    """


class AlreadyExistsError(MutationError):
    """
    An entry already exists at the DN we were asked to create.

    Raised by :py:func:`ldapguard.mutator.add_entry` when its existence check
    finds the DN occupied, and also when the server itself answers
    ``alreadyExists`` because another client created the entry between our
    check and our add.
    """


class InvalidMoveError(DirectoryError):
    """
    A move was refused because the source entry is missing or the destination
    is already occupied.

    Keyword Args:
        new_dn: the requested destination DN

    """

    def __init__(
        self,
        message: str,
        dn: str | None = None,
        diagnostic: dict[str, Any] | None = None,
        new_dn: str | None = None,
    ) -> None:
        super().__init__(message, dn=dn, diagnostic=diagnostic)
        #: The requested destination DN
        self.new_dn = new_dn


class PreconditionError(DirectoryError, ValueError):
    """
    The caller broke the calling contract: no session, a closed session, or no
    base DN to search from.  Raised before anything is sent to the server.
    """
