"""
The directory session: one authenticated python-ldap connection plus the
default search root.

A session is owned by whoever opened it.  It does no locking, so issue
operations on one session sequentially, and release it on every exit path,
either with :py:meth:`DirectorySession.close` or by using it as a context
manager::

    with DirectorySession.from_config(DirectoryConfig.from_settings()) as session:
        query(session, "(uid=alice)")
"""

import logging
from collections.abc import Callable
from contextlib import suppress
from functools import wraps
from typing import TYPE_CHECKING, Any

from ldapguard import ldap

from .exceptions import AuthenticationError, ConnectionError, PreconditionError  # noqa: A004

if TYPE_CHECKING:
    from .config import DirectoryConfig

logger = logging.getLogger(__name__)

#: python-ldap errors that mean the server refused our credentials
AUTH_ERRORS = (
    ldap.INVALID_CREDENTIALS,  # type: ignore[attr-defined]
    ldap.INAPPROPRIATE_AUTH,  # type: ignore[attr-defined]
    ldap.STRONG_AUTH_REQUIRED,  # type: ignore[attr-defined]
    ldap.UNWILLING_TO_PERFORM,  # type: ignore[attr-defined]
)


class DirectorySession:
    """
    An authenticated connection to an LDAP server.

    Use :py:meth:`open` or :py:meth:`from_config` rather than constructing
    this directly.

    Args:
        connection: a bound python-ldap ``LDAPObject``
        basedn: the default search root for :py:func:`ldapguard.query.query`

    Keyword Args:
        url: the LDAP URL we connected to, for logging

    """

    def __init__(self, connection: Any, basedn: str, url: str | None = None) -> None:
        #: The python-ldap ``LDAPObject``; ``None`` once the session is closed
        self.connection = connection
        self.basedn = basedn
        self.url = url

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<DirectorySession url={self.url} basedn={self.basedn} {state}>"

    def __enter__(self) -> "DirectorySession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self.connection is None

    @classmethod
    def open(
        cls,
        url: str,
        basedn: str,
        bind_dn: str,
        password: str,
        timeout: float = 15.0,
        follow_referrals: bool = False,
    ) -> "DirectorySession":
        """
        Connect to ``url`` and bind as ``bind_dn``.

        Args:
            url: the LDAP URL of the server
            basedn: the default search root for the new session
            bind_dn: the DN to bind as
            password: the password for ``bind_dn``

        Keyword Args:
            timeout: network timeout in seconds
            follow_referrals: whether python-ldap should chase referrals

        Raises:
            ConnectionError: the server could not be reached, or ``url`` is not
                a usable LDAP URL
            AuthenticationError: the server rejected the bind

        Returns:
            An open :py:class:`DirectorySession`.

        """
        try:
            connection = ldap.initialize(url)
        except ldap.LDAPError as e:  # type: ignore[attr-defined]
            msg = f"Could not initialize a connection to {url}"
            raise ConnectionError.from_ldap_error(msg, e) from e
        try:
            connection.set_option(ldap.OPT_REFERRALS, 1 if follow_referrals else 0)  # type: ignore[attr-defined]
            connection.set_option(ldap.OPT_NETWORK_TIMEOUT, float(timeout))  # type: ignore[attr-defined]
            connection.simple_bind_s(bind_dn, password)
        except AUTH_ERRORS as e:
            cls._discard(connection)
            logger.warning("ldapguard.session.bind.rejected url=%s bind_dn=%s", url, bind_dn)
            msg = f"Bind as {bind_dn} was rejected by {url}"
            raise AuthenticationError.from_ldap_error(msg, e, dn=bind_dn) from e
        except ldap.LDAPError as e:  # type: ignore[attr-defined]
            cls._discard(connection)
            logger.warning("ldapguard.session.connect.failed url=%s", url)
            msg = f"Could not connect to {url}"
            raise ConnectionError.from_ldap_error(msg, e) from e
        logger.info("ldapguard.session.open url=%s bind_dn=%s", url, bind_dn)
        return cls(connection, basedn, url=url)

    @classmethod
    def from_config(cls, config: "DirectoryConfig") -> "DirectorySession":
        """
        Open a session described by a :py:class:`ldapguard.config.DirectoryConfig`.
        """
        return cls.open(
            config.url,
            config.basedn,
            config.bind_dn,
            config.password,
            timeout=config.timeout,
            follow_referrals=config.follow_referrals,
        )

    @staticmethod
    def _discard(connection: Any) -> None:
        # The bind already failed; that is the error the caller needs to see.
        with suppress(ldap.LDAPError):  # type: ignore[attr-defined]
            connection.unbind_s()

    def close(self) -> None:
        """
        Unbind and release the connection.

        The session counts as closed afterwards even if the unbind fails.
        Closing a closed session does nothing.

        Raises:
            ConnectionError: the unbind failed

        """
        if self.connection is None:
            logger.debug("ldapguard.session.close.already-closed url=%s", self.url)
            return
        connection, self.connection = self.connection, None
        try:
            connection.unbind_s()
        except ldap.LDAPError as e:  # type: ignore[attr-defined]
            msg = f"Unbind from {self.url} failed"
            raise ConnectionError.from_ldap_error(msg, e) from e
        logger.info("ldapguard.session.close url=%s", self.url)


def requires_session(func: Callable) -> Callable:
    """
    Decorator for functions whose first argument is a
    :py:class:`DirectorySession`.

    Rejects a missing or closed session with :py:exc:`PreconditionError`
    before the wrapped function can touch the network.
    """

    @wraps(func)
    def wrapper(session: DirectorySession | None, *args, **kwargs) -> Any:
        if session is None:
            logger.warning("ldapguard.session.missing func=%s", func.__name__)
            msg = f"{func.__name__}() requires a DirectorySession, got None"
            raise PreconditionError(msg)
        if session.closed:
            logger.warning("ldapguard.session.closed func=%s", func.__name__)
            msg = f"{func.__name__}() was called with a closed DirectorySession"
            raise PreconditionError(msg)
        return func(session, *args, **kwargs)

    return wrapper
