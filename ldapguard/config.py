"""
Connection configuration for ldapguard.

A :py:class:`DirectoryConfig` is an explicit value handed to
:py:meth:`ldapguard.session.DirectorySession.from_config`.  Nothing here is
read at import time: the settings and environment loaders only look at their
sources when called.

The Django settings layout is the one django-ldaporm uses::

    LDAP_SERVERS = {
        "default": {
            "url": "ldap://ldap.example.com",
            "basedn": "dc=example,dc=com",
            "user": "cn=admin,dc=example,dc=com",
            "password": "the password",
            "timeout": 15.0,
            "follow_referrals": False,
        },
    }

Per-role blocks (``{"read": {...}, "write": {...}}``) are selected with the
``key`` argument to :py:meth:`DirectoryConfig.from_settings`.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

#: Environment variable names read by :py:meth:`DirectoryConfig.from_environ`
ENV_URL = "LDAP_SERVER"
ENV_BASEDN = "LDAP_BASE_DN"
ENV_BIND_DN = "LDAP_BIND_DN"
ENV_PASSWORD = "LDAP_BIND_PASSWORD"  # noqa: S105
ENV_TIMEOUT = "LDAP_TIMEOUT"

DEFAULT_TIMEOUT = 15.0


@dataclass(frozen=True)
class DirectoryConfig:
    """
    Everything needed to open a :py:class:`ldapguard.session.DirectorySession`.
    """

    #: The LDAP URL of the server, e.g. ``ldap://ldap.example.com:389``
    url: str
    #: The default search root for :py:func:`ldapguard.query.query`
    basedn: str
    #: The DN to bind as
    bind_dn: str
    #: The password for :py:attr:`bind_dn`
    password: str = field(repr=False)
    #: Network timeout in seconds, enforced by the transport
    timeout: float = DEFAULT_TIMEOUT
    #: Whether python-ldap should chase referrals
    follow_referrals: bool = False

    @classmethod
    def from_dict(cls, config: Mapping[str, Any], name: str = "config") -> "DirectoryConfig":
        """
        Build a config from a django-ldaporm style server dictionary.

        Args:
            config: a mapping with ``url``, ``basedn``, ``user`` and
                ``password`` keys, and optionally ``timeout`` and
                ``follow_referrals``
            name: how to refer to ``config`` in error messages

        Raises:
            ImproperlyConfigured: a required key is missing

        Returns:
            A new :py:class:`DirectoryConfig`.

        """
        values: dict[str, Any] = {}
        for attr, key in (
            ("url", "url"),
            ("basedn", "basedn"),
            ("bind_dn", "user"),
            ("password", "password"),
        ):
            try:
                values[attr] = config[key]
            except KeyError as e:
                msg = f"{name} has no '{key}' key"
                raise ImproperlyConfigured(msg) from e
        return cls(
            timeout=float(config.get("timeout", DEFAULT_TIMEOUT)),
            follow_referrals=bool(config.get("follow_referrals", False)),
            **values,
        )

    @classmethod
    def from_settings(cls, server: str = "default", key: str | None = None) -> "DirectoryConfig":
        """
        Build a config from ``settings.LDAP_SERVERS[server]``.

        Args:
            server: the key in ``settings.LDAP_SERVERS`` to use

        Keyword Args:
            key: if the server is configured with per-role blocks, the role to
                use, e.g. ``"read"`` or ``"write"``

        Raises:
            ImproperlyConfigured: ``settings.LDAP_SERVERS`` does not exist, has
                no ``server`` (or ``key``) entry, or that entry is missing a
                required key

        Returns:
            A new :py:class:`DirectoryConfig`.

        """
        try:
            config = settings.LDAP_SERVERS[server]
        except AttributeError as e:
            msg = "settings.LDAP_SERVERS does not exist!"
            raise ImproperlyConfigured(msg) from e
        except KeyError as e:
            msg = f"settings.LDAP_SERVERS has no key '{server}'"
            raise ImproperlyConfigured(msg) from e
        name = f"settings.LDAP_SERVERS['{server}']"
        if key is not None:
            try:
                config = config[key]
            except KeyError as e:
                msg = f"{name} has no key '{key}'"
                raise ImproperlyConfigured(msg) from e
            name = f"{name}['{key}']"
        return cls.from_dict(config, name=name)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "DirectoryConfig":
        """
        Build a config from environment variables.

        Reads ``LDAP_SERVER``, ``LDAP_BASE_DN``, ``LDAP_BIND_DN`` and
        ``LDAP_BIND_PASSWORD``, plus ``LDAP_TIMEOUT`` if it is set.

        Keyword Args:
            environ: the mapping to read from; defaults to :py:data:`os.environ`

        Raises:
            ImproperlyConfigured: a required variable is unset or empty, or
                ``LDAP_TIMEOUT`` is not a number

        Returns:
            A new :py:class:`DirectoryConfig`.

        """
        if environ is None:
            environ = os.environ
        missing = [
            var
            for var in (ENV_URL, ENV_BASEDN, ENV_BIND_DN, ENV_PASSWORD)
            if not environ.get(var)
        ]
        if missing:
            msg = f"Missing required environment variables: {', '.join(missing)}"
            raise ImproperlyConfigured(msg)
        timeout = DEFAULT_TIMEOUT
        if raw_timeout := environ.get(ENV_TIMEOUT):
            try:
                timeout = float(raw_timeout)
            except ValueError as e:
                msg = f"{ENV_TIMEOUT} must be a number, not {raw_timeout!r}"
                raise ImproperlyConfigured(msg) from e
        return cls(
            url=environ[ENV_URL],
            basedn=environ[ENV_BASEDN],
            bind_dn=environ[ENV_BIND_DN],
            password=environ[ENV_PASSWORD],
            timeout=timeout,
        )
