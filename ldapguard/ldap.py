# This module is the single seam through which ldapguard talks to python-ldap.
# python-ldap-faker patches ``<module>.ldap.initialize``, so every call to the
# transport goes through ``ldapguard.ldap`` rather than the top-level package.
import ldap
from ldap import *  # noqa: F403

__version__ = ldap.__version__
