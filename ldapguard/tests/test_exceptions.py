import unittest

import ldap

from ldapguard.exceptions import (
    AlreadyExistsError,
    DirectoryError,
    MutationError,
    SearchError,
    diagnostic_from,
)


class TestDiagnostics(unittest.TestCase):

    def test_diagnostic_from_ldap_error(self):
        exc = ldap.NO_SUCH_OBJECT({"result": 32, "desc": "No such object", "matched": "dc=example,dc=com"})
        self.assertEqual(
            diagnostic_from(exc),
            {"result": 32, "desc": "No such object", "matched": "dc=example,dc=com"},
        )

    def test_diagnostic_from_other_errors(self):
        self.assertIsNone(diagnostic_from(ValueError("nope")))
        self.assertIsNone(diagnostic_from(ldap.LDAPError()))

    def test_from_ldap_error(self):
        """Test that the diagnostic and dn end up on the new exception and its str()."""
        exc = ldap.ALREADY_EXISTS({"result": 68, "desc": "Already exists", "info": "entry exists"})
        error = AlreadyExistsError.from_ldap_error("Add failed", exc, dn="uid=x,dc=example,dc=com")
        self.assertIsInstance(error, AlreadyExistsError)
        self.assertEqual(error.dn, "uid=x,dc=example,dc=com")
        self.assertEqual(error.diagnostic["result"], 68)
        self.assertEqual(
            str(error),
            "Add failed dn=uid=x,dc=example,dc=com desc=Already exists info=entry exists",
        )

    def test_str_without_diagnostic(self):
        self.assertEqual(str(SearchError("Search failed")), "Search failed")

    def test_hierarchy(self):
        self.assertTrue(issubclass(AlreadyExistsError, MutationError))
        self.assertTrue(issubclass(MutationError, DirectoryError))
        self.assertTrue(issubclass(SearchError, DirectoryError))
