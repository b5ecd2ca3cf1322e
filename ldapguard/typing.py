"""
Type aliases for the python-ldap data shapes used by ldapguard.
"""

DeleteModListEntry = tuple[int, str, None]
ModifyModListEntry = tuple[int, str, list[bytes]]
ModifyModList = list[DeleteModListEntry | ModifyModListEntry]
AddModlist = list[tuple[str, list[bytes]]]
LDAPData = tuple[str, dict[str, list[bytes]]]
#: A single attribute value as callers may pass it; ints are sent as their
#: decimal string
AttributeValue = str | bytes | int
#: What callers may pass as the value(s) of an attribute
AttributeValues = (
    AttributeValue
    | list[AttributeValue]
    | tuple[AttributeValue, ...]
    | set[AttributeValue]
    | None
)
#: A value as read back: ``bytes`` only when it is not valid UTF-8
EntryValue = str | bytes
