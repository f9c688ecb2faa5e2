"""Response cache keyed by request fingerprint.

Entries are stamped with the version number that produced them and
expire after the version's effective TTL. Promotion and rollback wipe a
process's entries inside their own transaction.
"""
