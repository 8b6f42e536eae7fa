"""
Tests for idempotency key generation.

Keys are 16 random bytes rendered as 8-4-4-4-12 lowercase hex groups.
"""

import re

from points_api.services.transfer_service import generate_idem_key

KEY_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


class TestIdempotencyKeyGeneration:

    def test_key_shape(self):
        key = generate_idem_key()
        assert len(key) == 36
        assert KEY_PATTERN.match(key)

    def test_keys_are_unique(self):
        keys = {generate_idem_key() for _ in range(10_000)}
        assert len(keys) == 10_000
