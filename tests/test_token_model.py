"""
Tests for the AccessToken model and TokenCache.
"""
import unittest
from datetime import datetime, timedelta, timezone

from inter_webhook.models.token import AccessToken, TokenCache


class TestAccessToken(unittest.TestCase):
    """Test cases for AccessToken."""

    def test_repr_hides_bearer_value(self):
        token = AccessToken(access_token='super-secret-token', token_type='Bearer', expires_in=3600)

        self.assertNotIn('super-secret-token', repr(token))

    def test_public_dict_has_no_token(self):
        token = AccessToken(access_token='abc', token_type='Bearer', expires_in=3600)

        public = token.to_public_dict()

        self.assertEqual(public, {'tokenType': 'Bearer', 'expiresIn': 3600})

    def test_expiry(self):
        obtained = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        token = AccessToken(access_token='abc', token_type='Bearer', expires_in=3600, obtained_at=obtained)

        self.assertEqual(token.expires_at, obtained + timedelta(hours=1))
        self.assertFalse(token.is_expired(now=obtained + timedelta(minutes=30)))
        self.assertTrue(token.is_expired(skew_seconds=60, now=obtained + timedelta(minutes=59, seconds=30)))
        self.assertTrue(token.is_expired(now=obtained + timedelta(hours=2)))


class TestTokenCache(unittest.TestCase):
    """Test cases for TokenCache."""

    def setUp(self):
        self.cache = TokenCache(skew_seconds=30)
        self.key = TokenCache.key_for('https://example.com/token', 'client', 'scope')

    def test_put_and_get(self):
        token = AccessToken(access_token='abc', token_type='Bearer', expires_in=3600)
        self.cache.put(self.key, token)

        self.assertIs(self.cache.get(self.key), token)

    def test_expired_token_is_evicted(self):
        obtained = datetime.now(timezone.utc) - timedelta(hours=2)
        self.cache.put(self.key, AccessToken(
            access_token='abc', token_type='Bearer', expires_in=3600, obtained_at=obtained
        ))

        self.assertIsNone(self.cache.get(self.key))
        self.assertEqual(len(self.cache), 0)

    def test_keys_are_isolated(self):
        other_key = TokenCache.key_for('https://example.com/token', 'client', 'other-scope')
        self.cache.put(self.key, AccessToken(access_token='abc', token_type='Bearer', expires_in=3600))

        self.assertIsNone(self.cache.get(other_key))

    def test_invalidate(self):
        token = AccessToken(access_token='abc', token_type='Bearer', expires_in=3600)
        other_key = TokenCache.key_for('https://example.com/token', 'client-2', 'scope')
        self.cache.put(self.key, token)
        self.cache.put(other_key, token)

        self.cache.invalidate(self.key)
        self.assertIsNone(self.cache.get(self.key))
        self.assertIsNotNone(self.cache.get(other_key))

        self.cache.invalidate()
        self.assertEqual(len(self.cache), 0)


if __name__ == '__main__':
    unittest.main()
