import unittest
from datetime import timedelta

from jose import jwt

from heirloom.auth import decode_token, issue_token
from heirloom.config import Settings
from heirloom.db import utcnow
from heirloom.errors import AuthenticationError
from heirloom.identity import GoogleIdentityProvider
from heirloom.users import UserRecord


def make_user() -> UserRecord:
    now = utcnow()
    return UserRecord(
        id="google-123",
        email="kim@example.com",
        name="Kim",
        picture=None,
        provider="google",
        created_at=now,
        last_login=now,
    )


class TokenTests(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(jwt_secret="test-secret", jwt_expires_days=7)

    def test_round_trip(self):
        token = issue_token(make_user(), self.settings)
        self.assertEqual(decode_token(token, self.settings), "google-123")

    def test_expiry_window(self):
        token = issue_token(make_user(), self.settings)
        claims = jwt.get_unverified_claims(token)
        self.assertEqual(claims["exp"] - claims["iat"], 7 * 24 * 3600)
        self.assertEqual(claims["email"], "kim@example.com")

    def test_wrong_secret_is_rejected(self):
        token = issue_token(make_user(), Settings(jwt_secret="other-secret"))
        with self.assertRaises(AuthenticationError):
            decode_token(token, self.settings)

    def test_expired_token_is_rejected(self):
        past = utcnow() - timedelta(days=8)
        token = jwt.encode(
            {"sub": "google-123", "iat": int(past.timestamp()),
             "exp": int((past + timedelta(days=7)).timestamp())},
            "test-secret",
            algorithm="HS256",
        )
        with self.assertRaises(AuthenticationError):
            decode_token(token, self.settings)

    def test_missing_subject_is_rejected(self):
        token = jwt.encode({"email": "x@example.com"}, "test-secret", algorithm="HS256")
        with self.assertRaises(AuthenticationError):
            decode_token(token, self.settings)

    def test_garbage_is_rejected(self):
        with self.assertRaises(AuthenticationError):
            decode_token("not-a-token", self.settings)


class GoogleProviderConfigTests(unittest.TestCase):
    def test_incomplete_configuration_fails_fast(self):
        with self.assertRaises(RuntimeError) as ctx:
            GoogleIdentityProvider.from_settings(Settings(google_client_id="abc"))
        self.assertIn("GOOGLE_CLIENT_SECRET", str(ctx.exception))

    def test_authorization_url_carries_client_and_state(self):
        provider = GoogleIdentityProvider.from_settings(
            Settings(
                google_client_id="abc",
                google_client_secret="shh",
                google_callback_url="http://localhost:3000/auth/google/callback",
            )
        )
        url = provider.authorization_url(state="xyz")
        self.assertTrue(url.startswith("https://accounts.google.com/"))
        self.assertIn("client_id=abc", url)
        self.assertIn("state=xyz", url)
        self.assertIn("scope=openid+profile+email", url)


if __name__ == "__main__":
    unittest.main()
