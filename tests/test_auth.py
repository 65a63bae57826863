import unittest

from _support_api import BaseAPITestCase, db

from pm_server.auth import (
    HASH_ITERATIONS,
    AuthenticatedUser,
    hash_password,
    needs_rehash,
    parse_cookie_header,
    verify_password,
)


class TestPasswords(unittest.TestCase):
    def test_hash_and_verify(self):
        stored = hash_password("correct horse", iterations=1000)
        self.assertTrue(stored.startswith("pbkdf2_sha256$1000$"))
        self.assertTrue(verify_password("correct horse", stored))
        self.assertFalse(verify_password("wrong horse", stored))

    def test_malformed_hashes_never_verify(self):
        for stored in ("", "plain", "md5$1$a$b", "pbkdf2_sha256$many$a$b", "pbkdf2_sha256$10$!!$??"):
            self.assertFalse(verify_password("x", stored), stored)

    def test_needs_rehash(self):
        self.assertTrue(needs_rehash(hash_password("pw", iterations=1000)))
        self.assertTrue(needs_rehash("garbage"))
        self.assertFalse(needs_rehash(f"pbkdf2_sha256${HASH_ITERATIONS}$c2FsdA$aGFzaA"))

    def test_parse_cookie_header(self):
        self.assertEqual(parse_cookie_header(None), {})
        self.assertEqual(parse_cookie_header("a=1; pm_session=tok=en ;junk; =x"), {"a": "1", "pm_session": "tok=en"})

    def test_admin_roles(self):
        self.assertTrue(AuthenticatedUser(1, "root", "super_admin", 1).is_admin)
        self.assertTrue(AuthenticatedUser(1, "boss", "admin", 1).is_admin)
        self.assertFalse(AuthenticatedUser(1, "pm", "project_manager", 1).is_admin)


class TestLoginRehash(BaseAPITestCase):
    def test_login_upgrades_weak_hash(self):
        with db.connect(self.db_path) as conn:
            user_id = db.create_user(
                conn,
                organization_id=self.org_id,
                username="legacy_user",
                password_hash=hash_password("pw", iterations=1000),
                role="team_member",
            )
        self.login("legacy_user", "pw")
        with db.connect(self.db_path) as conn:
            stored = str(db.get_user_by_id(conn, user_id)["password_hash"])
        self.assertFalse(needs_rehash(stored))
        self.assertTrue(verify_password("pw", stored))
