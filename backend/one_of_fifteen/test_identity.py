from unittest import TestCase

from .identity import SessionIdentityStore


class SessionIdentityStoreTests(TestCase):
    def test_token_is_stable(self):
        storage = {}
        store = SessionIdentityStore("1-of-15", storage)
        token = store.get_or_create()

        self.assertEqual(store.get_or_create(), token)
        self.assertEqual(storage, {"game_session_1-of-15": token})
        # a reload of the same tab reads the same storage
        self.assertEqual(SessionIdentityStore("1-of-15", storage).get_or_create(), token)

    def test_tabs_do_not_share(self):
        self.assertNotEqual(
            SessionIdentityStore("g").get_or_create(), SessionIdentityStore("g").get_or_create()
        )

    def test_games_use_separate_keys(self):
        storage = {}
        a = SessionIdentityStore("a", storage).get_or_create()
        b = SessionIdentityStore("b", storage).get_or_create()
        self.assertNotEqual(a, b)
        self.assertEqual(set(storage), {"game_session_a", "game_session_b"})

    def test_clear_mints_new_identity(self):
        storage = {}
        store = SessionIdentityStore("g", storage)
        token = store.get_or_create()
        store.clear()
        self.assertEqual(storage, {})
        self.assertNotEqual(store.get_or_create(), token)
