import unittest
from unittest import mock

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from heirloom.contacts import ApproverRegistry, RecipientRegistry
from heirloom.db import ApproverRow, NoteRow, ProfileRow, RecipientRow
from heirloom.errors import ValidationError
from heirloom.notes import NoteLedger
from heirloom.profiles import ProfileStore, _dialect_insert
from heirloom.tests.support import approver, make_database, recipient, seed_user
from heirloom.users import ExternalIdentity, IdentityResolver, UserStore


class IdentityResolverTests(unittest.TestCase):
    def setUp(self):
        self.db = make_database()
        self.resolver = IdentityResolver(self.db)
        self.users = UserStore(self.db)

    def tearDown(self):
        self.db.dispose()

    def test_first_login_creates_user(self):
        user = self.resolver.resolve(
            ExternalIdentity(
                id="g-1", email="g1@example.com", name="Gee", picture="https://p/1"
            )
        )
        self.assertEqual(user.id, "g-1")
        self.assertEqual(user.provider, "google")
        self.assertEqual(user.picture, "https://p/1")
        self.assertEqual(user.last_login, user.created_at)
        self.assertEqual(self.users.get("g-1"), user)

    def test_repeat_login_only_touches_last_login(self):
        identity = ExternalIdentity(id="g-2", email="g2@example.com", name="Original")
        first = self.resolver.resolve(identity)
        second = self.resolver.resolve(
            ExternalIdentity(id="g-2", email="g2@example.com", name="Renamed Upstream")
        )
        self.assertEqual(second.name, "Original")
        self.assertEqual(second.created_at, first.created_at)
        self.assertGreaterEqual(second.last_login, first.last_login)
        self.assertEqual(len(self.users.list_all()), 1)

    def test_email_held_by_another_id_is_rejected(self):
        self.resolver.resolve(
            ExternalIdentity(id="g-3", email="shared@example.com", name="First")
        )
        with self.assertRaises(ValidationError) as ctx:
            self.resolver.resolve(
                ExternalIdentity(id="g-4", email="shared@example.com", name="Second")
            )
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual([u.id for u in self.users.list_all()], ["g-3"])

    def test_lost_first_login_race_returns_existing_user(self):
        identity = ExternalIdentity(id="g-5", email="g5@example.com", name="Racer")
        original = IdentityResolver._resolve

        def racing(resolver, identity, *, create):
            if create:
                # The other login commits first; this insert then conflicts.
                original(resolver, identity, create=True)
                raise IntegrityError("INSERT INTO users", {}, Exception("duplicate key"))
            return original(resolver, identity, create=create)

        with mock.patch.object(IdentityResolver, "_resolve", racing):
            user = self.resolver.resolve(identity)
        self.assertEqual(user.id, "g-5")
        self.assertEqual(len(self.users.list_all()), 1)


class UserStoreTests(unittest.TestCase):
    def setUp(self):
        self.db = make_database()
        self.users = UserStore(self.db)

    def tearDown(self):
        self.db.dispose()

    def count(self, row) -> int:
        with self.db.Session() as session:
            return session.execute(select(func.count()).select_from(row)).scalar_one()

    def test_list_all_newest_first(self):
        seed_user(self.db, "first")
        seed_user(self.db, "second")
        self.assertEqual([u.id for u in self.users.list_all()], ["second", "first"])

    def test_update_profile_ignores_empty_values(self):
        seed_user(self.db, "dana")
        updated = self.users.update_profile("dana", name="Dana S.", picture="")
        self.assertEqual(updated.name, "Dana S.")
        self.assertIsNone(updated.picture)
        unchanged = self.users.update_profile("dana")
        self.assertEqual(unchanged.name, "Dana S.")

    def test_update_profile_missing_user(self):
        self.assertIsNone(self.users.update_profile("ghost", name="Boo"))

    def test_delete_cascades_to_owned_rows(self):
        seed_user(self.db, "erin")
        keeper = seed_user(self.db, "keeper")
        ProfileStore(self.db).upsert("erin", {"contactNumber1": "555-0100"})
        ApproverRegistry(self.db).add("erin", approver("Ann"))
        added = RecipientRegistry(self.db).add("erin", recipient("Rae"))
        NoteLedger(self.db).add("erin", "bye", recipient_ids=[added.id])
        NoteLedger(self.db).add(keeper.id, "still here")

        self.assertTrue(self.users.delete("erin"))

        self.assertIsNone(self.users.get("erin"))
        for row in (ProfileRow, ApproverRow, RecipientRow):
            self.assertEqual(self.count(row), 0)
        self.assertEqual(self.count(NoteRow), 1)
        self.assertFalse(self.users.delete("erin"))


class ProfileStoreTests(unittest.TestCase):
    def setUp(self):
        self.db = make_database()
        self.user = seed_user(self.db, "fay")
        self.profiles = ProfileStore(self.db)

    def tearDown(self):
        self.db.dispose()

    def test_upsert_creates_then_replaces(self):
        created = self.profiles.upsert(
            self.user.id,
            {"age": 30, "contactNumber1": "555-0101", "twitterHandle": "@fay"},
        )
        self.assertEqual(created.age, 30)
        self.assertEqual(created.twitter_handle, "@fay")

        replaced = self.profiles.upsert(
            self.user.id, {"contactNumber1": "555-0102", "contactNumber2": "555-0103"}
        )
        self.assertEqual(replaced.id, created.id)
        self.assertEqual(replaced.created_at, created.created_at)
        self.assertEqual(replaced.contact_number_1, "555-0102")
        self.assertEqual(replaced.contact_number_2, "555-0103")
        self.assertIsNone(replaced.age)
        self.assertIsNone(replaced.twitter_handle)
        self.assertEqual(self.profiles.get(self.user.id), replaced)

    def test_primary_contact_is_required(self):
        with self.assertRaises(ValidationError):
            self.profiles.upsert(self.user.id, {"age": 40})
        self.assertIsNone(self.profiles.get(self.user.id))

    def test_age_bounds(self):
        for age in (12, 121):
            with self.assertRaises(ValidationError):
                self.profiles.upsert(self.user.id, {"age": age, "contactNumber1": "1"})
        for age in (13, 120):
            self.assertEqual(
                self.profiles.upsert(self.user.id, {"age": age, "contactNumber1": "1"}).age,
                age,
            )

    def test_upsert_needs_a_supported_dialect(self):
        with self.assertRaises(RuntimeError):
            _dialect_insert("mysql")

    def test_complete_profile(self):
        self.assertIsNone(self.profiles.complete("nobody"))

        bare = self.profiles.complete(self.user.id)
        self.assertEqual(bare.user.id, self.user.id)
        self.assertIsNone(bare.profile)
        self.assertEqual(bare.approvers, [])

        self.profiles.upsert(self.user.id, {"contactNumber1": "555-0104"})
        approvers = ApproverRegistry(self.db)
        first = approvers.add(self.user.id, approver("Gil"))
        second = approvers.add(self.user.id, approver("Hana"))

        full = self.profiles.complete(self.user.id)
        self.assertEqual(full.profile.contact_number_1, "555-0104")
        self.assertEqual([a.id for a in full.approvers], [first.id, second.id])


if __name__ == "__main__":
    unittest.main()
