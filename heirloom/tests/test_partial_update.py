import unittest

from heirloom.contacts import APPROVER_FIELDS, RECIPIENT_FIELDS
from heirloom.db import ApproverRow, NoteRow
from heirloom.errors import ValidationError
from heirloom.notes import NOTE_FIELDS
from heirloom.partial_update import FieldMap, build_changes
from heirloom.profiles import PROFILE_COLUMNS
from heirloom.schemas import ApproverUpdate, NoteUpdate, ProfileIn, RecipientUpdate


def wire_fields(model) -> set:
    return set(model().model_dump(by_alias=True))


class BuildChangesTests(unittest.TestCase):
    def test_only_supplied_fields_are_translated(self):
        changes = build_changes(
            {"approverName": "Ada", "approverContactNumber1": "555"}, APPROVER_FIELDS
        )
        self.assertEqual(
            changes,
            {"approver_name": "Ada", "approver_contact_number_1": "555"},
        )

    def test_explicit_none_is_kept(self):
        changes = build_changes({"attachment": None}, NOTE_FIELDS)
        self.assertEqual(changes, {"attachment": None})

    def test_immutable_fields_are_dropped(self):
        changes = build_changes(
            {"id": 9, "userId": "someone-else", "recipientTwitter": "@r"},
            RECIPIENT_FIELDS,
        )
        self.assertEqual(changes, {"recipient_twitter": "@r"})

    def test_empty_partial_is_empty_change_set(self):
        self.assertEqual(build_changes({}, NOTE_FIELDS), {})
        self.assertEqual(build_changes({"id": 1}, NOTE_FIELDS), {})

    def test_unknown_fields_are_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            build_changes({"approver_contact_number1": "555"}, APPROVER_FIELDS)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.details, ["approver_contact_number1"])


class FieldMapTests(unittest.TestCase):
    def test_unknown_column_fails_at_construction(self):
        with self.assertRaises(RuntimeError):
            FieldMap(ApproverRow, {"approverName": "name"})

    def test_immutable_field_cannot_be_mapped(self):
        with self.assertRaises(RuntimeError):
            FieldMap(NoteRow, {"userId": "user_id"})

    def test_colliding_columns_are_rejected(self):
        with self.assertRaises(RuntimeError):
            FieldMap(NoteRow, {"note": "note", "body": "note"})

    def test_maps_cover_every_request_field(self):
        immutable = {"id", "userId"}
        self.assertEqual(wire_fields(ApproverUpdate) - immutable, APPROVER_FIELDS.fields)
        self.assertEqual(wire_fields(RecipientUpdate) - immutable, RECIPIENT_FIELDS.fields)
        self.assertEqual(wire_fields(NoteUpdate) - immutable, NOTE_FIELDS.fields)
        self.assertEqual(wire_fields(ProfileIn), set(PROFILE_COLUMNS))


if __name__ == "__main__":
    unittest.main()
