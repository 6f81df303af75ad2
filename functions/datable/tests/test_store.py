import unittest
from unittest.mock import MagicMock, patch

from datable.config import Settings
from datable.store import InMemoryReference, create_firebase_root, resolve


class InMemoryReferenceTests(unittest.TestCase):
    def setUp(self):
        self.root = InMemoryReference()

    def test_key_and_path(self):
        ref = self.root.child("tasks").child("abc123")
        self.assertEqual(ref.key, "abc123")
        self.assertEqual(ref.path, "/tasks/abc123")
        self.assertIsNone(self.root.key)
        self.assertEqual(self.root.path, "/")

    def test_child_accepts_slash_delimited_path(self):
        self.assertEqual(self.root.child("tasks/abc123").path, "/tasks/abc123")

    def test_child_rejects_invalid_keys(self):
        for bad in ("", "a.b", "a#b", "a[0]"):
            with self.subTest(path=bad):
                with self.assertRaises(ValueError):
                    self.root.child(bad)

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.root.child("nothing").get())
        self.assertIsNone(self.root.get())

    def test_set_replaces_subtree(self):
        ref = self.root.child("tasks").child("a")
        ref.set({"title": "x", "notes": "n"})
        ref.set({"title": "y"})
        self.assertEqual(ref.get(), {"title": "y"})
        self.assertEqual(self.root.get(), {"tasks": {"a": {"title": "y"}}})

    def test_set_none_raises(self):
        with self.assertRaises(ValueError):
            self.root.child("a").set(None)

    def test_set_drops_none_and_empty_values(self):
        ref = self.root.child("a")
        ref.set({"title": "x", "email": None, "labels": [], "meta": {}})
        self.assertEqual(ref.get(), {"title": "x"})

    def test_update_merges_top_level(self):
        ref = self.root.child("tasks").child("a")
        ref.set({"title": "x", "notes": "keep", "meta": {"a": 1, "b": 2}})
        ref.update({"title": "y", "meta": {"a": 3}})
        self.assertEqual(ref.get(), {"meta": {"a": 3}, "notes": "keep", "title": "y"})

    def test_update_with_none_removes_key(self):
        ref = self.root.child("a")
        ref.set({"title": "x", "notes": "n"})
        ref.update({"notes": None})
        self.assertEqual(ref.get(), {"title": "x"})

    def test_update_nested_paths(self):
        self.root.update({"tasks/a/title": "x", "tasks/b/title": "y"})
        self.assertEqual(
            self.root.child("tasks").get(),
            {"a": {"title": "x"}, "b": {"title": "y"}},
        )

    def test_update_requires_non_empty_dict(self):
        for bad in ({}, None, ["a"]):
            with self.subTest(value=bad):
                with self.assertRaises(ValueError):
                    self.root.child("a").update(bad)

    def test_delete_removes_subtree_and_empty_parents(self):
        self.root.child("tasks/a").set({"title": "x"})
        self.root.child("tasks/a").delete()
        self.assertIsNone(self.root.child("tasks").get())
        self.assertIsNone(self.root.get())

    def test_delete_missing_is_noop(self):
        self.root.child("tasks/a").set({"title": "x"})
        self.root.child("other/deep").delete()
        self.assertEqual(self.root.get(), {"tasks": {"a": {"title": "x"}}})

    def test_children_in_key_order(self):
        for key in ("c", "a", "b"):
            self.root.child("tasks").child(key).set({"id": key})
        self.assertEqual(list(self.root.child("tasks").get()), ["a", "b", "c"])

    def test_list_is_stored_as_index_keyed_children(self):
        tasks = self.root.child("tasks")
        tasks.set([None, {"id": "1"}, {"id": "2"}])

        self.assertEqual(self.root.child("tasks/1").get(), {"id": "1"})
        self.assertEqual(tasks.get(), [None, {"id": "1"}, {"id": "2"}])

    def test_write_under_list_keeps_siblings(self):
        tasks = self.root.child("tasks")
        tasks.set([None, {"id": "1"}, {"id": "2"}])

        self.root.child("tasks/1").set({"id": "1", "title": "x"})

        self.assertEqual(tasks.get(), [None, {"id": "1", "title": "x"}, {"id": "2"}])

    def test_delete_under_list(self):
        tasks = self.root.child("tasks")
        tasks.set([None, {"id": "1"}, {"id": "2"}])

        self.root.child("tasks/1").delete()

        self.assertEqual(tasks.get(), {"2": {"id": "2"}})
        self.assertIsNone(self.root.child("tasks/1").get())

    def test_sparse_integer_keys_read_as_mapping(self):
        self.root.child("tasks").update({"1": {"id": "1"}, "10": {"id": "10"}})

        self.assertEqual(list(self.root.child("tasks").get()), ["1", "10"])

    def test_integer_keys_ordered_numerically_first(self):
        self.root.child("tasks").update(
            {"b": 1, "10": 2, "a": 3, "9": 4, "07": 5}
        )

        self.assertEqual(list(self.root.child("tasks").get()), ["9", "10", "07", "a", "b"])

    def test_get_returns_copy(self):
        ref = self.root.child("a")
        ref.set({"tags": {"x": True}})
        ref.get()["tags"]["y"] = True
        self.assertEqual(ref.get(), {"tags": {"x": True}})

    def test_children_share_tree(self):
        self.root.child("tasks").child("a").set({"title": "x"})
        other = self.root.child("tasks")
        self.assertEqual(other.child("a").get(), {"title": "x"})


class ResolveTests(unittest.TestCase):
    def test_folds_segments_into_child_lookups(self):
        root = MagicMock()
        ref = resolve(root, ["tasks", "abc123"])
        root.child.assert_called_once_with("tasks")
        root.child.return_value.child.assert_called_once_with("abc123")
        self.assertIs(ref, root.child.return_value.child.return_value)

    def test_empty_path_is_root(self):
        root = InMemoryReference()
        self.assertIs(resolve(root, []), root)


class CreateFirebaseRootTests(unittest.TestCase):
    @patch("datable.store.db")
    @patch("datable.store.credentials")
    @patch("datable.store.firebase_admin")
    def test_initialises_default_app_once(self, mock_admin, mock_credentials, mock_db):
        mock_admin.get_app.side_effect = ValueError("no app")
        settings = Settings(
            _env_file=None,
            database_url="https://demo.firebaseio.test",
            credentials_path="/secrets/sa.json",
        )

        root = create_firebase_root(settings)

        mock_credentials.Certificate.assert_called_once_with("/secrets/sa.json")
        mock_admin.initialize_app.assert_called_once_with(
            mock_credentials.Certificate.return_value,
            {"databaseURL": "https://demo.firebaseio.test"},
        )
        mock_db.reference.assert_called_once_with(
            "/", app=mock_admin.initialize_app.return_value
        )
        self.assertIs(root, mock_db.reference.return_value)

    @patch("datable.store.db")
    @patch("datable.store.credentials")
    @patch("datable.store.firebase_admin")
    def test_uses_application_default_credentials(
        self, mock_admin, mock_credentials, mock_db
    ):
        mock_admin.get_app.side_effect = ValueError("no app")
        settings = Settings(
            _env_file=None,
            database_url="https://demo.firebaseio.test",
            credentials_path=None,
        )

        create_firebase_root(settings)

        mock_credentials.ApplicationDefault.assert_called_once_with()
        mock_credentials.Certificate.assert_not_called()

    @patch("datable.store.db")
    @patch("datable.store.firebase_admin")
    def test_reuses_existing_app(self, mock_admin, mock_db):
        settings = Settings(
            _env_file=None,
            database_url="https://demo.firebaseio.test",
            credentials_path=None,
        )

        create_firebase_root(settings)

        mock_admin.initialize_app.assert_not_called()
        mock_db.reference.assert_called_once_with(
            "/", app=mock_admin.get_app.return_value
        )

    def test_requires_database_url(self):
        with self.assertRaises(ValueError):
            create_firebase_root(Settings(database_url=None))


if __name__ == "__main__":
    unittest.main()
