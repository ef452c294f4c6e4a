import time
import unittest
import uuid

from sqlalchemy import func, select

from backend.db import PageRecord, PageSummary, PostgresDbClient, UserRow, _utcnow


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    @classmethod
    def setUpClass(cls):
        cls.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def setUp(self):
        # Shared database across tests; isolate by owner.
        self.owner = f"user-{uuid.uuid4().hex[:8]}"

    def test_create_and_get_project(self):
        project = self.db.create_project(self.owner, "2024 Planner", "desc")
        self.assertEqual(project.owner_id, self.owner)
        self.assertEqual(project.created_at, project.updated_at)
        self.assertIsNotNone(project.created_at.tzinfo)

        fetched = self.db.get_project(project.id)
        self.assertIsNotNone(fetched)
        self.assertEqual(fetched.title, "2024 Planner")
        self.assertEqual(fetched.description, "desc")
        self.assertEqual(fetched.pages, [])

    def test_create_project_when_user_row_already_committed(self):
        # Another request recorded this user between our start and our insert.
        with self.db.Session() as session:
            session.add(UserRow(id=self.owner, created_at=_utcnow()))
            session.commit()

        first = self.db.create_project(self.owner, "First")
        second = self.db.create_project(self.owner, "Second")
        self.assertEqual({first.owner_id, second.owner_id}, {self.owner})

        with self.db.Session() as session:
            count = session.execute(
                select(func.count()).select_from(UserRow).where(UserRow.id == self.owner)
            ).scalar()
        self.assertEqual(count, 1)
        self.assertEqual(len(self.db.list_projects(self.owner)), 2)

    def test_get_missing(self):
        self.assertIsNone(self.db.get_project("missing"))
        self.assertIsNone(self.db.get_page("missing"))
        self.assertIsNone(self.db.update_project("missing", {"title": "x"}))
        self.assertIsNone(self.db.update_page("missing", {"page_type": "x"}))
        self.assertFalse(self.db.delete_project("missing"))
        self.assertFalse(self.db.delete_page("missing"))

    def test_create_page_in_missing_project_raises(self):
        with self.assertRaises(KeyError):
            self.db.create_page("missing", page_type="notes", page_data="{}")

    def test_page_numbers_and_ordering(self):
        project = self.db.create_project(self.owner, "Planner")
        first = self.db.create_page(project.id, page_type="monthly", page_data="{}", month=3)
        second = self.db.create_page(project.id, page_type="notes", page_data="{}")
        self.assertEqual((first.page_number, second.page_number), (1, 2))
        self.assertEqual(first.month, 3)

        self.db.create_page(project.id, page_type="goal", page_data="{}", page_number=10)
        after = self.db.create_page(project.id, page_type="goal", page_data="{}")
        self.assertEqual(after.page_number, 11)

        detail = self.db.get_project(project.id, include_pages=True)
        self.assertEqual([p.page_number for p in detail.pages], [1, 2, 10, 11])
        self.assertIsInstance(detail.pages[0], PageRecord)

    def test_list_projects_scoped_with_summaries(self):
        older = self.db.create_project(self.owner, "Older")
        newer = self.db.create_project(self.owner, "Newer")
        self.db.create_project(f"{self.owner}-other", "Not mine")
        time.sleep(0.01)
        page = self.db.create_page(older.id, page_type="habit", page_data="{}")

        projects = self.db.list_projects(self.owner)
        self.assertEqual([p.id for p in projects], [older.id, newer.id])
        self.assertEqual(projects[0].pages, [PageSummary(id=page.id, page_type="habit")])
        self.assertEqual(projects[1].pages, [])

    def test_update_project_only_given_fields(self):
        project = self.db.create_project(self.owner, "Planner", "kept")
        updated = self.db.update_project(project.id, {"cover_image": "c.png"})
        self.assertEqual(updated.description, "kept")
        self.assertEqual(updated.cover_image, "c.png")
        self.assertGreaterEqual(updated.updated_at, project.updated_at)

        updated = self.db.update_project(project.id, {"description": None})
        self.assertIsNone(updated.description)
        self.assertEqual(updated.title, "Planner")

    def test_page_mutations_touch_project(self):
        project = self.db.create_project(self.owner, "Planner")
        time.sleep(0.01)
        page = self.db.create_page(project.id, page_type="daily", page_data="{}")
        touched = self.db.get_project(project.id).updated_at
        self.assertGreater(touched, project.updated_at)

        time.sleep(0.01)
        updated = self.db.update_page(page.id, {"page_data": '{"objects": []}'})
        self.assertEqual(updated.page_data, '{"objects": []}')
        self.assertEqual(updated.page_type, "daily")
        after_update = self.db.get_project(project.id).updated_at
        self.assertGreater(after_update, touched)

        time.sleep(0.01)
        self.assertTrue(self.db.delete_page(page.id))
        self.assertGreater(self.db.get_project(project.id).updated_at, after_update)
        self.assertIsNone(self.db.get_page(page.id))

    def test_delete_project_cascades(self):
        project = self.db.create_project(self.owner, "Planner")
        pages = [
            self.db.create_page(project.id, page_type="notes", page_data="{}")
            for _ in range(3)
        ]
        keeper = self.db.create_project(self.owner, "Keeper")
        kept = self.db.create_page(keeper.id, page_type="notes", page_data="{}")

        self.assertTrue(self.db.delete_project(project.id))
        self.assertIsNone(self.db.get_project(project.id))
        for page in pages:
            self.assertIsNone(self.db.get_page(page.id))
        self.assertIsNotNone(self.db.get_page(kept.id))


if __name__ == "__main__":
    unittest.main()
