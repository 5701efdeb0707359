import unittest

from workbench.db import PostgresDbClient
from workbench.errors import StoreError
from workbench.typing_stats import TypingTestInput, get_typing_stats, submit_typing_test


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    @classmethod
    def setUpClass(cls):
        cls.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def test_create_and_find_user(self):
        user = self.db.create_user("pg-sub-1", "Ada", "ada@example.com")
        self.assertEqual(user.max_typing_speed, 0)
        self.assertEqual(user.average_typing_speed, 0)

        by_subject = self.db.find_user_by_subject("pg-sub-1")
        self.assertEqual(by_subject.user_id, user.user_id)
        by_id = self.db.get_user(user.user_id)
        self.assertEqual(by_id.email, "ada@example.com")
        self.assertIsNone(self.db.find_user_by_subject("pg-missing"))
        self.assertIsNone(self.db.get_user("missing"))

    def test_duplicate_subject_raises_store_error(self):
        self.db.create_user("pg-dup", "Ada", None)
        with self.assertRaises(StoreError):
            self.db.create_user("pg-dup", "Ada again", None)
        # The session is usable again after the rollback.
        self.assertIsNotNone(self.db.find_user_by_subject("pg-dup"))

    def test_update_user_stats(self):
        user = self.db.create_user("pg-stats", "Ada", None)
        self.db.update_user_stats(
            user.user_id, max_typing_speed=88.5, average_typing_speed=71
        )
        stored = self.db.get_user(user.user_id)
        self.assertEqual(stored.max_typing_speed, 88.5)
        self.assertEqual(stored.average_typing_speed, 71)

    def test_typing_tests_are_scoped_and_ordered(self):
        user = self.db.create_user("pg-typist", "Ada", None)
        other = self.db.create_user("pg-other", "Bob", None)
        for wpm in (40, 50, 60):
            self.db.insert_typing_test(
                user.user_id, wpm=wpm, accuracy=95, mistakes=1, duration=30
            )
        self.db.insert_typing_test(
            other.user_id, wpm=200, accuracy=99, mistakes=0, duration=30
        )

        oldest_first = self.db.list_typing_tests(user.user_id)
        self.assertEqual([t.wpm for t in oldest_first], [40, 50, 60])
        newest_first = self.db.list_typing_tests(user.user_id, newest_first=True)
        self.assertEqual([t.wpm for t in newest_first], [60, 50, 40])
        self.assertIsNotNone(newest_first[0].timestamp.tzinfo)

    def test_submit_and_stats_against_sql_store(self):
        user = self.db.create_user("pg-submit", "Ada", None)
        submit_typing_test(
            self.db,
            user,
            TypingTestInput(wpm=60, accuracy=95, mistakes=2, duration=30),
        )
        result = submit_typing_test(
            self.db,
            user,
            TypingTestInput(wpm=80, accuracy=90, mistakes=4, duration=30),
        )
        self.assertEqual((result.max_speed, result.avg_speed), (80, 70))

        stats = get_typing_stats(self.db, user)
        self.assertEqual(stats.max_typing_speed, 80)
        self.assertEqual(stats.average_typing_speed, 70)
        self.assertEqual(stats.last_test.wpm, 80)
        self.assertEqual(len(stats.all_tests), 2)

    def test_todo_ownership(self):
        owner = self.db.create_user("pg-todo-owner", "Ada", None)
        intruder = self.db.create_user("pg-todo-intruder", "Eve", None)
        todo = self.db.create_todo(owner.user_id, "water plants")

        self.assertIsNone(
            self.db.update_todo(intruder.user_id, todo.todo_id, completed=True)
        )
        self.assertFalse(self.db.delete_todo(intruder.user_id, todo.todo_id))

        updated = self.db.update_todo(owner.user_id, todo.todo_id, completed=True)
        self.assertTrue(updated.completed)
        self.assertEqual(len(self.db.list_todos(owner.user_id)), 1)
        self.assertTrue(self.db.delete_todo(owner.user_id, todo.todo_id))
        self.assertEqual(self.db.list_todos(owner.user_id), [])

    def test_calculations(self):
        user = self.db.create_user("pg-calc", "Ada", None)
        self.assertIsNone(self.db.last_calculation(user.user_id))
        self.db.add_calculation(user.user_id, "1+1", "2")
        self.db.add_calculation(user.user_id, "2+2", "4")

        self.assertEqual(self.db.last_calculation(user.user_id).result, "4")
        history = self.db.list_calculations(user.user_id)
        self.assertEqual([c.expression for c in history], ["2+2", "1+1"])


if __name__ == "__main__":
    unittest.main()
