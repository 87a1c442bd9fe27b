import asyncio
import tempfile
import unittest
from pathlib import Path

from cukedash.services.feature_index import FeatureIndex
from cukedash.services.workspace_files import LocalWorkspaceFiles


LOGIN_FEATURE = "\n".join(
    [
        "Feature: Login",            # line 1
        "  In order to use the app",
        "  As a user",
        "  I want to sign in",
        "",
        "  Scenario: Valid creds",   # line 6
        "    Given valid credentials",
        "    Then I am signed in",
        "",
        "  Scenario: Bad creds",     # line 10
        "    Given bad credentials",
        "    Then I see an error",
        "",
    ]
)

LOGOUT_FEATURE = "Feature: Logout\n\n  Scenario: Sign out\n    When I sign out\n"


class _FakeWorkspaceFiles:
    def __init__(self, documents: dict[str, str], unreadable: set[str] | None = None) -> None:
        self.documents = dict(documents)
        self.unreadable = unreadable or set()
        self.list_calls: list[tuple[str, str | None]] = []
        self.read_calls: list[str] = []

    async def list_matching_files(self, glob_pattern, exclude_pattern=None):
        self.list_calls.append((glob_pattern, exclude_pattern))
        return list(self.documents)

    async def read_full_text(self, file_path):
        self.read_calls.append(file_path)
        if file_path in self.unreadable:
            raise PermissionError(f"denied: {file_path}")
        return self.documents[file_path]


class FeatureIndexTests(unittest.IsolatedAsyncioTestCase):
    def _index(self, documents: dict[str, str], **kwargs) -> tuple[FeatureIndex, _FakeWorkspaceFiles]:
        files = _FakeWorkspaceFiles(documents, **kwargs)
        return FeatureIndex(files), files

    async def test_rebuild_indexes_records_in_file_order(self) -> None:
        index, _ = self._index({"/ws/login.feature": LOGIN_FEATURE, "/ws/logout.feature": LOGOUT_FEATURE})

        await index.rebuild()

        self.assertEqual([r.name for r in index.records], ["Login", "Logout"])
        login = index.find_by_name("Login")
        self.assertEqual(login.filePath, "/ws/login.feature")
        self.assertEqual(login.lineNumber, 0)
        self.assertEqual(login.scenarioLineNumbers.get("Valid creds"), 5)
        self.assertEqual(login.scenarioLineNumbers.get("Bad creds"), 9)

    async def test_rebuild_is_idempotent_for_unchanged_files(self) -> None:
        index, _ = self._index({"/ws/login.feature": LOGIN_FEATURE, "/ws/logout.feature": LOGOUT_FEATURE})

        await index.rebuild()
        first = [r.model_dump() for r in index.records]
        await index.rebuild()
        second = [r.model_dump() for r in index.records]

        self.assertEqual(first, second)

    async def test_rebuild_replaces_instead_of_merging(self) -> None:
        index, files = self._index({"/ws/login.feature": LOGIN_FEATURE, "/ws/logout.feature": LOGOUT_FEATURE})
        await index.rebuild()

        del files.documents["/ws/logout.feature"]
        files.documents["/ws/login.feature"] = "Feature: Login v2\n  Scenario: Only\n"
        await index.rebuild()

        self.assertEqual(len(index), 1)
        self.assertIsNone(index.find_by_name("Login"))
        self.assertIsNone(index.find_by_name("Logout"))
        self.assertEqual(index.find_by_path("/ws/login.feature").name, "Login v2")

    async def test_rebuild_with_no_files_clears_the_cache(self) -> None:
        index, files = self._index({"/ws/login.feature": LOGIN_FEATURE})
        await index.rebuild()

        files.documents.clear()
        with self.assertLogs("cukedash.index", level="INFO") as logs:
            await index.rebuild()

        self.assertEqual(index.records, ())
        self.assertTrue(any("cleared" in line for line in logs.output))

    async def test_unreadable_file_does_not_affect_other_files(self) -> None:
        index, _ = self._index(
            {"/ws/login.feature": LOGIN_FEATURE, "/ws/locked.feature": "Feature: Locked\n"},
            unreadable={"/ws/locked.feature"},
        )

        with self.assertLogs("cukedash.parser", level="ERROR"):
            await index.rebuild()

        self.assertEqual([r.name for r in index.records], ["Login"])
        self.assertIsNone(index.find_by_path("/ws/locked.feature"))

    async def test_ensure_initialized_builds_once_when_populated(self) -> None:
        index, files = self._index({"/ws/login.feature": LOGIN_FEATURE})

        await index.ensure_initialized()
        await index.ensure_initialized()

        self.assertEqual(len(files.list_calls), 1)
        self.assertEqual(len(index), 1)

    async def test_ensure_initialized_rescans_every_time_while_empty(self) -> None:
        index, files = self._index({})

        await index.ensure_initialized()
        await index.ensure_initialized()

        self.assertEqual(len(files.list_calls), 2)

    async def test_find_by_name_returns_first_of_duplicates(self) -> None:
        index, _ = self._index(
            {
                "/ws/a.feature": "Feature: Shared\n  Scenario: From A\n",
                "/ws/b.feature": "Feature: Shared\n  Scenario: From B\n",
            }
        )
        await index.rebuild()

        record = index.find_by_name("Shared")

        self.assertEqual(record.filePath, "/ws/a.feature")

    async def test_lookups_miss_with_none(self) -> None:
        index, _ = self._index({"/ws/login.feature": LOGIN_FEATURE})
        await index.rebuild()

        self.assertIsNone(index.find_by_name("Nope"))
        self.assertIsNone(index.find_by_path("/ws/nope.feature"))
        self.assertIsNone(index.find_by_scenario("Nope"))
        self.assertIsNone(index.find_by_path_suffix(""))

    async def test_find_by_scenario_and_path_suffix(self) -> None:
        index, _ = self._index({"/ws/features/login.feature": LOGIN_FEATURE, "/ws/logout.feature": LOGOUT_FEATURE})
        await index.rebuild()

        self.assertEqual(index.find_by_scenario("Sign out").name, "Logout")
        self.assertEqual(index.find_by_path_suffix("features/login.feature").name, "Login")
        self.assertEqual(index.find_by_path_suffix("./features/login.feature").name, "Login")
        self.assertIsNone(index.find_by_path_suffix("gin.feature"))

    async def test_returned_records_do_not_alias_the_cache(self) -> None:
        index, _ = self._index({"/ws/login.feature": LOGIN_FEATURE})
        await index.rebuild()
        before = [r.model_dump() for r in index.records]

        index.records[0].add_scenario("Injected", 99)
        index.find_by_name("Login").scenarioNames.append("Injected")
        index.find_by_path("/ws/login.feature").name = "Renamed"

        self.assertEqual([r.model_dump() for r in index.records], before)
        self.assertIsNotNone(index.find_by_name("Login"))
        self.assertIsNone(index.find_by_scenario("Injected"))

    async def test_cancelled_rebuild_keeps_previous_cache(self) -> None:
        index, files = self._index({"/ws/login.feature": LOGIN_FEATURE})
        await index.rebuild()
        files.documents["/ws/logout.feature"] = LOGOUT_FEATURE

        cancel = asyncio.Event()
        cancel.set()
        completed = await index.rebuild(cancel=cancel)

        self.assertFalse(completed)
        self.assertEqual([r.name for r in index.records], ["Login"])

    async def test_handle_change_triggers_full_rebuild(self) -> None:
        index, files = self._index({"/ws/login.feature": LOGIN_FEATURE})
        await index.rebuild()

        files.documents["/ws/logout.feature"] = LOGOUT_FEATURE
        await index.handle_change("created", "/ws/logout.feature")

        self.assertEqual(len(files.list_calls), 2)
        self.assertIsNotNone(index.find_by_name("Logout"))
        self.assertEqual(files.read_calls.count("/ws/login.feature"), 2)

    async def test_handle_change_rejects_unknown_change_type(self) -> None:
        index, _ = self._index({})

        with self.assertRaises(ValueError):
            await index.handle_change("renamed", "/ws/x.feature")

    async def test_close_discards_records(self) -> None:
        index, _ = self._index({"/ws/login.feature": LOGIN_FEATURE})
        await index.rebuild()

        index.close()

        self.assertTrue(index.is_closed)
        self.assertEqual(len(index), 0)

    async def test_isolated_instances_do_not_share_state(self) -> None:
        first, _ = self._index({"/ws/login.feature": LOGIN_FEATURE})
        second, _ = self._index({"/ws/logout.feature": LOGOUT_FEATURE})

        await first.rebuild()
        await second.rebuild()

        self.assertIsNone(first.find_by_name("Logout"))
        self.assertIsNone(second.find_by_name("Login"))


class FeatureIndexFilesystemTests(unittest.IsolatedAsyncioTestCase):
    async def test_rebuild_from_local_workspace_honours_excludes(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "features").mkdir()
            (root / "node_modules" / "pkg").mkdir(parents=True)
            (root / "features" / "login.feature").write_text(LOGIN_FEATURE, encoding="utf-8")
            (root / "logout.feature").write_text(LOGOUT_FEATURE, encoding="utf-8")
            (root / "node_modules" / "pkg" / "vendored.feature").write_text("Feature: Vendored\n", encoding="utf-8")
            (root / "features" / "notes.md").write_text("Feature: Not a feature file\n", encoding="utf-8")

            index = FeatureIndex(LocalWorkspaceFiles(root))
            await index.rebuild()

            names = [r.name for r in index.records]
            self.assertEqual(names, ["Logout", "Login"])
            login = index.find_by_name("Login")
            self.assertEqual(Path(login.filePath), (root / "features" / "login.feature").resolve())


if __name__ == "__main__":
    unittest.main()
