import os
import shutil
import tempfile
import unittest

from git2stats.scanner import discover_repositories


class TestDiscoverRepositories(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def make_repo(self, *parts, git_file=False):
        path = os.path.join(self.tmp, *parts)
        os.makedirs(path, exist_ok=True)
        if git_file:
            # worktrees and submodules carry a .git file instead of a directory
            with open(os.path.join(path, ".git"), "w", encoding="utf-8") as f:
                f.write("gitdir: /elsewhere\n")
        else:
            os.makedirs(os.path.join(path, ".git"))
        return path

    def test_finds_nested_repositories_in_order(self):
        b = self.make_repo("b")
        a = self.make_repo("group", "a")
        wt = self.make_repo("group", "worktree", git_file=True)

        self.assertEqual(discover_repositories([self.tmp]), [b, a, wt])

    def test_does_not_descend_into_repositories(self):
        outer = self.make_repo("outer")
        self.make_repo("outer", "vendor", "inner")

        self.assertEqual(discover_repositories([self.tmp]), [outer])

    def test_hidden_and_ignored_directories(self):
        self.make_repo(".cache", "repo")
        self.make_repo("node_modules", "pkg")
        skipped = self.make_repo("archive", "old")
        kept = self.make_repo("work", "app")

        found = discover_repositories([self.tmp], ignore=["node_modules", skipped])
        self.assertEqual(found, [kept])

    def test_scan_directory_is_itself_a_repository(self):
        repo = self.make_repo("single")
        self.assertEqual(discover_repositories([repo]), [repo])

    def test_missing_scan_directory(self):
        repo = self.make_repo("r")
        found = discover_repositories([os.path.join(self.tmp, "missing"), self.tmp])
        self.assertEqual(found, [repo])


if __name__ == "__main__":
    unittest.main()
