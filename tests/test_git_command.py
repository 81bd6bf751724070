import os
import shutil
import subprocess
import tempfile
import unittest
from unittest.mock import patch

import pygit2

from git2stats.git import GitCommandError, GitCommands, parse_git_log, parse_git_tags
from git2stats.git.parser import get_repo_info


def write_file(repo_dir, rel_path, text):
    path = os.path.join(repo_dir, rel_path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


class GitRepoTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.repo_dir = os.path.join(self.tmp, "sample")
        self.repo = pygit2.init_repository(self.repo_dir, initial_head="main")
        write_file(self.repo_dir, "a.py", "print('a')\nprint('b')\n")
        write_file(self.repo_dir, "src/b.py", "x = 1\n")

        index = self.repo.index
        index.add("a.py")
        index.add("src/b.py")
        index.write()
        tree = index.write_tree()
        sig = pygit2.Signature("Alice", "alice@example.com", 1705312800, 0)
        self.commit_id = self.repo.create_commit("HEAD", sig, sig, "initial import\n", tree, [])

        self.vcs = GitCommands()

    def tearDown(self):
        shutil.rmtree(self.tmp)


class TestRepositoryQueries(GitRepoTestCase):
    def test_current_branch(self):
        self.assertEqual(self.vcs.resolve_current_branch(self.repo_dir), "main")

    def test_repo_info(self):
        info = get_repo_info(self.vcs, self.repo_dir + os.sep)
        self.assertEqual(info.name, "sample")
        self.assertEqual(info.current_branch, "main")

    def test_tracked_files(self):
        self.assertEqual(sorted(self.vcs.list_tracked_files(self.repo_dir)), ["a.py", "src/b.py"])

    def test_not_a_repository(self):
        plain = os.path.join(self.tmp, "plain")
        os.makedirs(plain)
        with self.assertRaises(GitCommandError):
            self.vcs.resolve_current_branch(plain)
        with self.assertRaises(GitCommandError):
            self.vcs.list_tracked_files(plain)


@unittest.skipIf(shutil.which("git") is None, "git executable not available")
class TestGitExecutable(GitRepoTestCase):
    def test_log_round_trip(self):
        result = parse_git_log(self.vcs.read_log(self.repo_dir, "main"), "main")

        self.assertEqual(result.skipped, [])
        self.assertEqual(len(result.commits), 1)
        commit = result.commits[0]
        self.assertEqual(commit.sha, str(self.commit_id))
        self.assertEqual(commit.author_email, "alice@example.com")
        self.assertEqual(commit.message, "initial import")
        self.assertEqual(commit.additions, 3)
        self.assertEqual(commit.files_changed, 2)
        self.assertFalse(commit.is_merge)

    def test_tags(self):
        sig = pygit2.Signature("Tagger", "tagger@example.com", 1705395600, 0)
        self.repo.create_tag(
            "v1.0", self.commit_id, pygit2.enums.ObjectType.COMMIT, sig, "Release\n\nLine one\nLine two\n"
        )
        self.repo.references.create("refs/tags/light", self.commit_id)

        tags = {t.tag_name: t for t in parse_git_tags(self.vcs.list_tag_refs(self.repo_dir))}

        self.assertEqual(set(tags), {"v1.0", "light"})
        self.assertTrue(tags["v1.0"].is_annotated)
        self.assertEqual(tags["v1.0"].sha, str(self.commit_id))
        self.assertEqual(tags["v1.0"].tagger_email, "tagger@example.com")
        self.assertEqual(tags["v1.0"].message, "Release\n\nLine one\nLine two")
        self.assertFalse(tags["light"].is_annotated)
        self.assertIsNone(tags["light"].message)

    def test_branch_named_like_a_file(self):
        write_file(self.repo_dir, "main", "not a branch\n")
        index = self.repo.index
        index.add("main")
        index.write()
        sig = pygit2.Signature("Alice", "alice@example.com", 1705316400, 0)
        self.repo.create_commit("HEAD", sig, sig, "add main file\n", index.write_tree(), [self.commit_id])

        result = parse_git_log(self.vcs.read_log(self.repo_dir, "main"), "main")

        self.assertEqual([c.message for c in result.commits], ["add main file", "initial import"])

    def test_unknown_branch(self):
        with self.assertRaises(GitCommandError) as ctx:
            self.vcs.read_log(self.repo_dir, "no-such-branch")
        self.assertTrue(ctx.exception.stderr)


class TestCommandFailures(unittest.TestCase):
    def test_log_separates_revision_from_paths(self):
        done = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")
        with patch("git2stats.git.command.subprocess.run", return_value=done) as run:
            GitCommands().read_log("/tmp/x", "main")
        cmd = run.call_args.args[0]
        self.assertEqual(cmd[-1], "--")
        self.assertLess(cmd.index("main"), cmd.index("--"))

    def test_non_zero_exit(self):
        failed = subprocess.CompletedProcess(args=[], returncode=128, stdout="", stderr="fatal: bad revision")
        with patch("git2stats.git.command.subprocess.run", return_value=failed):
            with self.assertRaises(GitCommandError) as ctx:
                GitCommands().read_log("/tmp/x", "main")
        self.assertIn("fatal: bad revision", str(ctx.exception))

    def test_missing_executable(self):
        vcs = GitCommands(git_executable="/nonexistent/bin/git")
        with self.assertRaises(GitCommandError):
            vcs.list_tag_refs("/tmp/x")


if __name__ == "__main__":
    unittest.main()
