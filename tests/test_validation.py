import unittest
from datetime import datetime, timedelta, timezone

from git2stats.git.records import Author, FileChange, GitCommit, GitTag
from git2stats.validation import (
    validate_author,
    validate_commit,
    validate_email,
    validate_file_path,
    validate_repo_name,
    validate_sha,
    validate_tag,
)

from log_samples import SHA_1

NOW = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def make_commit(**overrides):
    fields = dict(
        sha=SHA_1,
        author_email="a@x.com",
        author_name="A",
        committed_at=NOW,
        message="msg",
        additions=1,
        deletions=0,
        files_changed=1,
        is_merge=False,
        branch="main",
    )
    fields.update(overrides)
    return GitCommit(**fields)


class TestFieldValidators(unittest.TestCase):
    def test_sha(self):
        self.assertTrue(validate_sha(SHA_1).valid)
        self.assertTrue(validate_sha("ABCDEF1").valid)
        self.assertFalse(validate_sha("abc12").valid)
        self.assertFalse(validate_sha("a" * 41).valid)
        self.assertFalse(validate_sha("xyz1234").valid)
        self.assertEqual(validate_sha("").error, "SHA cannot be empty")

    def test_email(self):
        self.assertTrue(validate_email("a@x.com").valid)
        self.assertFalse(validate_email("a@x").valid)
        self.assertFalse(validate_email("a b@x.com").valid)
        self.assertFalse(validate_email("").valid)
        long_email = "a" * 250 + "@x.com"
        self.assertEqual(validate_email(long_email).error, "Email exceeds 255 characters")

    def test_repo_name_and_path(self):
        self.assertTrue(validate_repo_name("repo").valid)
        self.assertFalse(validate_repo_name("  ").valid)
        self.assertFalse(validate_repo_name("r" * 256).valid)
        self.assertTrue(validate_file_path("src/a.py").valid)
        self.assertFalse(validate_file_path("").valid)
        self.assertFalse(validate_file_path("p" * 4097).valid)


class TestValidateCommit(unittest.TestCase):
    def test_valid(self):
        self.assertEqual(validate_commit(make_commit()), [])

    def test_collects_all_violations(self):
        errors = validate_commit(
            make_commit(sha="zz", author_email="nope", author_name="", additions=-1, message="m" * 65536)
        )
        self.assertEqual(len(errors), 5)
        self.assertIn("Author name cannot be empty", errors)
        self.assertIn("Addition/deletion/file counts cannot be negative", errors)
        self.assertIn("Commit message exceeds maximum length", errors)

    def test_invalid_date(self):
        self.assertEqual(validate_commit(make_commit(committed_at=1000)), ["Committed date is invalid"])

    def test_file_paths(self):
        commit = make_commit(file_changes=[FileChange("ok.py", 1, 0), FileChange("", 0, 0)])
        self.assertEqual(validate_commit(commit), ["File path cannot be empty"])

    def test_does_not_mutate(self):
        commit = make_commit(author_email="bad")
        validate_commit(commit)
        self.assertEqual(commit.author_email, "bad")


class TestValidateAuthor(unittest.TestCase):
    def test_valid(self):
        author = Author("a@x.com", "A", NOW, NOW + timedelta(days=1), 2)
        self.assertEqual(validate_author(author), [])

    def test_dates_and_count(self):
        author = Author("a@x.com", "A", NOW + timedelta(days=1), NOW, 0)
        errors = validate_author(author)
        self.assertIn("First commit date cannot be after last commit date", errors)
        self.assertIn("Author must have at least 1 commit", errors)


class TestValidateTag(unittest.TestCase):
    def test_lightweight_ignores_tagger_fields(self):
        tag = GitTag("v1", SHA_1, None, "not-an-email", None, None, False)
        self.assertEqual(validate_tag(tag), [])

    def test_annotated_checks_present_fields(self):
        tag = GitTag("v1", SHA_1, "T" * 256, "not-an-email", NOW, "m" * 65536, True)
        errors = validate_tag(tag)
        self.assertEqual(len(errors), 3)

    def test_annotated_without_tagger(self):
        tag = GitTag("v1", SHA_1, None, None, None, None, True)
        self.assertEqual(validate_tag(tag), [])

    def test_name_and_sha(self):
        errors = validate_tag(GitTag("", "nothex!", None, None, None, None, False))
        self.assertIn("Tag name cannot be empty", errors)
        self.assertEqual(len(errors), 2)


if __name__ == "__main__":
    unittest.main()
