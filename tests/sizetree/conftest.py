"""Shared fixtures for sizetree filesystem tests."""

import os

import pytest


@pytest.fixture
def sample_dir(tmp_path):
    """Create the directory ``t`` holding ``a.txt`` (10 bytes) and ``sub/b.txt`` (20 bytes)."""
    root = tmp_path / "t"
    root.mkdir()
    (root / "a.txt").write_bytes(b"x" * 10)
    sub = root / "sub"
    sub.mkdir()
    (sub / "b.txt").write_bytes(b"y" * 20)
    return root


class UnreadableEntry:
    """A directory entry whose metadata cannot be read."""

    def __init__(self, entry):
        self._entry = entry
        self.name = entry.name
        self.path = entry.path

    def stat(self, follow_symlinks=True):
        raise PermissionError(13, "Permission denied", self.path)

    def __getattr__(self, name):
        return getattr(self._entry, name)


class FaultyListing:
    """Context-managed iterator over a real ``os.scandir`` listing with injected faults."""

    def __init__(self, listing, faults, interrupted):
        self._listing = listing
        self._faults = faults
        self._interrupted = interrupted

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self._listing.close()

    def __iter__(self):
        for count, entry in enumerate(self._listing):
            if self._interrupted and count == 1:
                raise OSError(5, "Input/output error")
            if entry.path in self._faults.unreadable:
                yield UnreadableEntry(entry)
            else:
                yield entry


class FaultyScandir:
    """Stand-in for ``os.scandir`` failing on chosen paths."""

    def __init__(self):
        self.unlistable = set()
        self.unreadable = set()
        self.interrupted = set()
        self._scandir = os.scandir

    def __call__(self, path="."):
        path = os.fspath(path)
        if path in self.unlistable:
            raise PermissionError(13, "Permission denied", path)
        return FaultyListing(self._scandir(path), self, path in self.interrupted)


@pytest.fixture
def faulty_scandir(monkeypatch):
    scandir = FaultyScandir()
    monkeypatch.setattr(os, "scandir", scandir)
    return scandir


@pytest.fixture
def unlistable(faulty_scandir):
    """Make listing the given directories fail with a permission error."""
    return lambda path: faulty_scandir.unlistable.add(str(path))


@pytest.fixture
def unreadable(faulty_scandir):
    """Make reading the metadata of the given entries fail with a permission error."""
    return lambda path: faulty_scandir.unreadable.add(str(path))


@pytest.fixture
def interrupted(faulty_scandir):
    """Make listing the given directories fail after the first entry."""
    return lambda path: faulty_scandir.interrupted.add(str(path))


DEEP_NESTING = 1100


@pytest.fixture
def deep_dir(tmp_path):
    """Create a chain of ``DEEP_NESTING`` nested ``a`` directories ending in a 7-byte ``leaf``."""
    current = tmp_path
    for _ in range(DEEP_NESTING):
        current = current / "a"
        current.mkdir()
    (current / "leaf").write_bytes(b"l" * 7)

    yield tmp_path

    # Remove bottom-up; recursive removal would exceed the recursion limit.
    (current / "leaf").unlink()
    while current != tmp_path:
        current.rmdir()
        current = current.parent
