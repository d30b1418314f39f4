"""
pytest suite for create_hardlink and mirror_tree.

Most cases mirror a small hand-built tree:

src/
├── a.txt
├── sub/
│   ├── b.txt
│   └── deeper/
│       └── c.txt
└── empty/
"""

import errno
import os
import threading
import time

import pytest

from config import COUNT_CONFIRMED, SPECIAL_WARN
from core import LinkTask, MirrorResult, create_hardlink, mirror_tree
from errors import (
    AlreadyExistsError,
    LinkFailure,
    NestedDestinationError,
    SourceNotADirectoryError,
    TraversalError,
)
from generator import generate_tree
from link_index import verify_mirror


@pytest.fixture
def src(tmp_path):
    root = tmp_path / "src"
    (root / "sub" / "deeper").mkdir(parents=True)
    (root / "empty").mkdir()
    (root / "a.txt").write_text("alpha")
    (root / "sub" / "b.txt").write_text("beta")
    (root / "sub" / "deeper" / "c.txt").write_text("gamma")
    return root


def same_inode(a, b) -> bool:
    sa, sb = os.stat(a), os.stat(b)
    return (sa.st_dev, sa.st_ino) == (sb.st_dev, sb.st_ino)


# ---------------------------------------------------------------------------
# create_hardlink
# ---------------------------------------------------------------------------

def test_create_hardlink_shares_storage(tmp_path):
    source = tmp_path / "orig"
    source.write_text("before")
    dest = tmp_path / "link"

    create_hardlink(source, dest)

    assert same_inode(source, dest)
    assert os.stat(source).st_nlink == 2
    dest.write_text("after")
    assert source.read_text() == "after"


def test_create_hardlink_rejects_existing_destination(tmp_path):
    source = tmp_path / "orig"
    source.write_text("x")
    dest = tmp_path / "taken"
    dest.write_text("y")

    with pytest.raises(LinkFailure) as excinfo:
        create_hardlink(source, dest)
    assert isinstance(excinfo.value.cause, FileExistsError)
    assert dest.read_text() == "y"


def test_create_hardlink_rejects_directory_source(tmp_path):
    (tmp_path / "dir").mkdir()

    with pytest.raises(LinkFailure) as excinfo:
        create_hardlink(tmp_path / "dir", tmp_path / "link")
    assert excinfo.value.cause.errno == errno.EPERM
    assert not (tmp_path / "link").exists()


def test_create_hardlink_rejects_symlink_source(tmp_path):
    (tmp_path / "target").write_text("x")
    os.symlink(tmp_path / "target", tmp_path / "sym")

    with pytest.raises(LinkFailure) as excinfo:
        create_hardlink(tmp_path / "sym", tmp_path / "link")
    assert excinfo.value.cause.errno == errno.EPERM
    assert not os.path.lexists(tmp_path / "link")


def test_create_hardlink_missing_source(tmp_path):
    with pytest.raises(LinkFailure) as excinfo:
        create_hardlink(tmp_path / "missing", tmp_path / "link")
    assert isinstance(excinfo.value.cause, FileNotFoundError)


# ---------------------------------------------------------------------------
# mirror_tree: structure and counts
# ---------------------------------------------------------------------------

def test_mirror_small_tree(src, tmp_path):
    dst = tmp_path / "dst"
    result = mirror_tree(src, dst, worker_count=3)

    assert isinstance(result, MirrorResult)
    # dst itself, sub, sub/deeper, empty
    assert result.directories == 4
    assert result.files_submitted == 3
    assert result.links_created == 3
    assert result.links_failed == 0
    assert result.items_created == 7
    assert (dst / "empty").is_dir()
    assert same_inode(src / "sub" / "deeper" / "c.txt", dst / "sub" / "deeper" / "c.txt")
    assert verify_mirror(src, dst).ok


def test_generate_then_link_end_to_end(tmp_path):
    t1, t2 = tmp_path / "t1", tmp_path / "t2"
    generated = generate_tree(t1, 200)
    assert generated.items_created == 200

    result = mirror_tree(t1, t2, worker_count=4)

    assert result.items_created == 204
    assert result.directories == 4
    assert result.links_created == 200
    report = verify_mirror(t1, t2)
    assert report.ok
    assert report.files == 200
    assert report.directories == 3


def test_mirror_empty_source(tmp_path):
    (tmp_path / "src").mkdir()
    result = mirror_tree(tmp_path / "src", tmp_path / "dst", worker_count=2)

    assert result.items_created == 1
    assert list((tmp_path / "dst").iterdir()) == []


def test_mirror_deep_chain(tmp_path):
    current = tmp_path / "src"
    current.mkdir()
    for _ in range(200):
        current = current / "d"
        current.mkdir()
    (current / "leaf").write_text("x")

    result = mirror_tree(tmp_path / "src", tmp_path / "dst", worker_count=2)

    assert result.directories == 201
    assert result.links_created == 1
    assert (tmp_path / "dst" / os.path.join(*["d"] * 200) / "leaf").is_file()


def test_elapsed_and_throughput(src, tmp_path):
    result = mirror_tree(src, tmp_path / "dst", worker_count=1)

    assert result.elapsed > 0
    assert result.throughput == pytest.approx(result.items_created / result.elapsed)


def test_throughput_zero_without_elapsed_time():
    assert MirrorResult(source_root="s", dest_root="d", directories=1).throughput == 0.0


def test_progress_callback(tmp_path):
    generate_tree(tmp_path / "src", 130)
    seen = []
    mirror_tree(tmp_path / "src", tmp_path / "dst", worker_count=2, progress=seen.append, progress_interval=50)

    # 130 files + 3 directories
    assert seen == [50, 100]


# ---------------------------------------------------------------------------
# mirror_tree: ordering and concurrency
# ---------------------------------------------------------------------------

def test_parent_directory_exists_before_submission(tmp_path):
    generate_tree(tmp_path / "src", 500)
    parents_present = []

    def checking_link(task: LinkTask):
        parents_present.append(os.path.isdir(os.path.dirname(task.destination)))
        create_hardlink(task.source, task.destination)

    result = mirror_tree(tmp_path / "src", tmp_path / "dst", worker_count=8, link_fn=checking_link)

    assert len(parents_present) == 500
    assert all(parents_present)
    assert result.links_created == 500


def test_worker_count_is_respected(tmp_path):
    generate_tree(tmp_path / "src", 120)
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def slow_link(task: LinkTask):
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.002)
        create_hardlink(task.source, task.destination)
        with lock:
            state["active"] -= 1

    mirror_tree(tmp_path / "src", tmp_path / "dst", worker_count=3, link_fn=slow_link)

    assert 1 <= state["peak"] <= 3


# ---------------------------------------------------------------------------
# mirror_tree: failures inside the run
# ---------------------------------------------------------------------------

def test_link_failures_keep_optimistic_count(src, tmp_path):
    def flaky_link(task: LinkTask):
        if task.source.endswith("b.txt"):
            raise LinkFailure(task.source, task.destination, OSError("simulated"))
        create_hardlink(task.source, task.destination)

    result = mirror_tree(src, tmp_path / "dst", worker_count=2, link_fn=flaky_link)

    assert result.files_submitted == 3
    assert result.links_created == 2
    assert result.links_failed == 1
    assert result.items_created == 7
    assert [f.source for f in result.link_failures] == [str(src / "sub" / "b.txt")]
    assert not (tmp_path / "dst" / "sub" / "b.txt").exists()


def test_confirmed_counting_excludes_failed_links(src, tmp_path):
    def failing_link(task: LinkTask):
        raise RuntimeError("always")

    result = mirror_tree(src, tmp_path / "dst", worker_count=2, counting=COUNT_CONFIRMED, link_fn=failing_link)

    assert result.items_created == 4
    assert result.links_failed == 3
    assert all(isinstance(f, LinkFailure) for f in result.link_failures)


def test_unreadable_subtree_is_skipped(src, tmp_path, monkeypatch):
    real_scandir = os.scandir
    bad = str(src / "sub")

    def scandir(path="."):
        if os.fspath(path) == bad:
            raise PermissionError(13, "Permission denied", bad)
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)
    dst = tmp_path / "dst"
    result = mirror_tree(src, dst, worker_count=2)

    assert len(result.traversal_errors) == 1
    assert isinstance(result.traversal_errors[0], TraversalError)
    assert result.traversal_errors[0].path == bad
    # sub is still mirrored as an empty directory; siblings are unaffected
    assert (dst / "sub").is_dir()
    assert not (dst / "sub" / "b.txt").exists()
    assert (dst / "empty").is_dir()
    assert (dst / "a.txt").is_file()
    assert result.files_submitted == 1


def test_failed_directory_creation_abandons_subtree(src, tmp_path, monkeypatch):
    real_mkdir = os.mkdir
    dst = tmp_path / "dst"
    bad = str(dst / "sub")

    def mkdir(path, *args, **kwargs):
        if os.fspath(path) == bad:
            raise PermissionError(13, "Permission denied", bad)
        return real_mkdir(path, *args, **kwargs)

    monkeypatch.setattr(os, "mkdir", mkdir)
    result = mirror_tree(src, dst, worker_count=2)

    assert [e.path for e in result.traversal_errors] == [str(src / "sub")]
    # dst itself and empty; sub is not counted
    assert result.directories == 2
    assert result.files_submitted == 1
    assert not (dst / "sub").exists()
    assert (dst / "empty").is_dir()
    assert same_inode(src / "a.txt", dst / "a.txt")


class FailingScandir:
    """Stands in for a scandir iterator that raises after yielding `entries`."""

    def __init__(self, path, entries):
        self.path = path
        self.entries = entries

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def __iter__(self):
        yield from self.entries
        raise OSError(5, "Input/output error", self.path)


def test_iteration_error_keeps_entries_read_before_it(tmp_path, monkeypatch):
    src = tmp_path / "src"
    (src / "flaky").mkdir(parents=True)
    for name in ("a", "b", "c"):
        (src / "flaky" / name).write_text(name)
    (src / "sibling").write_text("s")
    real_scandir = os.scandir
    bad = str(src / "flaky")
    with real_scandir(bad) as it:
        first_two = sorted(it, key=lambda e: e.name)[:2]

    def scandir(path="."):
        if os.fspath(path) == bad:
            return FailingScandir(bad, first_two)
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)
    dst = tmp_path / "dst"
    result = mirror_tree(src, dst, worker_count=2)

    assert [e.path for e in result.traversal_errors] == [bad]
    assert sorted(p.name for p in (dst / "flaky").iterdir()) == ["a", "b"]
    assert (dst / "sibling").is_file()
    assert result.directories == 2
    assert result.files_submitted == 3
    assert result.links_failed == 0


def test_depth_not_limited_by_open_file_limit(tmp_path):
    resource = pytest.importorskip("resource")
    open_fds = len(os.listdir("/proc/self/fd")) if os.path.isdir("/proc/self/fd") else 64
    limit = open_fds + 20
    depth = limit + 40

    current = tmp_path / "src"
    current.mkdir()
    for _ in range(depth):
        current = current / "d"
        current.mkdir()
    (current / "leaf").write_text("x")

    soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    resource.setrlimit(resource.RLIMIT_NOFILE, (min(limit, hard), hard))
    try:
        result = mirror_tree(tmp_path / "src", tmp_path / "dst", worker_count=2)
    finally:
        resource.setrlimit(resource.RLIMIT_NOFILE, (soft, hard))

    assert result.traversal_errors == []
    assert result.directories == depth + 1
    assert result.links_created == 1
    assert same_inode(current / "leaf", tmp_path / "dst" / os.path.join(*["d"] * depth) / "leaf")


def test_special_entries_are_skipped(src, tmp_path):
    os.symlink(src / "a.txt", src / "link_to_a")
    os.symlink(src / "sub", src / "link_to_sub")
    os.mkfifo(src / "pipe")
    dst = tmp_path / "dst"

    result = mirror_tree(src, dst, worker_count=2)

    assert result.skipped == 3
    assert result.items_created == 7
    assert not os.path.lexists(dst / "link_to_a")
    assert not os.path.lexists(dst / "link_to_sub")
    assert not os.path.lexists(dst / "pipe")


def test_special_entries_warn_policy(src, tmp_path):
    os.symlink(src / "a.txt", src / "link_to_a")

    result = mirror_tree(src, tmp_path / "dst", worker_count=1, special_entries=SPECIAL_WARN)

    assert result.skipped == 1
    assert result.links_failed == 0


# ---------------------------------------------------------------------------
# mirror_tree: preflight
# ---------------------------------------------------------------------------

def test_existing_destination_is_untouched(src, tmp_path):
    dst = tmp_path / "dst"
    dst.mkdir()
    (dst / "keep").write_text("k")

    with pytest.raises(AlreadyExistsError):
        mirror_tree(src, dst)
    assert [p.name for p in dst.iterdir()] == ["keep"]


def test_source_file_is_not_a_directory(tmp_path):
    (tmp_path / "file").write_text("x")

    with pytest.raises(SourceNotADirectoryError):
        mirror_tree(tmp_path / "file", tmp_path / "dst")
    assert not (tmp_path / "dst").exists()


def test_missing_source_is_not_a_directory(tmp_path):
    with pytest.raises(NotADirectoryError):
        mirror_tree(tmp_path / "missing", tmp_path / "dst")


def test_destination_inside_source(src):
    with pytest.raises(NestedDestinationError):
        mirror_tree(src, src / "sub" / "mirror")
    assert not (src / "sub" / "mirror").exists()


@pytest.mark.parametrize(
    "kwargs",
    [{"worker_count": 0}, {"counting": "maybe"}, {"special_entries": "follow"}],
)
def test_invalid_arguments(src, tmp_path, kwargs):
    with pytest.raises(ValueError):
        mirror_tree(src, tmp_path / "dst", **kwargs)
    assert not (tmp_path / "dst").exists()
