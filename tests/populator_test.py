"""Test copying skeleton directories."""

import os
import stat
from pathlib import Path

import pytest
from pyfakefs.fake_filesystem import FakeFilesystem
from structlog.testing import capture_logs

from createhome.exceptions import (
    ModeError,
    OwnershipError,
    SkeletonReadError,
    SkeletonWriteError,
    SymlinkError,
)
from createhome.services.populator import SkeletonPopulator
from createhome.storage.filesystem import Filesystem

from .support.filesystem import FaultyFilesystem


@pytest.fixture
def home(privileged_fs: FakeFilesystem) -> Path:
    homedir = Path("/home/alice")
    privileged_fs.create_dir(homedir, perm_bits=0o755)
    os.chown(homedir, 1001, 1001)
    return homedir


def test_copy_directory(skeleton: Path, home: Path) -> None:
    populator = SkeletonPopulator(Filesystem())
    report = populator.copy_directory(skeleton, home, 1001, 1001)

    assert report.ok
    assert report.attempted == 6
    assert (home / ".bashrc").read_text() == "alias ll='ls -l'\n"
    assert (home / ".profile").read_text() == "umask 022\n"
    assert (home / "bin" / "hello").read_text() == "echo hi\n"

    bindir = (home / "bin").stat()
    assert stat.S_ISDIR(bindir.st_mode)
    assert (bindir.st_uid, bindir.st_gid) == (1001, 1001)
    assert stat.S_IMODE(bindir.st_mode) == 0o775

    for path in (home / ".bashrc", home / "bin" / "hello"):
        st = path.lstat()
        assert (st.st_uid, st.st_gid) == (1001, 1001)


def test_setid_bits_stripped(skeleton: Path, home: Path) -> None:
    populator = SkeletonPopulator(Filesystem())
    populator.copy_directory(skeleton, home, 1001, 1001)

    st = (home / "bin" / "hello").stat()
    assert stat.S_IMODE(st.st_mode) == 0o755
    assert not st.st_mode & (stat.S_ISUID | stat.S_ISGID)

    # The skeleton itself is unchanged.
    st = (skeleton / "bin" / "hello").stat()
    assert stat.S_IMODE(st.st_mode) == 0o6755


def test_symlinks(skeleton: Path, home: Path) -> None:
    populator = SkeletonPopulator(Filesystem())
    populator.copy_directory(skeleton, home, 1001, 1001)

    greet = home / "bin" / "greet"
    assert greet.is_symlink()
    assert os.readlink(greet) == "/home/alice/bin/hello"
    st = greet.lstat()
    assert (st.st_uid, st.st_gid) == (1001, 1001)

    doc = home / "doc"
    assert doc.is_symlink()
    assert os.readlink(doc) == "/usr/share/doc"


def test_symlink_rewriting(privileged_fs: FakeFilesystem) -> None:
    src = Path("/etc/skel")
    privileged_fs.create_dir(src / "sub")
    privileged_fs.create_dir("/home/bob")
    os.symlink("/etc/skel/sub/target", src / "inside")
    os.symlink("/etc/skeleton/sub/target", src / "lookalike")
    os.symlink("sub/target", src / "relative")
    os.symlink("/etc/skel", src / "root")

    populator = SkeletonPopulator(Filesystem())
    dst = Path("/home/bob")
    for name in ("inside", "lookalike", "relative", "root"):
        populator.copy_symlink(src, src / name, dst, dst / name, 1002, 1002)

    assert os.readlink(dst / "inside") == "/home/bob/sub/target"
    assert os.readlink(dst / "lookalike") == "/etc/skeleton/sub/target"
    assert os.readlink(dst / "relative") == "sub/target"
    assert os.readlink(dst / "root") == "/home/bob"


def test_nested_symlink_rewriting(
    privileged_fs: FakeFilesystem, home: Path
) -> None:
    src = Path("/etc/skel")
    privileged_fs.create_dir(src / "a", perm_bits=0o755)
    os.chmod(src, 0o755)
    privileged_fs.create_file(src / "b" / "f", contents="f\n")
    os.chmod(src / "b", 0o755)
    os.symlink("/etc/skel/a", src / "top")
    os.symlink("/etc/skel/b/f", src / "a" / "link")
    os.symlink("/etc/skel", src / "a" / "root")

    populator = SkeletonPopulator(Filesystem())
    report = populator.populate(src, home, 1001, 1001)

    assert report.ok
    assert os.readlink(home / "top") == "/home/alice/a"
    assert os.readlink(home / "a" / "link") == "/home/alice/b/f"
    assert os.readlink(home / "a" / "root") == "/home/alice"
    assert (home / "a" / "link").read_text() == "f\n"


def test_existing_file_not_overwritten(skeleton: Path, home: Path) -> None:
    (home / ".bashrc").write_text("# mine\n")

    populator = SkeletonPopulator(Filesystem())
    report = populator.copy_directory(skeleton, home, 1001, 1001)

    assert not report.ok
    assert list(report.failed) == [skeleton / ".bashrc"]
    assert (home / ".bashrc").read_text() == "# mine\n"
    assert (home / ".profile").read_text() == "umask 022\n"
    assert (home / "bin" / "hello").exists()


def test_unstattable_entry_skipped(
    skeleton: Path, home: Path, faulty_fs: FaultyFilesystem
) -> None:
    faulty_fs.fail("lstat", skeleton / ".bashrc")

    populator = SkeletonPopulator(faulty_fs)
    with capture_logs() as logs:
        report = populator.copy_directory(skeleton, home, 1001, 1001)

    assert list(report.failed) == [skeleton / ".bashrc"]
    assert not (home / ".bashrc").exists()
    assert (home / ".profile").exists()
    assert (home / "bin" / "hello").exists()
    assert (home / "doc").is_symlink()
    levels = {e["log_level"] for e in logs if ".bashrc" in e["event"]}
    assert levels == {"debug"}


def test_other_types_skipped(
    skeleton: Path, home: Path, faulty_fs: FaultyFilesystem
) -> None:
    fifo = skeleton / "fifo"
    fifo.touch()
    faulty_fs.fake_modes[fifo] = stat.S_IFIFO | 0o644

    populator = SkeletonPopulator(faulty_fs)
    report = populator.copy_directory(skeleton, home, 1001, 1001)

    assert report.ok
    assert report.skipped == [fifo]
    assert not (home / "fifo").exists()


def test_unreadable_subdirectory(
    skeleton: Path, home: Path, faulty_fs: FaultyFilesystem
) -> None:
    faulty_fs.fail("scandir_names", skeleton / "bin")

    populator = SkeletonPopulator(faulty_fs)
    report = populator.copy_directory(skeleton, home, 1001, 1001)

    assert list(report.failed) == [skeleton / "bin"]
    assert (home / "bin").is_dir()
    assert not (home / "bin" / "hello").exists()
    assert (home / ".profile").exists()


def test_uncreatable_subdirectory(
    skeleton: Path, home: Path, faulty_fs: FaultyFilesystem
) -> None:
    faulty_fs.fail("mkdir", home / "bin")

    populator = SkeletonPopulator(faulty_fs)
    report = populator.copy_directory(skeleton, home, 1001, 1001)

    assert list(report.failed) == [skeleton / "bin"]
    assert ("open_read", skeleton / "bin" / "hello") not in faulty_fs.calls
    assert (home / ".bashrc").exists()


def test_copy_file_errors(
    skeleton: Path, home: Path, faulty_fs: FaultyFilesystem
) -> None:
    populator = SkeletonPopulator(faulty_fs)
    src = skeleton / ".profile"

    faulty_fs.fail("open_read", src)
    with pytest.raises(SkeletonReadError):
        populator.copy_file(src, home / "a", 1001, 1001, 0o644)
    assert not (home / "a").exists()

    src = skeleton / ".bashrc"
    faulty_fs.fail("create_exclusive", home / "b")
    with pytest.raises(SkeletonWriteError):
        populator.copy_file(src, home / "b", 1001, 1001, 0o644)


def test_copy_file_write_error(
    skeleton: Path, home: Path, faulty_fs: FaultyFilesystem
) -> None:
    populator = SkeletonPopulator(faulty_fs)
    dst = home / ".bashrc"
    faulty_fs.fail("write", dst)

    with capture_logs() as logs:
        with pytest.raises(SkeletonWriteError):
            populator.copy_file(skeleton / ".bashrc", dst, 1001, 1001, 0o640)

    # Ownership and mode are still set after a failed transfer.
    st = dst.stat()
    assert (st.st_uid, st.st_gid) == (1001, 1001)
    assert stat.S_IMODE(st.st_mode) == 0o640
    assert dst.read_text() == ""
    assert any(e["log_level"] == "warning" for e in logs)


def test_copy_file_attribute_errors(
    skeleton: Path, home: Path, faulty_fs: FaultyFilesystem
) -> None:
    populator = SkeletonPopulator(faulty_fs)
    dst = home / ".bashrc"
    faulty_fs.fail("chown", dst)
    faulty_fs.fail("chmod", dst)

    with capture_logs() as logs:
        with pytest.raises(OwnershipError):
            populator.copy_file(skeleton / ".bashrc", dst, 1001, 1001, 0o640)

    assert dst.read_text() == "alias ll='ls -l'\n"
    warnings = [e["event"] for e in logs if e["log_level"] == "warning"]
    assert len(warnings) == 2
    assert ("chmod", dst) in faulty_fs.calls

    faulty_fs.fail("chmod", home / "x")
    with pytest.raises(ModeError):
        populator.copy_file(
            skeleton / ".profile", home / "x", 1001, 1001, 0o640
        )


def test_copy_symlink_errors(
    skeleton: Path, home: Path, faulty_fs: FaultyFilesystem
) -> None:
    populator = SkeletonPopulator(faulty_fs)
    link = skeleton / "doc"

    faulty_fs.fail("readlink", link)
    with pytest.raises(SymlinkError, match="reading link"):
        populator.copy_symlink(skeleton, link, home, home / "doc", 1001, 1)

    link = skeleton / "bin" / "greet"
    (home / "greet").touch()
    with pytest.raises(SymlinkError, match="symlinking"):
        populator.copy_symlink(
            skeleton, link, home, home / "greet", 1001, 1001
        )

    faulty_fs.fail("lchown", home / "greet2")
    with pytest.raises(OwnershipError):
        populator.copy_symlink(
            skeleton, link, home, home / "greet2", 1001, 1001
        )
    assert (home / "greet2").is_symlink()


def test_populate_refuses_bad_skeleton(
    privileged_fs: FakeFilesystem, home: Path
) -> None:
    populator = SkeletonPopulator(Filesystem())

    report = populator.populate(Path("/nonexistent"), home, 1001, 1001)
    assert list(report.failed) == [Path("/nonexistent")]

    privileged_fs.create_file("/etc/skelfile")
    report = populator.populate(Path("/etc/skelfile"), home, 1001, 1001)
    assert list(report.failed) == [Path("/etc/skelfile")]

    privileged_fs.create_dir("/tmp/skel", perm_bits=0o777)
    os.chmod("/tmp/skel", 0o777)
    privileged_fs.create_file("/tmp/skel/.bashrc")
    report = populator.populate(Path("/tmp/skel"), home, 1001, 1001)
    assert "world-writable" in report.failed[Path("/tmp/skel")]
    assert not (home / ".bashrc").exists()


def test_populate(skeleton: Path, home: Path) -> None:
    populator = SkeletonPopulator(Filesystem())
    report = populator.populate(skeleton, home, 1001, 1001)

    assert report.ok
    assert str(report) == "6 copied, 0 failed, 0 skipped"
    assert sorted(p.name for p in home.iterdir()) == [
        ".bashrc",
        ".profile",
        "bin",
        "doc",
    ]
