"""Fixtures for createhome testing."""

import os
from pathlib import Path

import pytest
from pyfakefs.fake_filesystem import FakeFilesystem, set_gid, set_uid

from createhome.config import Config

from .support.filesystem import FaultyFilesystem
from .support.privileges import RecordingPrivileges


@pytest.fixture
def privileged_fs(fs: FakeFilesystem) -> FakeFilesystem:
    # We do our work pretending to be root
    set_uid(0)
    set_gid(0)
    os.umask(0o022)
    return fs


@pytest.fixture
def skeleton(privileged_fs: FakeFilesystem) -> Path:
    """Build a small skeleton tree under /etc/skel."""
    skel = Path("/etc/skel")
    privileged_fs.create_dir(skel, perm_bits=0o755)
    privileged_fs.create_file(skel / ".bashrc", contents="alias ll='ls -l'\n")
    privileged_fs.create_file(skel / ".profile", contents="umask 022\n")
    # pyfakefs only lets root past a parent directory it may not read when
    # following links, so copies of this directory must stay world-readable.
    privileged_fs.create_dir(skel / "bin", perm_bits=0o775)
    privileged_fs.create_file(skel / "bin" / "hello", contents="echo hi\n")
    os.chmod(skel / "bin" / "hello", 0o6755)
    os.symlink("/etc/skel/bin/hello", skel / "bin" / "greet")
    os.symlink("/usr/share/doc", skel / "doc")
    return skel


@pytest.fixture
def privileges() -> RecordingPrivileges:
    return RecordingPrivileges()


@pytest.fixture
def faulty_fs(privileged_fs: FakeFilesystem) -> FaultyFilesystem:
    return FaultyFilesystem()


@pytest.fixture
def config() -> Config:
    return Config(enabled=True, home_mode=0o755, directory_mode=0o711)


@pytest.fixture
def skeleton_config(skeleton: Path) -> Config:
    return Config(
        enabled=True,
        home_mode=0o755,
        directory_mode=0o711,
        skeleton_path=skeleton,
    )
