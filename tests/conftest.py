"""Fixtures for ossmultipart testing."""
import pathlib
import shutil
from collections.abc import Generator

import pytest

from ossmultipart.transport.local import LocalTransport
from tests.mocks.transport import MockTransport


@pytest.fixture
def storage_path(tmp_path: pathlib.Path) -> Generator:
    path = tmp_path / "oss-tests"
    path.mkdir()
    try:
        yield str(path)
    finally:
        shutil.rmtree(path)


@pytest.fixture
def work_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """Directory for local source / destination files and checkpoints."""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def local_transport(storage_path: str) -> LocalTransport:
    return LocalTransport(path=storage_path)


@pytest.fixture
def mock_transport(storage_path: str) -> MockTransport:
    return MockTransport(path=storage_path)
