# WORKFLOW: Shared pytest fixtures for the Prices API test suite.
# Used by: Every test module under tests/
# Fixtures provided:
# 1. make_zip / make_tar - In-memory archives built from {name: content} mappings
# 2. patch_zip_entry - Rewrite compression method or flag bits of a ZIP entry
# 3. engine / session_factory / store - Per-test SQLite database installed as the app engine
# 4. client - FastAPI TestClient bound to the temporary database
#
# Every test gets its own database file, so store fixtures and the app see the same data.

import io
import struct
import tarfile
import zipfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from db import session as db_session
from db.store import PriceStore


def _make_zip(files):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def _make_tar(files):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as archive:
        for name, content in files.items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def _patch_zip_entry(data, compression=None, flags=None):
    # rewrite the first entry's local and central headers in place
    patched = bytearray(data)
    local = patched.find(b"PK\x03\x04")
    central = patched.find(b"PK\x01\x02")
    if compression is not None:
        struct.pack_into("<H", patched, local + 8, compression)
        struct.pack_into("<H", patched, central + 10, compression)
    if flags is not None:
        struct.pack_into("<H", patched, local + 6, flags)
        struct.pack_into("<H", patched, central + 8, flags)
    return bytes(patched)


@pytest.fixture
def make_zip():
    """Build an in-memory ZIP from a {name: content} mapping."""
    return _make_zip


@pytest.fixture
def make_tar():
    """Build an in-memory TAR from a {name: content} mapping."""
    return _make_tar


@pytest.fixture
def engine(tmp_path):
    """Temporary SQLite database with the prices schema, installed as the app engine."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'prices.db'}",
        connect_args={"check_same_thread": False},
    )
    db_session.override_engine(engine)
    db_session.init_db(engine)
    yield engine
    db_session.override_engine(None)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def store(session_factory):
    session = session_factory()
    try:
        yield PriceStore(session)
    finally:
        session.close()


@pytest.fixture
def client(engine):
    """FastAPI test client bound to the temporary database."""
    from api.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def patch_zip_entry():
    """Rewrite the compression method or flag bits of a ZIP's first entry."""
    return _patch_zip_entry
