# WORKFLOW: End-to-end test suite for the /api/v0/prices resource.
# Used by: CI pipelines, development testing, integration checks
# Test scenarios:
# 1. Upload statistics for ZIP and TAR archives
# 2. Error responses: 400 archive and filter errors, 413 oversized upload, 500 store failure
# 3. Filtered download, TAR download and export round trip
# 4. 405 for other methods, health endpoints
#
# Testing flow: POST archive -> Assert stats -> GET archive -> Assert CSV lines

import io
import zipfile

import pytest

from core.config import settings
from etl.archives import ArchiveKind, open_archive
from etl.errors import StoreError

PRICES_URL = f"{settings.api_prefix}/prices"
SAMPLE_CSV = "name,category,price\napple,fruit,100\nbread,bakery,50\napple,fruit,100\n"


def upload(client, data: bytes, archive_type: str = None, filename: str = "data.zip"):
    params = {"type": archive_type} if archive_type else None
    return client.post(PRICES_URL, params=params, files={"file": (filename, data, "application/octet-stream")})


def exported_lines(content: bytes, kind: ArchiveKind = ArchiveKind.ZIP):
    entry = open_archive(content, kind)[0]
    return entry.open().read().decode("utf-8").splitlines()


class TestUpload:

    def test_sample_upload(self, client, make_zip):
        response = upload(client, make_zip({"data.csv": SAMPLE_CSV}))

        assert response.status_code == 200
        assert response.json() == {
            "rows_seen": 3,
            "duplicates": 1,
            "rows_inserted": 2,
            "distinct_categories": 2,
            "price_sum": 150,
        }

    def test_tar_upload(self, client, make_tar):
        response = upload(client, make_tar({"data.csv": SAMPLE_CSV}), archive_type="tar", filename="data.tar")

        assert response.status_code == 200
        assert response.json()["rows_inserted"] == 2

    def test_header_only_upload(self, client, make_zip):
        response = upload(client, make_zip({"data.csv": "name,category,price\n"}))

        assert response.status_code == 200
        assert response.json()["rows_seen"] == 0
        assert response.json()["rows_inserted"] == 0

    def test_no_tabular_entries(self, client, make_zip):
        response = upload(client, make_zip({"readme.md": "# nothing"}))

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "NO_TABULAR_DATA"

    def test_archive_kind_mismatch(self, client, make_zip):
        response = upload(client, make_zip({"data.csv": SAMPLE_CSV}), archive_type="tar")

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "ARCHIVE_FORMAT"

    @pytest.mark.parametrize("patch", [{"compression": 99}, {"flags": 0x1}])
    def test_unreadable_zip_entry(self, client, make_zip, patch_zip_entry, patch):
        data = patch_zip_entry(make_zip({"data.csv": SAMPLE_CSV}), **patch)

        response = upload(client, data)

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "ARCHIVE_FORMAT"

    def test_sub_cent_prices_are_not_stored(self, client, make_zip):
        csv_text = "tea,drinks,1.001\ntea,drinks,1.002\ntea,drinks,1.10\ncoffee,drinks,2.20\n"

        response = upload(client, make_zip({"data.csv": csv_text}))

        assert response.json() == {
            "rows_seen": 4,
            "duplicates": 0,
            "rows_inserted": 2,
            "distinct_categories": 1,
            "price_sum": 3.3,
        }
        assert exported_lines(client.get(PRICES_URL).content) == [
            "name,category,price,date",
            "tea,drinks,1.10,",
            "coffee,drinks,2.20,",
        ]

    def test_unsupported_archive_type(self, client, make_zip):
        response = upload(client, make_zip({"data.csv": SAMPLE_CSV}), archive_type="rar")

        assert response.status_code == 400

    def test_missing_file_field(self, client):
        response = client.post(PRICES_URL, data={"other": "value"})

        assert response.status_code == 400

    def test_oversized_upload(self, client, make_zip, monkeypatch):
        monkeypatch.setattr(settings, "max_archive_bytes", 16)

        response = upload(client, make_zip({"data.csv": SAMPLE_CSV}))

        assert response.status_code == 413

    def test_store_failure(self, client, make_zip, monkeypatch):
        def broken_reset(self):
            raise StoreError("Database error: disk full")

        monkeypatch.setattr("db.store.PriceStore.reset", broken_reset)

        response = upload(client, make_zip({"data.csv": SAMPLE_CSV}))

        assert response.status_code == 500
        assert response.json()["detail"]["error_code"] == "STORE_ERROR"


class TestDownload:

    def test_filtered_download_after_upload(self, client, make_zip):
        upload(client, make_zip({"data.csv": SAMPLE_CSV}))

        response = client.get(PRICES_URL, params={"min": "60"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert exported_lines(response.content) == ["name,category,price,date", "apple,fruit,100.00,"]

    def test_round_trip(self, client, make_zip):
        upload(client, make_zip({"data.csv": "id,name,category,price,create_date\n"
                                              "1,tea,drinks,3,2024-05-01\n"
                                              "2,jam,preserves,4.25,\n"}))

        response = client.get(PRICES_URL)
        assert response.status_code == 200

        # the export is itself a valid upload producing the same snapshot
        reupload = upload(client, response.content)
        assert reupload.json()["rows_inserted"] == 2
        assert exported_lines(client.get(PRICES_URL).content) == [
            "name,category,price,date",
            "tea,drinks,3.00,2024-05-01",
            "jam,preserves,4.25,",
        ]

    def test_tar_download(self, client, make_zip):
        upload(client, make_zip({"data.csv": SAMPLE_CSV}))

        response = client.get(PRICES_URL, params={"type": "tar"})

        assert response.status_code == 200
        assert response.headers["content-disposition"] == "attachment; filename=data.tar"
        assert len(exported_lines(response.content, ArchiveKind.TAR)) == 3

    def test_empty_store(self, client):
        response = client.get(PRICES_URL)

        assert response.status_code == 200
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert archive.read("data.csv") == b"name,category,price,date\n"

    def test_invalid_filter(self, client):
        response = client.get(PRICES_URL, params={"start": "not-a-date"})

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "INVALID_FILTER"


def test_other_methods_are_not_allowed(client):
    assert client.put(PRICES_URL).status_code == 405
    assert client.delete(PRICES_URL).status_code == 405


def test_health_endpoints(client):
    assert client.get("/healthz").json()["status"] == "healthy"
    assert client.get("/livez").json()["status"] == "alive"

    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.json()["checks"] == {"database": True}
