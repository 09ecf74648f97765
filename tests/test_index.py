from __future__ import annotations

import csv
import io
import zipfile
from pathlib import Path

import pytest
import requests

import aozora.index as index
from aozora.index import (
    INDEX_FILENAME,
    IndexFetchError,
    IndexLoadError,
    ensure_index,
    load_candidates,
    load_index,
    resolve_data_dir,
)

_HEADER = ["作品ID", "作品名", "作品名読み"]


def _write_index(path: Path, rows: list[list[str]]) -> None:
    with path.open("w", encoding="utf-8-sig", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(_HEADER)
        writer.writerows(rows)


def _index_zip(rows: list[list[str]]) -> bytes:
    text = io.StringIO()
    writer = csv.writer(text)
    writer.writerow(_HEADER)
    writer.writerows(rows)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr(INDEX_FILENAME, text.getvalue().encode("utf-8"))
    return buffer.getvalue()


class _FakeResponse:
    def __init__(self, payload: bytes, status: int = 200) -> None:
        self._payload = payload
        self.status_code = status
        self.headers = {"Content-Length": str(len(payload))}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self._payload), 7):
            yield self._payload[start : start + 7]


def test_load_index_skips_header_and_bom(tmp_path: Path) -> None:
    path = tmp_path / INDEX_FILENAME
    _write_index(path, [["000773", "こころ", "こころ"], ["000127", "羅生門", "らしょうもん"]])
    rows = load_index(path)
    assert rows == [["000773", "こころ", "こころ"], ["000127", "羅生門", "らしょうもん"]]
    candidates = load_candidates(path)
    assert [c.title for c in candidates] == ["こころ", "羅生門"]


def test_load_index_missing_file(tmp_path: Path) -> None:
    with pytest.raises(IndexLoadError):
        load_index(tmp_path / "missing.csv")


def test_ensure_index_uses_cache(monkeypatch, tmp_path: Path) -> None:
    _write_index(tmp_path / INDEX_FILENAME, [])

    def _no_network(*args, **kwargs):
        raise AssertionError("network should not be used")

    monkeypatch.setattr(index.requests, "get", _no_network)
    status = ensure_index(tmp_path)
    assert status.downloaded is False
    assert status.path == tmp_path / INDEX_FILENAME


def test_ensure_index_downloads_and_extracts(monkeypatch, tmp_path: Path) -> None:
    payload = _index_zip([["000773", "こころ", "こころ"]])
    calls: dict[str, object] = {}

    def _fake_get(url, stream, timeout):
        calls["url"] = url
        calls["timeout"] = timeout
        return _FakeResponse(payload)

    monkeypatch.setattr(index.requests, "get", _fake_get)
    data_dir = tmp_path / "data"
    status = ensure_index(data_dir, url="https://example.test/index.zip", timeout=5.0)

    assert status.downloaded is True
    assert calls == {"url": "https://example.test/index.zip", "timeout": 5.0}
    assert load_index(status.path) == [["000773", "こころ", "こころ"]]
    assert not (data_dir / "tmp.zip").exists()


def test_ensure_index_force_redownloads(monkeypatch, tmp_path: Path) -> None:
    _write_index(tmp_path / INDEX_FILENAME, [])
    payload = _index_zip([["1", "新"]])
    monkeypatch.setattr(index.requests, "get", lambda url, stream, timeout: _FakeResponse(payload))
    status = ensure_index(tmp_path, force=True)
    assert status.downloaded is True
    assert load_index(status.path) == [["1", "新"]]


def test_ensure_index_wraps_transport_errors(monkeypatch, tmp_path: Path) -> None:
    def _offline(url, stream, timeout):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(index.requests, "get", _offline)
    with pytest.raises(IndexFetchError):
        ensure_index(tmp_path)
    assert not (tmp_path / "tmp.zip").exists()


def test_ensure_index_rejects_http_errors_and_bad_archives(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(index.requests, "get", lambda url, stream, timeout: _FakeResponse(b"", 404))
    with pytest.raises(IndexFetchError):
        ensure_index(tmp_path)

    monkeypatch.setattr(index.requests, "get", lambda url, stream, timeout: _FakeResponse(b"not a zip"))
    with pytest.raises(IndexFetchError):
        ensure_index(tmp_path)
    assert not (tmp_path / "tmp.zip").exists()


def test_resolve_data_dir_precedence(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AOZORA_DATA_DIR", str(tmp_path / "env"))
    assert resolve_data_dir(str(tmp_path / "flag")) == tmp_path / "flag"
    assert resolve_data_dir(None) == tmp_path / "env"
    monkeypatch.delenv("AOZORA_DATA_DIR")
    assert resolve_data_dir(None) == index.default_data_dir()
