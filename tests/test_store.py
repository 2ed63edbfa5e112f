import logging
import threading

import pytest

from docmark.io.ids import generate_id
from docmark.io.store import (
    DocumentStore,
    fingerprint,
    load_raw,
    save_raw,
    sync_document,
)
from docmark.schemas import Document


def test_generate_id():
    first, second = generate_id("chapter"), generate_id("chapter")
    assert first.startswith("chapter-")
    assert len(first) == len("chapter-") + 12
    assert first != second


def test_save_raw_is_atomic(tmp_path):
    path = tmp_path / "nested" / "doc.md"
    save_raw(path, "one\n")
    save_raw(path, "two\n")
    assert load_raw(path) == "two\n"
    assert [p.name for p in path.parent.iterdir()] == ["doc.md"]


def test_load_raw_keeps_line_endings(tmp_path):
    path = tmp_path / "crlf.md"
    path.write_bytes(b"a\r\nb\r\n")
    assert load_raw(path) == "a\r\nb\r\n"


def test_fingerprint():
    assert fingerprint("abc") == fingerprint("abc")
    assert fingerprint("abc") != fingerprint("abd")


def test_sync_document_bumps_version():
    document = Document()
    sync_document(document, now="2024-01-01T00:00:00.000Z")
    assert document.metadata.version == 1
    assert document.metadata.updated_at == "2024-01-01T00:00:00.000Z"
    sync_document(document)
    assert document.metadata.version == 2
    assert document.metadata.updated_at.endswith("Z")


def test_create_and_load(tmp_path, id_factory):
    path = tmp_path / "notes.md"
    store = DocumentStore(id_factory=id_factory)
    created = store.create(path)
    assert created.metadata.title == "notes"
    assert created.metadata.version == 1

    fresh = DocumentStore().load(path)
    assert fresh.id == created.id
    assert fresh.metadata.version == 1
    assert [c.heading.text for c in fresh.chapters] == ["New Chapter"]


def test_save_skips_unchanged(tmp_path, sample_markdown, caplog):
    path = tmp_path / "sample.md"
    path.write_text(sample_markdown, encoding="utf-8")
    store = DocumentStore()
    store.load(path)

    caplog.set_level(logging.INFO)
    assert store.save(path) is False
    assert "unchanged" in caplog.text
    assert path.read_text(encoding="utf-8") == sample_markdown


def test_save_writes_changes(tmp_path, sample_markdown):
    path = tmp_path / "sample.md"
    path.write_text(sample_markdown, encoding="utf-8")
    store = DocumentStore()
    document = store.get(path)
    document.chapters[0].paragraphs[0].text = "Rewritten."

    assert store.save(path) is True
    assert document.metadata.version == 1
    reloaded = DocumentStore().load(path)
    assert reloaded.chapters[0].paragraphs[0].text == "Rewritten."
    assert reloaded.metadata.version == 1
    assert reloaded.metadata.updated_at == document.metadata.updated_at

    assert store.save(path) is False


def test_get_uses_cache(tmp_path, sample_markdown):
    path = tmp_path / "sample.md"
    path.write_text(sample_markdown, encoding="utf-8")
    store = DocumentStore()
    assert store.get(path) is store.get(str(path))
    store.remove(path)
    assert path.exists()
    assert store.get(path) is not None


def test_title_filled_from_file_name(tmp_path):
    path = tmp_path / "untitled-draft.md"
    path.write_text("Just text.\n", encoding="utf-8")
    assert DocumentStore().load(path).metadata.title == "untitled-draft"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        DocumentStore().load(tmp_path / "missing.md")


def test_concurrent_saves_are_serialized(tmp_path, sample_markdown):
    path = tmp_path / "sample.md"
    path.write_text(sample_markdown, encoding="utf-8")
    store = DocumentStore()
    document = store.get(path)

    def edit_and_save(n):
        document.preface = f"Edit {n}"
        store.save(path)

    threads = [threading.Thread(target=edit_and_save, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    reloaded = DocumentStore().load(path)
    assert reloaded.preface.startswith("Edit ")
    assert 1 <= reloaded.metadata.version <= 4
