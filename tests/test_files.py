"""Tests for memosync.files: note layout, resources and property block."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_record, make_resource
from memosync.errors import TransportError
from memosync.files import (
    Materializer,
    build_properties,
    extract_hash_tags,
    is_image,
    normalize_tags,
    relative_path,
    sanitize_filename,
)
from memosync.types import EnrichedContent


class FakeDownloader:
    """Returns bytes per resource name; raises for names in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.requested = []

    def __call__(self, resource):
        self.requested.append(resource.name)
        if resource.name in self.failing:
            raise TransportError("HTTP 500", status_code=500)
        return f"bytes of {resource.filename}".encode()


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def materializer(storage, downloader, utc):
    return Materializer(storage, "memos", downloader, tz=utc)


class TestSanitizeFilename:
    def test_removes_forbidden_characters(self):
        assert sanitize_filename('a/b\\c:d*e?f"g<h>i|j') == "abcdefghij"

    def test_strips_leading_hashes_and_collapses_space(self):
        assert sanitize_filename("## My   plan\tfor  today") == "My plan for today"

    def test_empty_falls_back(self):
        assert sanitize_filename("") == "untitled"
        assert sanitize_filename("///") == "untitled"

    def test_keeps_unicode(self):
        assert sanitize_filename("周报 2024") == "周报 2024"


class TestRelativePath:
    def test_sibling_resources(self):
        assert relative_path("2024/05/note.md", "2024/05/resources/img.png") == "resources/img.png"

    def test_climbs_out_of_directory(self):
        assert relative_path("memos/2024/05/note.md", "memos/2024/04/resources/a.png") == (
            "../04/resources/a.png"
        )

    def test_no_common_prefix(self):
        assert relative_path("a/b/note.md", "c/d.png") == "../../c/d.png"


class TestTags:
    def test_closed_tags_normalized(self):
        assert normalize_tags("about #work# and #life#") == "about #work and #life"

    def test_extract_hash_tags(self):
        assert extract_hash_tags("#idea then #work# and #idea again") == ["idea", "work"]

    def test_url_fragment_is_not_a_tag(self):
        assert extract_hash_tags("see https://example.com/page#anchor and #real") == ["real"]

    def test_tags_in_fenced_code_ignored(self):
        content = "#kept\n```python\n#comment inside code\n```\nafter #also"
        assert extract_hash_tags(content) == ["kept", "also"]

    def test_is_image(self):
        assert is_image("PHOTO.JPG")
        assert is_image("x.webp")
        assert not is_image("report.pdf")
        assert not is_image("README")


class TestBuildProperties:
    def test_exact_layout(self, utc):
        record = make_record(content="Hello #work", visibility="PRIVATE")

        assert build_properties(record, utc) == (
            "---\n"
            "> [!note]- Memo Properties\n"
            "> - Created: 2024-05-15 12:00:00\n"
            "> - Updated: 2024-05-16 08:30:00\n"
            "> - Type: memo\n"
            "> - Tags: [work]\n"
            "> - ID: memos/1\n"
            "> - Visibility: private\n"
        )

    def test_no_tags_line_without_tags(self, utc):
        assert "Tags:" not in build_properties(make_record(), utc)


class TestMaterialize:
    def test_titled_note_in_month_directory(self, materializer, tmp_path):
        record = make_record()
        enriched = EnrichedContent(body="# Plan\n\nDo things", title="Plan")

        path = materializer.materialize(record, enriched)

        assert path == "memos/2024/05/Plan.md"
        text = (tmp_path / path).read_text(encoding="utf-8")
        assert text.startswith("# Plan\n\nDo things\n\n---\n")
        assert "> - ID: memos/1\n" in text

    def test_untitled_note_named_after_identity(self, materializer):
        path = materializer.materialize(make_record(name="memos/77"), EnrichedContent(body="x"))
        assert path == "memos/2024/05/77.md"

    def test_month_follows_timezone(self, storage, downloader):
        plus_nine = timezone(timedelta(hours=9))
        m = Materializer(storage, "memos", downloader, tz=plus_nine)
        record = make_record(create_time="2024-05-31T20:00:00Z")

        assert m.month_dir(record) == "memos/2024/06"

    def test_mtime_set_to_creation_time(self, materializer, tmp_path):
        record = make_record()
        path = materializer.materialize(record, EnrichedContent(body="x", title="T"))

        mtime = (tmp_path / path).stat().st_mtime
        assert mtime == pytest.approx(datetime(2024, 5, 15, 12, tzinfo=timezone.utc).timestamp())

    def test_existing_note_updated_in_place(self, materializer, tmp_path):
        record = make_record()
        materializer.materialize(record, EnrichedContent(body="first", title="Same"))
        path = materializer.materialize(record, EnrichedContent(body="second", title="Same"))

        text = (tmp_path / path).read_text(encoding="utf-8")
        assert text.startswith("second")
        assert len(list((tmp_path / "memos/2024/05").glob("*.md"))) == 1

    def test_title_of_forbidden_characters_uses_placeholder(self, materializer):
        path = materializer.materialize(make_record(), EnrichedContent(body="body", title="???"))
        assert path == "memos/2024/05/untitled.md"

    def test_same_title_keeps_one_file_per_memo(self, materializer, tmp_path):
        first = make_record("memos/1")
        second = make_record("memos/2")

        path1 = materializer.materialize(first, EnrichedContent(body="one", title="Same"))
        path2 = materializer.materialize(second, EnrichedContent(body="two", title="Same"))

        assert path1 == "memos/2024/05/Same.md"
        assert path2 == "memos/2024/05/Same (2).md"
        assert "> - ID: memos/1\n" in (tmp_path / path1).read_text(encoding="utf-8")
        assert "> - ID: memos/2\n" in (tmp_path / path2).read_text(encoding="utf-8")

    def test_same_title_rewrite_finds_own_file(self, materializer, tmp_path):
        first = make_record("memos/1")
        second = make_record("memos/2")
        materializer.materialize(first, EnrichedContent(body="one", title="Same"))
        materializer.materialize(second, EnrichedContent(body="two", title="Same"))

        again = materializer.materialize(first, EnrichedContent(body="one again", title="Same"))

        assert again == "memos/2024/05/Same.md"
        assert len(list((tmp_path / "memos/2024/05").glob("*.md"))) == 2

    def test_unmarked_file_is_updated_in_place(self, materializer, tmp_path):
        (tmp_path / "memos/2024/05").mkdir(parents=True)
        (tmp_path / "memos/2024/05/Plan.md").write_text("hand-written", encoding="utf-8")

        path = materializer.materialize(make_record(), EnrichedContent(body="x", title="Plan"))

        assert path == "memos/2024/05/Plan.md"
        assert "> - ID: memos/1" in (tmp_path / path).read_text(encoding="utf-8")

    def test_closed_tags_normalized_in_body(self, materializer, tmp_path):
        record = make_record(content="note #todo#")
        path = materializer.materialize(record, EnrichedContent(body="note #todo#"))

        text = (tmp_path / path).read_text(encoding="utf-8")
        assert text.startswith("note #todo\n")
        assert "> - Tags: [todo]" in text


class TestResources:
    def test_images_embedded_and_files_linked(self, materializer, tmp_path):
        record = make_record(resources=(
            make_resource("resources/1", "cat.png"),
            make_resource("resources/2", "report.pdf", "application/pdf"),
        ))

        path = materializer.materialize(record, EnrichedContent(body="body", title="Pets"))

        text = (tmp_path / path).read_text(encoding="utf-8")
        assert "![cat.png](resources/1_cat.png)" in text
        assert "### Attachments\n- [report.pdf](resources/2_report.pdf)" in text
        assert (tmp_path / "memos/2024/05/resources/1_cat.png").read_bytes() == b"bytes of cat.png"
        assert (tmp_path / "memos/2024/05/resources/2_report.pdf").exists()

    def test_failed_download_omitted(self, storage, utc, tmp_path):
        downloader = FakeDownloader(failing={"resources/2"})
        m = Materializer(storage, "memos", downloader, tz=utc)
        record = make_record(resources=(
            make_resource("resources/1", "a.png"),
            make_resource("resources/2", "b.png"),
        ))

        path = m.materialize(record, EnrichedContent(body="body", title="Two"))

        text = (tmp_path / path).read_text(encoding="utf-8")
        assert "![a.png](resources/1_a.png)" in text
        assert "b.png" not in text
        assert downloader.requested == ["resources/1", "resources/2"]

    def test_no_attachments_header_when_all_links_fail(self, storage, utc, tmp_path):
        downloader = FakeDownloader(failing={"resources/3"})
        m = Materializer(storage, "memos", downloader, tz=utc)
        record = make_record(resources=(make_resource("resources/3", "doc.zip", "application/zip"),))

        path = m.materialize(record, EnrichedContent(body="body", title="Zip"))

        assert "### Attachments" not in (tmp_path / path).read_text(encoding="utf-8")

    def test_resource_filename_sanitized(self, materializer, tmp_path):
        record = make_record(resources=(make_resource("resources/5", "a:b?.png"),))

        materializer.materialize(record, EnrichedContent(body="x", title="S"))

        assert (tmp_path / "memos/2024/05/resources/5_ab.png").exists()
