"""Shared fixtures and test doubles."""

import zipfile
from pathlib import Path

import pytest

from onenote_migrator.ingestion.extractor import ContentExtractor
from onenote_migrator.models.extraction import FileHeader
from onenote_migrator.models.hierarchy import Hierarchy, Notebook, Page, Section

SAMPLE_SECTION = """Page 1: Meeting Notes
Discussed the roadmap for Q3.
[image:diagram.png]
[TAG:Important:color=red]

Page 2: Action Items
- Send summary to the team
- Book the follow-up meeting
See budget.xlsx for details.
"""

CORRUPTED_BYTES = b"\x00\x01\x02\xff\xfe" * 200


class NameConventionExtractor(ContentExtractor):
    """Extractor that also flags files whose name contains "invalid"."""

    def _check_validity(self, path: Path, header: FileHeader | None) -> bool:
        return "invalid" not in path.name and super()._check_validity(path, header)


def mark_last_member_encrypted(path: Path) -> None:
    """Set the encryption flag of the last zip member in place."""
    data = bytearray(path.read_bytes())
    for signature, flag_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        data[data.rfind(signature) + flag_offset] |= 0x01
    path.write_bytes(bytes(data))


@pytest.fixture
def locked_onepkg(tmp_path: Path) -> Path:
    """Package whose second section is encrypted."""
    path = tmp_path / "locked.onepkg"
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("Good.one", "Readable section text")
        archive.writestr("Locked.one", "Secret section text")
    mark_last_member_encrypted(path)
    return path


@pytest.fixture
def locked_only_onepkg(tmp_path: Path) -> Path:
    """Package whose only section is encrypted."""
    path = tmp_path / "sealed.onepkg"
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("Locked.one", "Secret section text")
    mark_last_member_encrypted(path)
    return path


@pytest.fixture
def sample_one(tmp_path: Path) -> Path:
    path = tmp_path / "sample.one"
    path.write_text(SAMPLE_SECTION, encoding="utf-8")
    return path


@pytest.fixture
def corrupted_one(tmp_path: Path) -> Path:
    path = tmp_path / "corrupted.one"
    path.write_bytes(CORRUPTED_BYTES)
    return path


@pytest.fixture
def sample_onepkg(tmp_path: Path) -> Path:
    """Zip package with two sections, one of them in a subfolder."""
    path = tmp_path / "notebook.onepkg"
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("Alpha.one", "Page 1: Alpha Start\nAlpha body text")
        archive.writestr("nested/Beta.one", "Beta only page\nwith some body text")
        archive.writestr("Open Notebook.onetoc2", "table of contents")
    return path


@pytest.fixture
def sample_hierarchy() -> Hierarchy:
    """One notebook, two sections, three pages."""
    first = Section(
        name="Planning",
        pages=[
            Page(title="Goals", content="# Goals\n- Ship the importer"),
            Page(title="Risks", content="Rate limits on the API"),
        ],
    )
    second = Section(
        name="Journal",
        pages=[Page(title="Monday", content="Wrote the parser tests")],
    )
    notebook = Notebook(name="Work", sections=[first, second])
    return Hierarchy.from_notebooks([notebook])


@pytest.fixture
def sample_bytes() -> bytes:
    return SAMPLE_SECTION.encode("utf-8")


@pytest.fixture
def corrupted_bytes() -> bytes:
    return CORRUPTED_BYTES


@pytest.fixture
def name_checking_extractor() -> ContentExtractor:
    return NameConventionExtractor()
