"""OneNote file extraction: single sections and notebook packages."""

import logging
import tempfile
import zipfile
import zlib
from datetime import datetime
from pathlib import Path

from onenote_migrator.classifier import ErrorClassifier
from onenote_migrator.config import ParsingSettings
from onenote_migrator.exceptions import (
    InvalidFormatError,
    OneNoteError,
    ParsingError,
    SourceNotFoundError,
)
from onenote_migrator.ingestion.parser import SectionParser
from onenote_migrator.models.extraction import (
    ExtractionResult,
    FileHeader,
    FileInfo,
    FileType,
    ParsingOptions,
)
from onenote_migrator.models.hierarchy import Hierarchy, Notebook, Section

logger = logging.getLogger(__name__)

HEADER_SIZE = 16

# Supported file extensions mapped to file types
SUPPORTED_EXTENSIONS: dict[str, FileType] = {
    ".one": "one",
    ".onepkg": "onepkg",
}

# GUID {7B5C52E4-D88C-4DA7-AEB1-5378D02996D3} opening every revision-store section
SECTION_SIGNATURE = bytes.fromhex("e4525c7b8cd8a74daeb15378d02996d3")
CAB_SIGNATURE = b"MSCF"
ZIP_SIGNATURE = b"PK\x03\x04"
LEGACY_SIGNATURES: dict[bytes, FileType] = {
    b"OnePKG": "onepkg",
    b"OneNote": "one",
}

# Sniffed in the header when no signature matches
PACKAGE_KEYWORDS = (b"onepkg", b"package", b"notebook")


class ContentExtractor:
    """Reads OneNote files from disk into the notebook hierarchy.

    Low-level operations (``extract_section``, ``extract_container``) raise
    OneNoteError subclasses; the ``extract_from_*`` entry points always
    return an ExtractionResult.

    Args:
        settings: Parsing thresholds and scratch location.
        parser: Section parser; defaults to one built from ``settings``.
        classifier: Error classifier shared with the parser.
    """

    def __init__(
        self,
        settings: ParsingSettings | None = None,
        parser: SectionParser | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self._settings = settings or ParsingSettings()
        self._classifier = classifier or ErrorClassifier()
        self._parser = parser or SectionParser(self._settings, self._classifier)

    def default_options(self) -> ParsingOptions:
        """Parsing options taken from the configured settings."""
        return ParsingOptions(
            include_metadata=self._settings.include_metadata,
            extract_images=self._settings.extract_images,
            preserve_formatting=self._settings.preserve_formatting,
            fallback_on_error=self._settings.fallback_on_error,
        )

    def validate(self, file_path: str | Path) -> FileInfo:
        """Check that a file exists and looks like a OneNote file.

        Args:
            file_path: Path to a ``.one`` or ``.onepkg`` file.

        Returns:
            FileInfo with the inferred type and validity.

        Raises:
            SourceNotFoundError: If file_path does not exist.
        """
        path = self._require_file(file_path, "validate")
        stat = path.stat()
        ext = path.suffix.lower()

        header = self.read_header(path) if stat.st_size else None
        file_type = SUPPORTED_EXTENSIONS.get(ext, "one")

        return FileInfo(
            path=str(path),
            type=file_type,
            size=stat.st_size,
            is_valid=self._check_validity(path, header),
            modified_at=datetime.fromtimestamp(stat.st_mtime),
        )

    def read_header(self, file_path: str | Path) -> FileHeader:
        """Read the fixed-size prefix of a file and match known signatures.

        An unrecognised signature does not reject the file; the type is
        then guessed from keywords in the prefix.
        """
        path = self._require_file(file_path, "read_header")
        with open(path, "rb") as f:
            prefix = f.read(HEADER_SIZE)

        if prefix.startswith(SECTION_SIGNATURE):
            return FileHeader(magic="section", file_type="one", signature_matched=True)
        if prefix.startswith(CAB_SIGNATURE):
            return FileHeader(magic="MSCF", file_type="onepkg", signature_matched=True)
        if prefix.startswith(ZIP_SIGNATURE):
            return FileHeader(magic="PK", file_type="onepkg", signature_matched=True)

        for magic, file_type in LEGACY_SIGNATURES.items():
            if prefix.startswith(magic):
                version_bytes = prefix[len(magic) + 1 : len(magic) + 5]
                return FileHeader(
                    magic=magic.decode("ascii"),
                    version=int.from_bytes(version_bytes, "little"),
                    file_type=file_type,
                    signature_matched=True,
                )

        lowered = prefix.lower()
        sniffed: FileType = (
            "onepkg" if any(word in lowered for word in PACKAGE_KEYWORDS) else "one"
        )
        return FileHeader(file_type=sniffed)

    def extract_metadata(self, file_path: str | Path) -> dict[str, object]:
        """Return size and timestamps of a file."""
        path = self._require_file(file_path, "extract_metadata")
        stat = path.stat()
        return {
            "file_path": str(path),
            "file_size": stat.st_size,
            "created_at": datetime.fromtimestamp(stat.st_ctime).isoformat(),
            "modified_at": datetime.fromtimestamp(stat.st_mtime).isoformat(),
        }

    def extract_section(
        self,
        file_path: str | Path,
        options: ParsingOptions | None = None,
        section_name: str | None = None,
    ) -> Section:
        """Parse a single ``.one`` file into a Section.

        Args:
            file_path: Section file to read.
            options: Parsing options.
            section_name: Name of the section; defaults to the file stem.

        Raises:
            SourceNotFoundError: If file_path does not exist.
            OneNoteError: Parsing failed and fallback is disabled.
        """
        path = self._require_file(file_path, "extract_section")
        data = path.read_bytes()
        return self._parser.parse_section(
            data,
            source_name=section_name or path.stem,
            options=options or self.default_options(),
            file_path=path,
        )

    def extract_container(
        self, file_path: str | Path, options: ParsingOptions | None = None
    ) -> tuple[Hierarchy, list[str]]:
        """Unpack a ``.onepkg`` package and extract each embedded section.

        Sections are written to a temporary scratch directory and parsed
        independently; a failing section is logged and skipped.

        Args:
            file_path: Path to the package.
            options: Parsing options applied to every section.

        Returns:
            The one-notebook Hierarchy and the names of the sections that
            were extracted. Skipped sections are listed under the
            notebook's ``skipped_sections`` metadata.

        Raises:
            SourceNotFoundError: If file_path does not exist.
            ParsingError: No section of the package could be extracted.
        """
        path = self._require_file(file_path, "extract_container")
        opts = options or self.default_options()
        sections: list[Section] = []
        extracted: list[str] = []
        skipped: list[str] = []

        scratch = self._settings.scratch_dir
        if scratch:
            Path(scratch).mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix="onepkg-", dir=scratch) as tmp:
            for name, member in self._unpack(path, Path(tmp), skipped):
                try:
                    section = self.extract_section(member, opts, Path(name).stem)
                except OneNoteError as exc:
                    logger.warning("Skipping section %s of %s: %s", name, path, exc)
                    skipped.append(f"{name}: {exc}")
                    continue
                sections.append(section)
                extracted.append(name)

        if not sections:
            raise ParsingError(
                "Failed to parse any section in package",
                file_path=str(path),
                operation="extract_container",
            )

        stat = path.stat()
        notebook = Notebook(
            name=path.stem or "Untitled Notebook",
            sections=sections,
            created_at=datetime.fromtimestamp(stat.st_ctime),
            modified_at=datetime.fromtimestamp(stat.st_mtime),
            metadata={
                "file_path": str(path),
                "file_type": "onepkg",
                "parsed_at": datetime.now().isoformat(),
                "section_count": len(sections),
                "skipped_sections": skipped,
            },
        )
        logger.info("Extracted %d sections from %s", len(sections), path)
        return Hierarchy.from_notebooks([notebook]), extracted

    def extract_from_one(
        self, file_path: str | Path, options: ParsingOptions | None = None
    ) -> ExtractionResult:
        """Extract a ``.one`` section file as a one-notebook hierarchy."""
        opts = options or self.default_options()
        try:
            path = self._require_file(file_path, "extract_from_one")
            section = self.extract_section(path, opts)
            stat = path.stat()
        except OneNoteError as exc:
            return self._failure(exc, opts)
        except Exception as exc:
            logger.exception("Unexpected failure extracting %s", file_path)
            return self._failure(exc, opts)

        metadata: dict[str, object] = {
            "file_path": str(path),
            "file_type": "one",
            "parsed_at": datetime.now().isoformat(),
        }
        warnings: list[str] = []
        if section.metadata.get("fallback"):
            metadata["fallback"] = True
            metadata["reason"] = section.metadata.get("reason", "")
            warnings.append(f"Fallback content used for {path.name}")

        notebook = Notebook(
            name=path.stem or "Untitled Notebook",
            sections=[section],
            created_at=datetime.fromtimestamp(stat.st_ctime),
            modified_at=datetime.fromtimestamp(stat.st_mtime),
            metadata=metadata,
        )
        return ExtractionResult(
            success=True,
            hierarchy=Hierarchy.from_notebooks([notebook]),
            extracted_files=[str(path)],
            warnings=warnings,
        )

    def extract_from_onepkg(
        self, file_path: str | Path, options: ParsingOptions | None = None
    ) -> ExtractionResult:
        """Extract a ``.onepkg`` package as a one-notebook hierarchy."""
        opts = options or self.default_options()
        try:
            hierarchy, extracted = self.extract_container(file_path, opts)
        except OneNoteError as exc:
            return self._failure(exc, opts)
        except Exception as exc:
            logger.exception("Unexpected failure extracting %s", file_path)
            return self._failure(exc, opts)

        return ExtractionResult(
            success=True,
            hierarchy=hierarchy,
            extracted_files=extracted,
            warnings=list(hierarchy.notebooks[0].metadata.get("skipped_sections", [])),
        )

    def extract_multiple(
        self, file_paths: list[str | Path], options: ParsingOptions | None = None
    ) -> ExtractionResult:
        """Extract a mixed batch of ``.one`` and ``.onepkg`` files.

        Files are processed in order. Unsupported extensions are skipped and
        per-file failures are logged; the notebooks of every successful file
        are combined into one hierarchy.

        Args:
            file_paths: Files to extract.
            options: Parsing options applied to every file.

        Returns:
            A successful ExtractionResult whose warnings describe skipped
            and failed files.
        """
        opts = options or self.default_options()
        notebooks: list[Notebook] = []
        extracted: list[str] = []
        warnings: list[str] = []

        for file_path in file_paths:
            path = Path(file_path)
            try:
                file_type = self._resolve_type(path)
                if file_type is None:
                    logger.warning("Skipping unsupported file: %s", path)
                    warnings.append(f"Skipped unsupported file: {path.name}")
                    continue

                if file_type == "onepkg":
                    result = self.extract_from_onepkg(path, opts)
                else:
                    result = self.extract_from_one(path, opts)
            except Exception as exc:
                logger.exception("Unexpected failure extracting %s", path)
                message = self._classifier.user_message(exc)
                warnings.append(f"Failed to extract {path.name}: {message}")
                continue

            warnings.extend(result.warnings)
            if result.success and result.hierarchy is not None:
                notebooks.extend(result.hierarchy.notebooks)
                extracted.extend(result.extracted_files)
            else:
                logger.warning("Failed to extract %s: %s", path, result.error)
                warnings.append(f"Failed to extract {path.name}: {result.error}")

        return ExtractionResult(
            success=True,
            hierarchy=Hierarchy.from_notebooks(notebooks),
            extracted_files=extracted,
            warnings=warnings,
        )

    def _check_validity(self, path: Path, header: FileHeader | None) -> bool:
        """Known extension, non-empty file and a readable header."""
        return path.suffix.lower() in SUPPORTED_EXTENSIONS and header is not None

    def _resolve_type(self, path: Path) -> FileType | None:
        """Type from a matched signature, else from the extension."""
        ext = path.suffix.lower()
        if ext not in SUPPORTED_EXTENSIONS:
            return None
        if path.is_file() and path.stat().st_size:
            header = self.read_header(path)
            if header.signature_matched:
                return header.file_type
        return SUPPORTED_EXTENSIONS[ext]

    def _unpack(
        self, path: Path, target: Path, skipped: list[str]
    ) -> list[tuple[str, Path]]:
        """Write the section payloads of a package into ``target``.

        Returns (section file name, scratch path) pairs. Zip members that
        cannot be read are logged and appended to ``skipped``.
        """
        if zipfile.is_zipfile(path):
            return self._unpack_zip(path, target, skipped)

        data = path.read_bytes()
        offsets = self._signature_offsets(data)
        if offsets:
            bounds = zip(offsets, offsets[1:] + [len(data)])
            segments = [data[start:end] for start, end in bounds]
        else:
            segments = [data]

        members: list[tuple[str, Path]] = []
        for index, segment in enumerate(segments, start=1):
            name = f"section-{index}.one"
            member = target / name
            member.write_bytes(segment)
            members.append((name, member))
        return members

    def _unpack_zip(
        self, path: Path, target: Path, skipped: list[str]
    ) -> list[tuple[str, Path]]:
        members: list[tuple[str, Path]] = []
        try:
            with zipfile.ZipFile(path) as archive:
                for index, info in enumerate(archive.infolist(), start=1):
                    name = Path(info.filename).name
                    if info.is_dir() or not name.lower().endswith(".one"):
                        continue
                    try:
                        data = archive.read(info)
                    except (
                        RuntimeError, NotImplementedError, zlib.error, zipfile.BadZipFile
                    ) as exc:
                        # Encrypted, unsupported or damaged member
                        logger.warning("Cannot read %s in %s: %s", info.filename, path, exc)
                        skipped.append(f"{name}: {exc}")
                        continue
                    # Member names can repeat across folders
                    member = target / f"{index}-{name}"
                    member.write_bytes(data)
                    members.append((name, member))
        except zipfile.BadZipFile as exc:
            raise InvalidFormatError(
                f"Invalid package format: {exc}",
                file_path=str(path),
                operation="extract_container",
            ) from exc
        return members

    def _signature_offsets(self, data: bytes) -> list[int]:
        offsets: list[int] = []
        start = data.find(SECTION_SIGNATURE)
        while start != -1:
            offsets.append(start)
            start = data.find(SECTION_SIGNATURE, start + len(SECTION_SIGNATURE))
        return offsets

    def _require_file(self, file_path: str | Path, operation: str) -> Path:
        path = Path(file_path)
        if not path.is_file():
            raise SourceNotFoundError(
                "File not found", file_path=str(path), operation=operation
            )
        return path

    def _failure(self, fault: Exception, options: ParsingOptions) -> ExtractionResult:
        if options.fallback_on_error:
            return self._classifier.extraction_result(fault)
        logger.error("Extraction failed: %s", fault)
        return ExtractionResult.failed(self._classifier.user_message(fault))
