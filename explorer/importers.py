"""
Bulk importers that turn uploaded files into records.

``PageObjectImporter``
    Reads Java page-object classes and creates one Page per class plus its
    Elements inside a project.

``DirectoryImporter``
    Rebuilds the folder hierarchy of an uploaded directory as nested
    Features. ``.feature`` files additionally get one Scenario per
    ``Scenario:`` line.

Both importers insert sequentially in fixed-size chunks. A failing chunk
is logged and skipped; nothing already inserted is rolled back and no
chunk is retried, so an import can finish partially.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, IO, Iterable, Sequence

from explorer.models import ActionType, generate_id
from explorer.parsers import extract_scenarios, parse_java_model
from explorer.store import DataStore, StoreError, Table

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

# (relative path, readable handle) as delivered by a file upload
SourceFile = tuple[str, IO | str | bytes]


def read_text(handle: IO | str | bytes) -> str:
    """Return the text behind an uploaded file handle."""
    if hasattr(handle, "read"):
        handle = handle.read()
    if isinstance(handle, bytes):
        return handle.decode("utf-8", errors="replace")
    return handle


def insert_in_batches(table: Table, rows: list[dict[str, Any]], batch_size: int) -> tuple[int, int]:
    """
    Insert ``rows`` into ``table`` one chunk after another.

    Returns:
        Tuple of (rows inserted, chunks that failed).
    """
    inserted = 0
    failed = 0
    for start in range(0, len(rows), batch_size):
        batch = rows[start:start + batch_size]
        try:
            table.insert(batch)
        except StoreError as exc:
            failed += 1
            logger.error(
                "Batch %d-%d of %s failed, continuing: %s",
                start, start + len(batch) - 1, table.name, exc
            )
            continue
        inserted += len(batch)
    return inserted, failed


# -----------------------------------------------------------------------------
# Java page objects
# -----------------------------------------------------------------------------

@dataclass
class UploadProgress:
    """Files handled so far in a page-object upload."""

    total: int
    current: int
    file_name: str


@dataclass
class PageObjectImportReport:
    """Summary of one page-object upload."""

    pages_created: int = 0
    elements_created: int = 0
    skipped_files: list[tuple[str, str]] = field(default_factory=list)
    failed_elements: list[tuple[str, str, list[str]]] = field(default_factory=list)

    def failure_message(self) -> str | None:
        """Render unparsed declarations per file, or None when all parsed."""
        if not self.failed_elements:
            return None
        lines = ["The following elements could not be processed:", ""]
        for file_name, page_name, names in self.failed_elements:
            lines.append(f"{file_name} ({page_name}):")
            lines.extend(f"- {name}" for name in names)
            lines.append("")
        return "\n".join(lines).rstrip()


class PageObjectImporter:
    """
    Create Pages and Elements from uploaded ``.java`` page-object classes.

    A class whose page name already exists in the project is skipped, as
    is every file that is not a ``.java`` source or holds no
    ``public class <Name>Model`` declaration.
    """

    def __init__(self, store: DataStore, batch_size: int = DEFAULT_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    def run(
        self,
        project_id: str,
        files: Sequence[SourceFile],
        progress: Callable[[UploadProgress], None] | None = None
    ) -> PageObjectImportReport:
        report = PageObjectImportReport()
        existing_names = {
            page.name for page in self.store.pages.select(filters={"project_id": project_id})
        }
        pending: list[dict[str, Any]] = []

        for index, (file_name, handle) in enumerate(files):
            if progress:
                progress(UploadProgress(total=len(files), current=index, file_name=file_name))

            page_elements = self._import_file(project_id, file_name, handle, existing_names, report)
            pending.extend(page_elements)

            if len(pending) >= self.batch_size:
                report.elements_created += self._flush(pending)
                pending = []

        if pending:
            report.elements_created += self._flush(pending)

        if progress:
            progress(UploadProgress(total=len(files), current=len(files), file_name=""))

        logger.info(
            "Page-object import into project %s: %d pages, %d elements, %d files skipped",
            project_id, report.pages_created, report.elements_created, len(report.skipped_files)
        )
        return report

    def _import_file(
        self,
        project_id: str,
        file_name: str,
        handle: IO | str | bytes,
        existing_names: set[str],
        report: PageObjectImportReport
    ) -> list[dict[str, Any]]:
        if not file_name.endswith(".java"):
            report.skipped_files.append((file_name, "not a .java file"))
            return []

        result = parse_java_model(read_text(handle))
        if result is None:
            logger.warning("Could not parse file: %s", file_name)
            report.skipped_files.append((file_name, "no page-object class found"))
            return []

        if result.failed_elements:
            report.failed_elements.append((file_name, result.page_name, result.failed_elements))

        if result.page_name in existing_names:
            logger.warning("Page %s already exists, skipping %s", result.page_name, file_name)
            report.skipped_files.append((file_name, f'page "{result.page_name}" already exists'))
            return []

        try:
            [page] = self.store.pages.insert([{"name": result.page_name, "project_id": project_id}])
        except StoreError as exc:
            logger.error("Error creating page %s: %s", result.page_name, exc)
            report.skipped_files.append((file_name, "page could not be created"))
            return []

        existing_names.add(result.page_name)
        report.pages_created += 1

        return [
            {
                "name": element.name,
                "page_id": page.id,
                "selector_type": element.selector_type,
                "selector_value": element.selector_value,
                "action_type": ActionType.CLICK.value,
                "action_value": "",
            }
            for element in result.elements
        ]

    def _flush(self, rows: list[dict[str, Any]]) -> int:
        try:
            self.store.elements.insert(rows)
        except StoreError as exc:
            logger.error("Error creating %d elements: %s", len(rows), exc)
            return 0
        return len(rows)


# -----------------------------------------------------------------------------
# Directory trees
# -----------------------------------------------------------------------------

@dataclass
class ImportProgress:
    """
    Coarse progress of a directory import.

    ``step`` is ``"folders"`` while files are being read (``current`` counts
    files), then ``"files"`` and ``"scenarios"`` over a total of 3 phases.
    """

    total: int
    current: int
    step: str
    current_item: str


@dataclass
class FeatureFile:
    name: str
    content: str


@dataclass
class FolderNode:
    """One directory of an uploaded tree."""

    folders: dict[str, "FolderNode"] = field(default_factory=dict)
    files: list[str] = field(default_factory=list)
    feature_files: list[FeatureFile] = field(default_factory=list)


@dataclass
class DirectoryImportReport:
    features_created: int = 0
    scenarios_created: int = 0
    failed_batches: int = 0


def build_folder_tree(
    files: Iterable[SourceFile],
    on_file: Callable[[str], None] | None = None
) -> FolderNode:
    """
    Rebuild the folder hierarchy implied by relative upload paths.

    The first path segment is the directory the user picked and is
    dropped. ``.feature`` files are read; other files keep only their name.
    """
    root = FolderNode()
    for path, handle in sorted(files, key=lambda item: item[0]):
        parts = path.replace("\\", "/").split("/")[1:]
        if parts and parts[-1]:
            current = root
            for folder in parts[:-1]:
                current = current.folders.setdefault(folder, FolderNode())
            file_name = parts[-1]
            if file_name.endswith(".feature"):
                current.feature_files.append(FeatureFile(file_name, read_text(handle)))
            else:
                current.files.append(file_name)
        if on_file:
            on_file(path)
    return root


def plan_records(
    tree: FolderNode,
    parent_id: str | None
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """
    Flatten a folder tree into Feature and Scenario rows.

    Every row carries a generated id so children can point at parents that
    have not been inserted yet. Within a folder, sub-folders come first,
    then plain files, then ``.feature`` files.
    """
    features: list[dict[str, Any]] = []
    scenarios: list[dict[str, Any]] = []

    def walk(node: FolderNode, owner_id: str | None) -> None:
        for name, child in node.folders.items():
            feature_id = generate_id()
            features.append({"id": feature_id, "name": name, "parent_feature_id": owner_id})
            walk(child, feature_id)

        for file_name in node.files:
            features.append({"id": generate_id(), "name": file_name, "parent_feature_id": owner_id})

        for feature_file in node.feature_files:
            feature_id = generate_id()
            features.append({"id": feature_id, "name": feature_file.name, "parent_feature_id": owner_id})
            for title in extract_scenarios(feature_file.content):
                scenarios.append({"name": title, "feature_id": feature_id})

    walk(tree, parent_id)
    return features, scenarios


class DirectoryImporter:
    """Import an uploaded directory tree as Features and Scenarios."""

    def __init__(self, store: DataStore, batch_size: int = DEFAULT_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    def run(
        self,
        files: Sequence[SourceFile],
        parent_id: str | None = None,
        progress: Callable[[ImportProgress], None] | None = None
    ) -> DirectoryImportReport:
        """
        Import ``files`` beneath the feature ``parent_id`` (or at the root).

        Features are inserted before Scenarios because scenarios reference
        feature ids.
        """
        report = DirectoryImportReport()
        notify = progress or (lambda event: None)

        consumed = 0
        notify(ImportProgress(len(files), consumed, "folders", "Building folder structure..."))

        def on_file(path: str) -> None:
            nonlocal consumed
            consumed += 1
            notify(ImportProgress(len(files), consumed, "folders", path))

        tree = build_folder_tree(files, on_file)

        notify(ImportProgress(3, 1, "files", "Creating features..."))
        features, scenarios = plan_records(tree, parent_id)

        inserted, failed = insert_in_batches(self.store.features, features, self.batch_size)
        report.features_created = inserted
        report.failed_batches += failed

        notify(ImportProgress(3, 2, "scenarios", "Creating scenarios..."))
        inserted, failed = insert_in_batches(self.store.scenarios, scenarios, self.batch_size)
        report.scenarios_created = inserted
        report.failed_batches += failed

        notify(ImportProgress(3, 3, "scenarios", "Done"))

        logger.info(
            "Directory import under %s: %d features, %d scenarios, %d failed batches",
            parent_id, report.features_created, report.scenarios_created, report.failed_batches
        )
        return report
