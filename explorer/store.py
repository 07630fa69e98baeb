"""
Data-access layer for the Project Explorer.

Every consumer (API routes, views, importers) talks to the database only
through the four primitive operations of ``Table``:

    select  - read records matching equality filters
    insert  - insert a batch of records in one commit
    update  - change fields of one record by id
    delete  - delete one record by id (relationships cascade)

``DataStore`` bundles one ``Table`` per entity and adds the two reads the
UI needs after every mutation: the full project tree and the full feature
forest. Callers always refetch a whole tree instead of patching it.
"""

import logging
from collections import defaultdict
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from explorer.models import (
    Element,
    Feature,
    Page,
    Project,
    Scenario,
    ScenarioElement,
)

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A database operation failed and its transaction was rolled back."""


class RecordNotFound(StoreError):
    """No record exists with the requested id."""

    def __init__(self, table: str, record_id: str):
        super().__init__(f"{table} record {record_id} not found")
        self.table = table
        self.record_id = record_id


class Table:
    """
    Primitive operations on one entity table.

    Args:
        session: SQLAlchemy session used for every call.
        model: Mapped model class backing the table.
    """

    def __init__(self, session: Session, model: type):
        self.session = session
        self.model = model
        self.name = model.__tablename__

    def _column(self, field: str):
        column = getattr(self.model, field, None)
        if column is None:
            raise ValueError(f"Unknown field '{field}' for table {self.name}")
        return column

    def select(
        self,
        filters: dict[str, Any] | None = None,
        contains: dict[str, str] | None = None,
        order_by: str = "created_at",
        descending: bool = False,
        options: Iterable = ()
    ) -> list:
        """
        Return records matching all equality ``filters``.

        A filter value of ``None`` matches NULL. ``contains`` applies a
        case-insensitive substring match per field.
        """
        stmt = select(self.model)
        for field, value in (filters or {}).items():
            column = self._column(field)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        for field, fragment in (contains or {}).items():
            stmt = stmt.where(self._column(field).ilike(f"%{fragment}%"))

        column = self._column(order_by)
        stmt = stmt.order_by(column.desc() if descending else column.asc())
        stmt = stmt.options(*options)

        try:
            return list(self.session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Select on %s failed: %s", self.name, exc)
            raise StoreError(f"Could not read {self.name}") from exc

    def get(self, record_id: str):
        """Return one record by id or raise ``RecordNotFound``."""
        record = self.session.get(self.model, record_id)
        if record is None:
            raise RecordNotFound(self.name, record_id)
        return record

    def insert(self, rows: list[dict[str, Any]]) -> list:
        """Insert ``rows`` in a single commit and return the new records."""
        records = [self.model(**row) for row in rows]
        self.session.add_all(records)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Insert of %d rows into %s failed: %s", len(rows), self.name, exc)
            raise StoreError(f"Could not insert into {self.name}") from exc
        return records

    def update(self, record_id: str, values: dict[str, Any]):
        """Assign ``values`` to the record with ``record_id`` and commit."""
        record = self.get(record_id)
        for field, value in values.items():
            self._column(field)
            setattr(record, field, value)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Update of %s %s failed: %s", self.name, record_id, exc)
            raise StoreError(f"Could not update {self.name}") from exc
        return record

    def delete(self, record_id: str) -> None:
        """Delete the record with ``record_id`` together with its children."""
        record = self.get(record_id)
        self.session.delete(record)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Delete of %s %s failed: %s", self.name, record_id, exc)
            raise StoreError(f"Could not delete from {self.name}") from exc


def unique_name(existing: Iterable[str], base: str) -> str:
    """
    Return ``base`` or the first free ``"<base> <n>"`` among ``existing``.

    >>> unique_name(["New Page", "New Page 1"], "New Page")
    'New Page 2'
    """
    taken = set(existing)
    candidate = base
    counter = 1
    while candidate in taken:
        candidate = f"{base} {counter}"
        counter += 1
    return candidate


class DataStore:
    """
    All tables of the application behind one collaborator.

    Sibling-name uniqueness is probed here before inserts. Two writers
    probing at the same time can still both pick the same name; there is
    no unique index behind the probe.
    """

    def __init__(self, session: Session):
        self.session = session
        self.projects = Table(session, Project)
        self.pages = Table(session, Page)
        self.elements = Table(session, Element)
        self.features = Table(session, Feature)
        self.scenarios = Table(session, Scenario)
        self.scenario_elements = Table(session, ScenarioElement)

    def unique_name(self, table: Table, base: str, **scope: Any) -> str:
        """Pick a name for a new record of ``table`` within ``scope``."""
        names = [record.name for record in table.select(filters=scope)]
        return unique_name(names, base)

    def fetch_projects(self) -> list[dict[str, Any]]:
        """
        Read every project with its pages and elements.

        Projects come newest first; pages and elements oldest first.
        """
        projects = self.projects.select(
            descending=True,
            options=[selectinload(Project.pages).selectinload(Page.elements)]
        )
        return [project.to_dict(nested=True) for project in projects]

    def fetch_feature_tree(self) -> list[dict[str, Any]]:
        """Read the whole feature forest, oldest nodes first at every level."""
        features = self.features.select()
        scenarios = self.scenarios.select(
            options=[selectinload(Scenario.elements)]
        )
        return build_feature_forest(features, scenarios)


def build_feature_forest(features: list[Feature], scenarios: list[Scenario]) -> list[dict[str, Any]]:
    """
    Assemble flat feature and scenario records into nested dictionaries.

    Nodes are kept in an id-indexed table and linked through their parent
    id, so nesting depth is unbounded. Features whose parent is missing
    from ``features`` are treated as roots.
    """
    nodes: dict[str, dict[str, Any]] = {}
    for feature in features:
        node = feature.to_dict()
        node["features"] = []
        node["scenarios"] = []
        nodes[feature.id] = node

    for scenario in scenarios:
        owner = nodes.get(scenario.feature_id)
        if owner is not None:
            owner["scenarios"].append(scenario.to_dict(nested=True))

    children: dict[str | None, list[dict[str, Any]]] = defaultdict(list)
    for feature in features:
        parent_id = feature.parent_feature_id
        if parent_id not in nodes:
            parent_id = None
        children[parent_id].append(nodes[feature.id])

    for node_id, node in nodes.items():
        node["features"] = children.get(node_id, [])

    return children.get(None, [])


def current_store() -> DataStore:
    """Return a ``DataStore`` bound to the request's database session."""
    from explorer import db

    return DataStore(db.session)
