"""
Database models for the Project Explorer application.

Two independent hierarchies are stored here:

* Projects own Pages, which own UI Elements (a locator plus a default
  interaction).
* Features nest into a forest through ``parent_feature_id`` and own
  Scenarios, which own Scenario Elements referencing a UI element by the
  ``"<PageName>.<ElementName>"`` string.

Primary keys are UUID strings so that bulk importers can assign parent
and child keys before any row reaches the database.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from explorer import db


def generate_id() -> str:
    """Return a new random record identifier."""
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SelectorType(str, Enum):
    """Strategies used to locate a UI element."""

    ID = "ID"
    CLASS = "Class"
    NAME = "Name"
    XPATH = "XPath"
    CSS = "CSS Selector"


class ActionType(str, Enum):
    """Interaction verbs applied to a UI element."""

    CLICK = "click"
    TYPE = "type"
    HOVER = "hover"
    CLEAR = "clear"
    SELECT = "select"


class ScenarioActionType(str, Enum):
    """Action vocabulary available to scenario steps."""

    CLICK = "Click"
    SEND_KEYS = "Send Keys"
    CLEAR = "Clear"
    WAIT_TEXT = "Wait Text"
    SHOULD_SEE = "Should See"
    CLICK_LIST_ITEM = "Click List Item"
    CHECK_LIST_ITEM = "Check List Item"

    @property
    def needs_value(self) -> bool:
        """Whether the action consumes an ``action_value``."""
        return self in VALUE_BEARING_ACTIONS


VALUE_BEARING_ACTIONS = frozenset({
    ScenarioActionType.SEND_KEYS,
    ScenarioActionType.WAIT_TEXT,
    ScenarioActionType.CLICK_LIST_ITEM,
    ScenarioActionType.CHECK_LIST_ITEM,
})


class TimestampMixin:
    """Shared ``created_at`` column and ISO serialisation helper."""

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )

    @staticmethod
    def _to_utc_iso(value: datetime | None) -> str | None:
        """
        Convert datetime to an ISO-8601 UTC string.

        SQLite commonly returns naive datetime values even when timezone-aware
        columns are declared. For API contracts, always normalize to UTC.
        """
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        else:
            value = value.astimezone(timezone.utc)
        return value.isoformat()


# -----------------------------------------------------------------------------
# Projects -> Pages -> Elements
# -----------------------------------------------------------------------------

class Project(TimestampMixin, db.Model):
    """
    A test-automation project grouping page objects.

    Attributes:
        id: UUID string primary key.
        name: Display name.
        pages: Pages of this project; deleted together with the project.
    """

    __tablename__ = "projects"

    id: str = db.Column(db.String(36), primary_key=True, default=generate_id)
    name: str = db.Column(db.String(200), nullable=False)

    pages = db.relationship(
        "Page",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Page.created_at"
    )

    def to_dict(self, nested: bool = False) -> dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "created_at": self._to_utc_iso(self.created_at),
        }
        if nested:
            data["pages"] = [page.to_dict(nested=True) for page in self.pages]
        return data

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.name}>"


class Page(TimestampMixin, db.Model):
    """A page object holding the UI elements of one screen."""

    __tablename__ = "pages"

    id: str = db.Column(db.String(36), primary_key=True, default=generate_id)
    name: str = db.Column(db.String(200), nullable=False)
    project_id: str = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    project = db.relationship("Project", back_populates="pages")
    elements = db.relationship(
        "Element",
        back_populates="page",
        cascade="all, delete-orphan",
        order_by="Element.created_at"
    )

    def to_dict(self, nested: bool = False) -> dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "project_id": self.project_id,
            "created_at": self._to_utc_iso(self.created_at),
        }
        if nested:
            data["elements"] = [element.to_dict() for element in self.elements]
        return data

    def __repr__(self) -> str:
        return f"<Page {self.id}: {self.name}>"


class Element(TimestampMixin, db.Model):
    """
    A UI element: how to find it and what to do with it.

    Attributes:
        selector_type: One of ``SelectorType`` values.
        selector_value: Locator expression for the selector type.
        action_type: One of ``ActionType`` values.
        action_value: Text typed into the element; only kept for
            ``ActionType.TYPE``.
    """

    __tablename__ = "elements"

    id: str = db.Column(db.String(36), primary_key=True, default=generate_id)
    name: str = db.Column(db.String(200), nullable=False)
    page_id: str = db.Column(
        db.String(36),
        db.ForeignKey("pages.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    selector_type: str = db.Column(
        db.String(20),
        nullable=False,
        default=SelectorType.ID.value
    )
    selector_value: str = db.Column(db.Text, nullable=False)
    action_type: str = db.Column(
        db.String(20),
        nullable=False,
        default=ActionType.CLICK.value
    )
    action_value: str = db.Column(db.Text, nullable=False, default="")

    page = db.relationship("Page", back_populates="elements")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "page_id": self.page_id,
            "selector_type": self.selector_type,
            "selector_value": self.selector_value,
            "action_type": self.action_type,
            "action_value": self.action_value,
            "created_at": self._to_utc_iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Element {self.id}: {self.name}>"


# -----------------------------------------------------------------------------
# Features -> Scenarios -> Scenario Elements
# -----------------------------------------------------------------------------

class Feature(TimestampMixin, db.Model):
    """
    A node of the feature forest.

    Root features have no ``parent_feature_id``. Deleting a feature removes
    its sub-features and scenarios recursively.
    """

    __tablename__ = "features"

    id: str = db.Column(db.String(36), primary_key=True, default=generate_id)
    name: str = db.Column(db.String(200), nullable=False)
    parent_feature_id: str | None = db.Column(
        db.String(36),
        db.ForeignKey("features.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    parent = db.relationship(
        "Feature",
        remote_side=[id],
        back_populates="children"
    )
    children = db.relationship(
        "Feature",
        back_populates="parent",
        cascade="all, delete-orphan"
    )
    scenarios = db.relationship(
        "Scenario",
        back_populates="feature",
        cascade="all, delete-orphan",
        order_by="Scenario.created_at"
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "parent_feature_id": self.parent_feature_id,
            "created_at": self._to_utc_iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Feature {self.id}: {self.name}>"


class Scenario(TimestampMixin, db.Model):
    """A scenario inside a feature, made of ordered scenario elements."""

    __tablename__ = "scenarios"

    id: str = db.Column(db.String(36), primary_key=True, default=generate_id)
    name: str = db.Column(db.String(200), nullable=False)
    feature_id: str = db.Column(
        db.String(36),
        db.ForeignKey("features.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    feature = db.relationship("Feature", back_populates="scenarios")
    elements = db.relationship(
        "ScenarioElement",
        back_populates="scenario",
        cascade="all, delete-orphan",
        order_by="ScenarioElement.created_at"
    )

    def to_dict(self, nested: bool = False) -> dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "feature_id": self.feature_id,
            "created_at": self._to_utc_iso(self.created_at),
        }
        if nested:
            data["elements"] = [element.to_dict() for element in self.elements]
        return data

    def __repr__(self) -> str:
        return f"<Scenario {self.id}: {self.name}>"


class ScenarioElement(TimestampMixin, db.Model):
    """
    One step of a scenario: an action applied to a referenced UI element.

    Attributes:
        element_name: ``"<PageName>.<ElementName>"`` reference.
        action_type: One of ``ScenarioActionType`` values.
        action_value: Argument of value-bearing actions.
    """

    __tablename__ = "scenario_elements"

    id: str = db.Column(db.String(36), primary_key=True, default=generate_id)
    scenario_id: str = db.Column(
        db.String(36),
        db.ForeignKey("scenarios.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    element_name: str = db.Column(db.String(401), nullable=False)
    action_type: str = db.Column(
        db.String(30),
        nullable=False,
        default=ScenarioActionType.CLICK.value
    )
    action_value: str = db.Column(db.Text, nullable=False, default="")

    scenario = db.relationship("Scenario", back_populates="elements")

    @property
    def needs_value(self) -> bool:
        return self.action_type in {action.value for action in VALUE_BEARING_ACTIONS}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "scenario_id": self.scenario_id,
            "element_name": self.element_name,
            "action_type": self.action_type,
            "action_value": self.action_value,
            "needs_value": self.needs_value,
            "created_at": self._to_utc_iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<ScenarioElement {self.id}: {self.element_name}>"
