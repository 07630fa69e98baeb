"""
Shared pytest fixtures for the Project Explorer test suite.

This module contains fixtures that are shared across all test modules.
Fixtures follow the Arrange-Act-Assert (AAA) pattern and ensure
test isolation by providing fresh data for each test.

Key Concepts Demonstrated:
- Fixture scopes (function, session)
- Fixture dependencies
- Test data factories for both trees
- Database setup/teardown
- Test client creation
"""

import os
import pytest
from typing import Any
from faker import Faker

# Set testing environment before importing app
os.environ["FLASK_ENV"] = "testing"

from explorer import create_app, db
from explorer.models import (
    ActionType,
    Element,
    Feature,
    Page,
    Project,
    Scenario,
    ScenarioActionType,
    ScenarioElement,
    SelectorType,
)
from explorer.store import DataStore


# Initialize Faker for generating test data
fake = Faker()


LOGIN_PAGE_SOURCE = '''package com.example.pages;

import org.openqa.selenium.By;

public class LoginModel {
    // Locators
    public static By usernameInput = By.id("username");
    public static By submitButton = By.cssSelector("button[type=\\"submit\\"]");
    /* legacy locator
    public static By oldLink = By.linkText("Old");
    */
    public static By forgotPasswordLink = By.xpath("//a[text()='Forgot?']");
    public static By rememberMe = By.name(rememberMeName);
}
'''

CHECKOUT_FEATURE_SOURCE = """Feature: Checkout

  Background:
    Given the cart has items

  Scenario: Pay with card
    When I pay with a card
    Then the order is confirmed

  Scenario Outline: Pay with <method>
    When I pay with <method>

  Scenario: Cancel payment
    When I cancel
"""


# -----------------------------------------------------------------------------
# Application Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def app():
    """
    Create application instance for the test session.

    Yields:
        Flask application instance configured for testing.
    """
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    """
    Create a test client for making HTTP requests.

    Args:
        app: Flask application fixture.

    Yields:
        Flask test client for making HTTP requests.
    """
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(scope="function")
def db_session(app):
    """
    Create a fresh database for each test.

    Tables are created before the test and dropped afterwards, so every
    test starts from empty trees.

    Args:
        app: Flask application fixture.

    Yields:
        Flask-SQLAlchemy extension bound to the app.
    """
    with app.app_context():
        db.create_all()
        yield db
        db.session.rollback()
        db.drop_all()


@pytest.fixture
def store(db_session) -> DataStore:
    """Provide a data store bound to the test session."""
    return DataStore(db_session.session)


# -----------------------------------------------------------------------------
# Test Data Factory Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def project_factory(db_session):
    """
    Factory fixture for creating Project instances.

    Example:
        def test_something(project_factory):
            project = project_factory(name="Shop")
            assert project.id is not None
    """
    def _create_project(name: str | None = None) -> Project:
        project = Project(name=name or fake.company())
        db_session.session.add(project)
        db_session.session.commit()
        return project

    return _create_project


@pytest.fixture
def page_factory(db_session, project_factory):
    """Factory fixture for creating Page instances inside a project."""
    def _create_page(project: Project | None = None, name: str | None = None) -> Page:
        project = project or project_factory()
        page = Page(name=name or fake.word().capitalize(), project_id=project.id)
        db_session.session.add(page)
        db_session.session.commit()
        return page

    return _create_page


@pytest.fixture
def element_factory(db_session, page_factory):
    """Factory fixture for creating Element instances on a page."""
    def _create_element(
        page: Page | None = None,
        name: str | None = None,
        selector_type: str = SelectorType.ID.value,
        selector_value: str | None = None,
        action_type: str = ActionType.CLICK.value,
        action_value: str = ""
    ) -> Element:
        page = page or page_factory()
        element = Element(
            name=name or fake.word().capitalize(),
            page_id=page.id,
            selector_type=selector_type,
            selector_value=selector_value or fake.slug(),
            action_type=action_type,
            action_value=action_value
        )
        db_session.session.add(element)
        db_session.session.commit()
        return element

    return _create_element


@pytest.fixture
def feature_factory(db_session):
    """Factory fixture for creating Feature instances."""
    def _create_feature(name: str | None = None, parent: Feature | None = None) -> Feature:
        feature = Feature(
            name=name or fake.catch_phrase(),
            parent_feature_id=parent.id if parent else None
        )
        db_session.session.add(feature)
        db_session.session.commit()
        return feature

    return _create_feature


@pytest.fixture
def scenario_factory(db_session, feature_factory):
    """Factory fixture for creating Scenario instances inside a feature."""
    def _create_scenario(feature: Feature | None = None, name: str | None = None) -> Scenario:
        feature = feature or feature_factory()
        scenario = Scenario(name=name or fake.sentence(nb_words=3), feature_id=feature.id)
        db_session.session.add(scenario)
        db_session.session.commit()
        return scenario

    return _create_scenario


@pytest.fixture
def scenario_element_factory(db_session, scenario_factory):
    """Factory fixture for creating scenario steps."""
    def _create_step(
        scenario: Scenario | None = None,
        element_name: str = "Login.Submit Button",
        action_type: str = ScenarioActionType.CLICK.value,
        action_value: str = ""
    ) -> ScenarioElement:
        scenario = scenario or scenario_factory()
        step = ScenarioElement(
            scenario_id=scenario.id,
            element_name=element_name,
            action_type=action_type,
            action_value=action_value
        )
        db_session.session.add(step)
        db_session.session.commit()
        return step

    return _create_step


@pytest.fixture
def sample_project(project_factory, page_factory, element_factory) -> Project:
    """
    Create a project with one page holding two elements.

    Returns:
        The Project instance.
    """
    project = project_factory(name="Web Shop")
    page = page_factory(project=project, name="Login")
    element_factory(page=page, name="Username", selector_value="username")
    element_factory(page=page, name="Submit Button", selector_value="submit")
    return project


@pytest.fixture
def feature_tree(feature_factory, scenario_factory, scenario_element_factory) -> dict[str, Any]:
    """
    Create a small feature forest.

    Layout:
        Checkout
            Payments
                Pay with card (one step)
        Search
    """
    checkout = feature_factory(name="Checkout")
    payments = feature_factory(name="Payments", parent=checkout)
    scenario = scenario_factory(feature=payments, name="Pay with card")
    step = scenario_element_factory(scenario=scenario)
    search = feature_factory(name="Search")
    return {
        "checkout": checkout,
        "payments": payments,
        "scenario": scenario,
        "step": step,
        "search": search,
    }


# -----------------------------------------------------------------------------
# Test Data Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def login_page_source() -> str:
    """Provide a page-object class with three parseable locators and one broken one."""
    return LOGIN_PAGE_SOURCE


@pytest.fixture
def checkout_feature_source() -> str:
    """Provide a feature file with two plain scenarios and one outline."""
    return CHECKOUT_FEATURE_SOURCE


@pytest.fixture
def api_headers() -> dict[str, str]:
    """
    Provide common headers for API requests.

    Returns:
        Dictionary of HTTP headers.
    """
    return {
        "Content-Type": "application/json",
        "Accept": "application/json"
    }
