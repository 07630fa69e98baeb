"""
REST API endpoints for the Project Explorer.

Every mutation is a single store call; clients re-read the owning tree
(``GET /api/projects`` or ``GET /api/features``) afterwards instead of
patching local state.

Endpoints:
    GET    /api/health                               - Health check

    GET    /api/projects                             - Project tree
    POST   /api/projects                             - Create a project
    PATCH  /api/projects/<id>                        - Rename a project
    DELETE /api/projects/<id>                        - Delete a project
    POST   /api/projects/<id>/pages                  - Add a page
    POST   /api/projects/<id>/imports/java           - Import page objects
    PATCH  /api/pages/<id>                           - Rename a page
    DELETE /api/pages/<id>                           - Delete a page
    POST   /api/pages/<id>/elements                  - Add a default element
    GET    /api/elements                             - Flat element list
    POST   /api/elements                             - Create a full element
    PATCH  /api/elements/<id>                        - Update element fields
    DELETE /api/elements/<id>                        - Delete an element

    GET    /api/features                             - Feature forest
    POST   /api/features                             - Add a feature
    POST   /api/features/<id>/features               - Add a sub-feature
    POST   /api/features/<id>/scenarios              - Add a scenario
    POST   /api/features/imports/directory           - Import a directory at the root
    POST   /api/features/<id>/imports/directory      - Import a directory under a feature
    PATCH  /api/features/<id>                        - Rename a feature
    DELETE /api/features/<id>                        - Delete a feature subtree
    PATCH  /api/scenarios/<id>                       - Rename a scenario
    DELETE /api/scenarios/<id>                       - Delete a scenario
    POST   /api/scenarios/<id>/elements              - Drop an element on a scenario
    PATCH  /api/scenario-elements/<id>               - Change a step's action
    DELETE /api/scenario-elements/<id>               - Remove a step
"""

import logging
import os
from dataclasses import asdict

from flask import Blueprint, Response, current_app, jsonify, request

from explorer.importers import DirectoryImporter, PageObjectImporter
from explorer.models import (
    ActionType,
    ScenarioActionType,
    SelectorType,
    VALUE_BEARING_ACTIONS,
)
from explorer.store import RecordNotFound, StoreError, current_store

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

MAX_NAME_LENGTH = 200

NEW_PAGE_NAME = "New Page"
NEW_ELEMENT_NAME = "New Element"
NEW_FEATURE_NAME = "New Feature"
NEW_SCENARIO_NAME = "New Scenario"


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def validate_name(data: dict) -> tuple[bool, str | None]:
    """
    Validate the ``name`` field of a create or rename request.

    Returns:
        Tuple of (is_valid, error_message).
    """
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return False, "'name' is required"
    if len(name) > MAX_NAME_LENGTH:
        return False, f"Name must be {MAX_NAME_LENGTH} characters or less"
    return True, None


def validate_element_data(data: dict, required_fields: list[str] | None = None) -> tuple[bool, str | None]:
    """
    Validate UI element fields from a request.

    Args:
        data: Dictionary containing element data.
        required_fields: List of fields that must be present.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if required_fields:
        for field in required_fields:
            value = data.get(field)
            if not value or (isinstance(value, str) and not value.strip()):
                return False, f"'{field}' is required"

    if "name" in data:
        is_valid, error = validate_name(data)
        if not is_valid:
            return is_valid, error

    if "selector_type" in data:
        valid_selectors = [s.value for s in SelectorType]
        if data["selector_type"] not in valid_selectors:
            return False, f"Invalid selector_type. Must be one of: {valid_selectors}"

    if "selector_value" in data:
        value = data["selector_value"]
        if not isinstance(value, str) or not value.strip():
            return False, "'selector_value' must not be blank"

    if "action_type" in data:
        valid_actions = [a.value for a in ActionType]
        if data["action_type"] not in valid_actions:
            return False, f"Invalid action_type. Must be one of: {valid_actions}"

    if "action_value" in data:
        value = data["action_value"]
        if not isinstance(value, str) or not value.strip():
            return False, "'action_value' must not be blank"

    return True, None


def validate_scenario_element_data(data: dict) -> tuple[bool, str | None]:
    """Validate scenario step fields from a request."""
    if "element_name" in data:
        if not isinstance(data["element_name"], str):
            return False, "'element_name' must be a string"
        page_name, dot, element_name = data["element_name"].partition(".")
        if not dot or not page_name.strip() or not element_name.strip():
            return False, "'element_name' must look like '<Page>.<Element>'"

    if "action_type" in data:
        valid_actions = [a.value for a in ScenarioActionType]
        if data["action_type"] not in valid_actions:
            return False, f"Invalid action_type. Must be one of: {valid_actions}"

    if "action_value" in data and not isinstance(data["action_value"], str):
        return False, "'action_value' must be a string"

    return True, None


def json_body() -> dict | None:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def uploaded_files() -> list:
    """Return ``(relative path, file)`` pairs from the ``files`` form field."""
    return [(upload.filename or "", upload) for upload in request.files.getlist("files")]


def batch_size() -> int:
    return current_app.config.get("IMPORT_BATCH_SIZE", 100)


def rename(table, record_id: str) -> tuple[Response, int]:
    data = json_body()
    if data is None:
        return jsonify({"error": "Request body must be JSON"}), 400

    is_valid, error = validate_name(data)
    if not is_valid:
        logger.warning("Validation failed: %s", error)
        return jsonify({"error": error}), 400

    record = table.update(record_id, {"name": data["name"].strip()})
    logger.info("Renamed %s %s", table.name, record_id)
    return jsonify(record.to_dict()), 200


def delete(table, record_id: str) -> tuple[Response, int]:
    table.delete(record_id)
    logger.info("Deleted %s %s", table.name, record_id)
    return jsonify({"message": "Deleted successfully"}), 200


# -----------------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------------

@api_bp.route("/health", methods=["GET"])
def health_check() -> tuple[Response, int]:
    """Health check endpoint for deployment verification."""
    return jsonify({
        "status": "healthy",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "version": os.getenv("APP_VERSION", "unknown")
    }), 200


# -----------------------------------------------------------------------------
# Projects, Pages, Elements
# -----------------------------------------------------------------------------

@api_bp.route("/projects", methods=["GET"])
def get_projects() -> tuple[Response, int]:
    """
    Return every project with its pages and their elements.

    Returns:
        JSON response with the project tree and 200 status code.
    """
    logger.info("GET /api/projects - Fetching project tree")
    projects = current_store().fetch_projects()
    return jsonify({"projects": projects, "count": len(projects)}), 200


@api_bp.route("/projects", methods=["POST"])
def create_project() -> tuple[Response, int]:
    """
    Create a new project.

    Request Body (JSON):
        name: Project name (required)
    """
    logger.info("POST /api/projects - Creating project")

    data = json_body()
    if data is None:
        return jsonify({"error": "Request body must be JSON"}), 400

    is_valid, error = validate_name(data)
    if not is_valid:
        logger.warning("Validation failed: %s", error)
        return jsonify({"error": error}), 400

    [project] = current_store().projects.insert([{"name": data["name"].strip()}])
    logger.info("Created project with ID: %s", project.id)
    return jsonify(project.to_dict()), 201


@api_bp.route("/projects/<project_id>", methods=["PATCH"])
def rename_project(project_id: str) -> tuple[Response, int]:
    logger.info("PATCH /api/projects/%s - Renaming project", project_id)
    return rename(current_store().projects, project_id)


@api_bp.route("/projects/<project_id>", methods=["DELETE"])
def delete_project(project_id: str) -> tuple[Response, int]:
    """Delete a project together with its pages and elements."""
    logger.info("DELETE /api/projects/%s - Deleting project", project_id)
    return delete(current_store().projects, project_id)


@api_bp.route("/projects/<project_id>/pages", methods=["POST"])
def create_page(project_id: str) -> tuple[Response, int]:
    """
    Add a page named ``New Page`` (or ``New Page <n>`` when taken).
    """
    logger.info("POST /api/projects/%s/pages - Creating page", project_id)

    store = current_store()
    store.projects.get(project_id)
    name = store.unique_name(store.pages, NEW_PAGE_NAME, project_id=project_id)
    [page] = store.pages.insert([{"name": name, "project_id": project_id}])

    logger.info("Created page %s in project %s", page.id, project_id)
    return jsonify(page.to_dict()), 201


@api_bp.route("/projects/<project_id>/imports/java", methods=["POST"])
def import_page_objects(project_id: str) -> tuple[Response, int]:
    """
    Import uploaded Java page-object classes into a project.

    Form Data:
        files: One or more ``.java`` files.

    Returns:
        JSON import report with 200 status code.
    """
    logger.info("POST /api/projects/%s/imports/java - Importing page objects", project_id)

    store = current_store()
    store.projects.get(project_id)

    files = uploaded_files()
    if not files:
        return jsonify({"error": "No files uploaded"}), 400

    report = PageObjectImporter(store, batch_size=batch_size()).run(project_id, files)
    body = asdict(report)
    body["failure_message"] = report.failure_message()
    return jsonify(body), 200


@api_bp.route("/pages/<page_id>", methods=["PATCH"])
def rename_page(page_id: str) -> tuple[Response, int]:
    logger.info("PATCH /api/pages/%s - Renaming page", page_id)
    return rename(current_store().pages, page_id)


@api_bp.route("/pages/<page_id>", methods=["DELETE"])
def delete_page(page_id: str) -> tuple[Response, int]:
    logger.info("DELETE /api/pages/%s - Deleting page", page_id)
    return delete(current_store().pages, page_id)


@api_bp.route("/pages/<page_id>/elements", methods=["POST"])
def create_default_element(page_id: str) -> tuple[Response, int]:
    """Add a placeholder element to a page."""
    logger.info("POST /api/pages/%s/elements - Creating element", page_id)

    store = current_store()
    store.pages.get(page_id)
    [element] = store.elements.insert([{
        "name": NEW_ELEMENT_NAME,
        "page_id": page_id,
        "selector_type": SelectorType.ID.value,
        "selector_value": "element",
        "action_type": ActionType.CLICK.value,
        "action_value": "",
    }])

    logger.info("Created element %s on page %s", element.id, page_id)
    return jsonify(element.to_dict()), 201


@api_bp.route("/elements", methods=["GET"])
def get_elements() -> tuple[Response, int]:
    """
    List elements, newest first.

    Query Parameters:
        search: Case-insensitive fragment of the element name.
        page_id: Restrict to one page.
    """
    logger.info("GET /api/elements - Fetching elements")

    filters = {}
    if request.args.get("page_id"):
        filters["page_id"] = request.args["page_id"]
    contains = {}
    if request.args.get("search"):
        contains["name"] = request.args["search"]

    elements = current_store().elements.select(filters=filters, contains=contains, descending=True)
    return jsonify({
        "elements": [element.to_dict() for element in elements],
        "count": len(elements)
    }), 200


@api_bp.route("/elements", methods=["POST"])
def create_element() -> tuple[Response, int]:
    """
    Create an element with every field supplied.

    Request Body (JSON):
        page_id, name, selector_type, selector_value, action_type (required)
        action_value (optional, kept only for ``type``)
    """
    logger.info("POST /api/elements - Creating element")

    data = json_body()
    if data is None:
        return jsonify({"error": "Request body must be JSON"}), 400

    if data.get("action_value") == "":
        data.pop("action_value")
    is_valid, error = validate_element_data(
        data,
        required_fields=["page_id", "name", "selector_type", "selector_value", "action_type"]
    )
    if not is_valid:
        logger.warning("Validation failed: %s", error)
        return jsonify({"error": error}), 400

    store = current_store()
    store.pages.get(data["page_id"])

    action_value = data.get("action_value", "")
    if data["action_type"] != ActionType.TYPE.value:
        action_value = ""

    [element] = store.elements.insert([{
        "name": data["name"].strip(),
        "page_id": data["page_id"],
        "selector_type": data["selector_type"],
        "selector_value": data["selector_value"],
        "action_type": data["action_type"],
        "action_value": action_value,
    }])

    logger.info("Created element with ID: %s", element.id)
    return jsonify(element.to_dict()), 201


@api_bp.route("/elements/<element_id>", methods=["PATCH"])
def update_element(element_id: str) -> tuple[Response, int]:
    """
    Update element fields.

    Switching ``action_type`` away from ``type`` clears ``action_value``.

    Request Body (JSON):
        Any of name, selector_type, selector_value, action_type, action_value.
    """
    logger.info("PATCH /api/elements/%s - Updating element", element_id)

    store = current_store()
    element = store.elements.get(element_id)

    data = json_body()
    if data is None:
        return jsonify({"error": "Request body must be JSON"}), 400

    # Non-type actions always store a blank value
    effective_action = data.get("action_type", element.action_type)
    if effective_action != ActionType.TYPE.value and data.get("action_value") == "":
        data.pop("action_value")

    is_valid, error = validate_element_data(data)
    if not is_valid:
        logger.warning("Validation failed: %s", error)
        return jsonify({"error": error}), 400

    fields = ("name", "selector_type", "selector_value", "action_type", "action_value")
    updates = {field: data[field] for field in fields if field in data}
    if "name" in updates:
        updates["name"] = updates["name"].strip()

    if updates.get("action_type", element.action_type) != ActionType.TYPE.value:
        updates["action_value"] = ""

    element = store.elements.update(element_id, updates)
    logger.info("Updated element %s", element_id)
    return jsonify(element.to_dict()), 200


@api_bp.route("/elements/<element_id>", methods=["DELETE"])
def delete_element(element_id: str) -> tuple[Response, int]:
    logger.info("DELETE /api/elements/%s - Deleting element", element_id)
    return delete(current_store().elements, element_id)


# -----------------------------------------------------------------------------
# Features, Scenarios, Scenario Elements
# -----------------------------------------------------------------------------

@api_bp.route("/features", methods=["GET"])
def get_features() -> tuple[Response, int]:
    """
    Return the feature forest with scenarios and their steps.

    Returns:
        JSON response with root features and 200 status code.
    """
    logger.info("GET /api/features - Fetching feature tree")
    features = current_store().fetch_feature_tree()
    return jsonify({"features": features, "count": len(features)}), 200


def _create_feature(parent_id: str | None) -> tuple[Response, int]:
    store = current_store()
    if parent_id is not None:
        store.features.get(parent_id)

    name = store.unique_name(store.features, NEW_FEATURE_NAME, parent_feature_id=parent_id)
    [feature] = store.features.insert([{"name": name, "parent_feature_id": parent_id}])

    logger.info("Created feature %s under %s", feature.id, parent_id)
    return jsonify(feature.to_dict()), 201


@api_bp.route("/features", methods=["POST"])
def create_feature() -> tuple[Response, int]:
    """
    Add a feature named ``New Feature`` (numbered when taken).

    Request Body (JSON, optional):
        parent_feature_id: Parent feature, omitted or null for a root.
    """
    logger.info("POST /api/features - Creating feature")
    data = json_body() or {}
    return _create_feature(data.get("parent_feature_id"))


@api_bp.route("/features/<feature_id>/features", methods=["POST"])
def create_sub_feature(feature_id: str) -> tuple[Response, int]:
    logger.info("POST /api/features/%s/features - Creating sub-feature", feature_id)
    return _create_feature(feature_id)


@api_bp.route("/features/<feature_id>/scenarios", methods=["POST"])
def create_scenario(feature_id: str) -> tuple[Response, int]:
    """Add a scenario named ``New Scenario`` (numbered when taken)."""
    logger.info("POST /api/features/%s/scenarios - Creating scenario", feature_id)

    store = current_store()
    store.features.get(feature_id)
    name = store.unique_name(store.scenarios, NEW_SCENARIO_NAME, feature_id=feature_id)
    [scenario] = store.scenarios.insert([{"name": name, "feature_id": feature_id}])

    logger.info("Created scenario %s in feature %s", scenario.id, feature_id)
    return jsonify(scenario.to_dict()), 201


def _import_directory(parent_id: str | None) -> tuple[Response, int]:
    store = current_store()
    if parent_id is not None:
        store.features.get(parent_id)

    files = uploaded_files()
    if not files:
        return jsonify({"error": "No files uploaded"}), 400

    report = DirectoryImporter(store, batch_size=batch_size()).run(files, parent_id)
    return jsonify(asdict(report)), 200


@api_bp.route("/features/imports/directory", methods=["POST"])
def import_root_directory() -> tuple[Response, int]:
    """
    Import an uploaded directory as root features.

    Form Data:
        files: Every file of the directory, named by its relative path.
    """
    logger.info("POST /api/features/imports/directory - Importing directory")
    return _import_directory(None)


@api_bp.route("/features/<feature_id>/imports/directory", methods=["POST"])
def import_directory(feature_id: str) -> tuple[Response, int]:
    logger.info("POST /api/features/%s/imports/directory - Importing directory", feature_id)
    return _import_directory(feature_id)


@api_bp.route("/features/<feature_id>", methods=["PATCH"])
def rename_feature(feature_id: str) -> tuple[Response, int]:
    logger.info("PATCH /api/features/%s - Renaming feature", feature_id)
    return rename(current_store().features, feature_id)


@api_bp.route("/features/<feature_id>", methods=["DELETE"])
def delete_feature(feature_id: str) -> tuple[Response, int]:
    """Delete a feature with all nested features and scenarios."""
    logger.info("DELETE /api/features/%s - Deleting feature", feature_id)
    return delete(current_store().features, feature_id)


@api_bp.route("/scenarios/<scenario_id>", methods=["PATCH"])
def rename_scenario(scenario_id: str) -> tuple[Response, int]:
    logger.info("PATCH /api/scenarios/%s - Renaming scenario", scenario_id)
    return rename(current_store().scenarios, scenario_id)


@api_bp.route("/scenarios/<scenario_id>", methods=["DELETE"])
def delete_scenario(scenario_id: str) -> tuple[Response, int]:
    logger.info("DELETE /api/scenarios/%s - Deleting scenario", scenario_id)
    return delete(current_store().scenarios, scenario_id)


@api_bp.route("/scenarios/<scenario_id>/elements", methods=["POST"])
def add_scenario_element(scenario_id: str) -> tuple[Response, int]:
    """
    Append a step referencing a UI element, as done by drag and drop.

    Request Body (JSON):
        element_name: ``"<PageName>.<ElementName>"`` (required)
    """
    logger.info("POST /api/scenarios/%s/elements - Adding step", scenario_id)

    data = json_body()
    if data is None or "element_name" not in data:
        return jsonify({"error": "'element_name' is required"}), 400

    is_valid, error = validate_scenario_element_data({"element_name": data["element_name"]})
    if not is_valid:
        logger.warning("Validation failed: %s", error)
        return jsonify({"error": error}), 400

    store = current_store()
    store.scenarios.get(scenario_id)
    [step] = store.scenario_elements.insert([{
        "scenario_id": scenario_id,
        "element_name": data["element_name"],
        "action_type": ScenarioActionType.CLICK.value,
        "action_value": "",
    }])

    logger.info("Added step %s to scenario %s", step.id, scenario_id)
    return jsonify(step.to_dict()), 201


@api_bp.route("/scenario-elements/<step_id>", methods=["PATCH"])
def update_scenario_element(step_id: str) -> tuple[Response, int]:
    """
    Change the action of a scenario step.

    Actions that take no value clear ``action_value``.

    Request Body (JSON):
        action_type: New action (optional)
        action_value: Argument for value-bearing actions (optional)
    """
    logger.info("PATCH /api/scenario-elements/%s - Updating step", step_id)

    store = current_store()
    step = store.scenario_elements.get(step_id)

    data = json_body()
    if data is None:
        return jsonify({"error": "Request body must be JSON"}), 400

    is_valid, error = validate_scenario_element_data(data)
    if not is_valid:
        logger.warning("Validation failed: %s", error)
        return jsonify({"error": error}), 400

    updates = {field: data[field] for field in ("action_type", "action_value") if field in data}
    action_type = ScenarioActionType(updates.get("action_type", step.action_type))
    if action_type not in VALUE_BEARING_ACTIONS:
        updates["action_value"] = ""

    step = store.scenario_elements.update(step_id, updates)
    logger.info("Updated step %s", step_id)
    return jsonify(step.to_dict()), 200


@api_bp.route("/scenario-elements/<step_id>", methods=["DELETE"])
def delete_scenario_element(step_id: str) -> tuple[Response, int]:
    logger.info("DELETE /api/scenario-elements/%s - Removing step", step_id)
    return delete(current_store().scenario_elements, step_id)


# -----------------------------------------------------------------------------
# Error Handlers
# -----------------------------------------------------------------------------

@api_bp.errorhandler(RecordNotFound)
def record_not_found(error: RecordNotFound) -> tuple[Response, int]:
    """Handle lookups of unknown ids."""
    logger.warning("%s", error)
    return jsonify({"error": "Resource not found"}), 404


@api_bp.errorhandler(StoreError)
def store_failure(error: StoreError) -> tuple[Response, int]:
    """Handle database failures; the session was already rolled back."""
    logger.error("Store failure: %s", error)
    return jsonify({"error": str(error)}), 500


@api_bp.errorhandler(400)
def bad_request(error: Exception) -> tuple[Response, int]:
    """Handle 400 Bad Request errors."""
    return jsonify({"error": "Bad request"}), 400


@api_bp.errorhandler(404)
def not_found(error: Exception) -> tuple[Response, int]:
    """Handle 404 Not Found errors."""
    return jsonify({"error": "Resource not found"}), 404


@api_bp.errorhandler(500)
def internal_error(error: Exception) -> tuple[Response, int]:
    """Handle 500 Internal Server errors."""
    logger.error(f"Internal server error: {error}")
    return jsonify({"error": "Internal server error"}), 500
