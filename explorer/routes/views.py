"""
HTML view routes for the Project Explorer web interface.

The index page shows the project tree and the feature tree side by side.
Import forms post here; the reports are flashed and the browser is sent
back to the index, which re-reads both trees.

Routes:
    GET  /                                   - Both trees (home)
    POST /projects                           - Create a project
    POST /projects/<id>/imports/java         - Upload page-object classes
    POST /features/imports/directory         - Upload a directory at the root
    POST /features/<id>/imports/directory    - Upload a directory under a feature
"""

import logging

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from explorer.importers import DirectoryImporter, PageObjectImporter
from explorer.store import RecordNotFound, StoreError, current_store

logger = logging.getLogger(__name__)

views_bp = Blueprint("views", __name__)


def _uploads() -> list:
    return [(upload.filename or "", upload) for upload in request.files.getlist("files")]


@views_bp.route("/")
def index():
    """
    Render both trees.

    Returns:
        Rendered index.html template.
    """
    logger.info("GET / - Rendering trees")

    store = current_store()
    return render_template(
        "index.html",
        projects=store.fetch_projects(),
        features=store.fetch_feature_tree()
    )


@views_bp.route("/projects", methods=["POST"])
def create_project():
    """Handle the new project form."""
    logger.info("POST /projects - Creating project from form")

    name = request.form.get("name", "").strip()
    if not name:
        flash("Project name is required", "error")
        return redirect(url_for("views.index"))

    try:
        current_store().projects.insert([{"name": name}])
    except StoreError:
        flash("Project could not be created", "error")
        return redirect(url_for("views.index"))

    flash("Project created successfully", "success")
    return redirect(url_for("views.index"))


@views_bp.route("/projects/<project_id>/imports/java", methods=["POST"])
def import_page_objects(project_id: str):
    """Import uploaded ``.java`` files and flash the outcome."""
    logger.info("POST /projects/%s/imports/java - Importing page objects", project_id)

    store = current_store()
    try:
        store.projects.get(project_id)
    except RecordNotFound:
        flash("Project not found", "error")
        return redirect(url_for("views.index"))

    importer = PageObjectImporter(store, batch_size=current_app.config["IMPORT_BATCH_SIZE"])
    try:
        report = importer.run(project_id, _uploads())
    except StoreError:
        flash("Import failed", "error")
        return redirect(url_for("views.index"))

    flash(
        f"Imported {report.pages_created} pages with {report.elements_created} elements",
        "success"
    )
    for file_name, reason in report.skipped_files:
        flash(f"Skipped {file_name}: {reason}", "warning")
    failure_message = report.failure_message()
    if failure_message:
        flash(failure_message, "error")

    return redirect(url_for("views.index"))


@views_bp.route("/features/imports/directory", methods=["POST"], defaults={"feature_id": None})
@views_bp.route("/features/<feature_id>/imports/directory", methods=["POST"])
def import_directory(feature_id: str | None):
    """Import an uploaded directory tree and flash the outcome."""
    logger.info("POST /features/%s/imports/directory - Importing directory", feature_id)

    store = current_store()
    if feature_id is not None:
        try:
            store.features.get(feature_id)
        except RecordNotFound:
            flash("Feature not found", "error")
            return redirect(url_for("views.index"))

    importer = DirectoryImporter(store, batch_size=current_app.config["IMPORT_BATCH_SIZE"])
    report = importer.run(_uploads(), feature_id)

    flash(
        f"Imported {report.features_created} features and {report.scenarios_created} scenarios",
        "success"
    )
    if report.failed_batches:
        flash(f"{report.failed_batches} batches could not be saved", "error")

    return redirect(url_for("views.index"))
