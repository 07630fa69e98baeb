"""
API tests for the feature tree: features, scenarios and scenario steps.
"""

import json

import pytest

pytestmark = pytest.mark.integration


def feature_names(client) -> list[str]:
    data = json.loads(client.get("/api/features").data)
    return [feature["name"] for feature in data["features"]]


class TestFeatures:
    """Tests for /api/features."""

    def test_get_features_returns_forest(self, client, db_session, feature_tree):
        # Act
        response = client.get("/api/features")

        # Assert
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["count"] == 2
        checkout = next(f for f in data["features"] if f["name"] == "Checkout")
        assert checkout["parent_feature_id"] is None
        assert checkout["features"][0]["name"] == "Payments"

    def test_root_features_get_unique_names(self, client, db_session):
        first = json.loads(client.post("/api/features").data)
        second = json.loads(client.post("/api/features").data)

        assert first["name"] == "New Feature"
        assert second["name"] == "New Feature 1"
        assert second["parent_feature_id"] is None

    def test_sub_feature_names_are_scoped_to_parent(self, client, db_session, feature_factory):
        feature_factory(name="New Feature")
        parent = feature_factory(name="Parent")

        response = client.post(f"/api/features/{parent.id}/features")

        data = json.loads(response.data)
        assert response.status_code == 201
        assert data["name"] == "New Feature"
        assert data["parent_feature_id"] == parent.id

    def test_create_feature_with_parent_in_body(self, client, db_session, api_headers, feature_factory):
        parent = feature_factory(name="Parent")

        response = client.post(
            "/api/features",
            data=json.dumps({"parent_feature_id": parent.id}),
            headers=api_headers
        )

        assert json.loads(response.data)["parent_feature_id"] == parent.id

    def test_sub_feature_of_unknown_parent_returns_404(self, client, db_session):
        response = client.post("/api/features/missing/features")

        assert response.status_code == 404

    def test_rename_feature(self, client, db_session, api_headers, feature_factory):
        feature = feature_factory(name="Old")

        response = client.patch(
            f"/api/features/{feature.id}",
            data=json.dumps({"name": "Renamed"}),
            headers=api_headers
        )

        assert response.status_code == 200
        assert feature_names(client) == ["Renamed"]

    def test_delete_feature_removes_descendants(self, client, db_session, feature_tree):
        # Act
        response = client.delete(f"/api/features/{feature_tree['checkout'].id}")

        # Assert
        assert response.status_code == 200
        assert feature_names(client) == ["Search"]
        missing = client.patch(
            f"/api/scenarios/{feature_tree['scenario'].id}",
            data=json.dumps({"name": "x"}),
            content_type="application/json"
        )
        assert missing.status_code == 404


class TestScenarios:
    """Tests for scenario endpoints."""

    def test_new_scenarios_get_unique_names(self, client, db_session, feature_factory):
        feature = feature_factory()

        names = [
            json.loads(client.post(f"/api/features/{feature.id}/scenarios").data)["name"]
            for _ in range(2)
        ]

        assert names == ["New Scenario", "New Scenario 1"]

    def test_rename_scenario_rejects_blank(self, client, db_session, api_headers, scenario_factory):
        scenario = scenario_factory()

        response = client.patch(
            f"/api/scenarios/{scenario.id}",
            data=json.dumps({"name": " "}),
            headers=api_headers
        )

        assert response.status_code == 400

    def test_delete_scenario(self, client, db_session, feature_tree):
        response = client.delete(f"/api/scenarios/{feature_tree['scenario'].id}")

        assert response.status_code == 200
        tree = json.loads(client.get("/api/features").data)["features"]
        checkout = next(f for f in tree if f["name"] == "Checkout")
        assert checkout["features"][0]["scenarios"] == []


class TestScenarioElements:
    """Tests for dropping elements on scenarios and editing steps."""

    def test_drop_element_creates_click_step(self, client, db_session, api_headers, scenario_factory):
        scenario = scenario_factory()

        response = client.post(
            f"/api/scenarios/{scenario.id}/elements",
            data=json.dumps({"element_name": "Login.Submit Button"}),
            headers=api_headers
        )

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data["action_type"] == "Click"
        assert data["action_value"] == ""
        assert data["needs_value"] is False

    @pytest.mark.parametrize("element_name", ["Submit", ".Submit", "Login.", ""])
    def test_drop_rejects_malformed_reference(
        self, client, db_session, api_headers, scenario_factory, element_name
    ):
        scenario = scenario_factory()

        response = client.post(
            f"/api/scenarios/{scenario.id}/elements",
            data=json.dumps({"element_name": element_name}),
            headers=api_headers
        )

        assert response.status_code == 400

    @pytest.mark.parametrize("element_name", [["Login.Submit"], 42, None, {"page": "Login"}])
    def test_drop_rejects_non_string_reference(
        self, client, db_session, api_headers, scenario_factory, element_name
    ):
        scenario = scenario_factory()

        response = client.post(
            f"/api/scenarios/{scenario.id}/elements",
            data=json.dumps({"element_name": element_name}),
            headers=api_headers
        )

        assert response.status_code == 400
        assert "must be a string" in json.loads(response.data)["error"]

    def test_drop_on_unknown_scenario_returns_404(self, client, db_session, api_headers):
        response = client.post(
            "/api/scenarios/missing/elements",
            data=json.dumps({"element_name": "Login.Submit"}),
            headers=api_headers
        )

        assert response.status_code == 404

    def test_update_step_to_value_bearing_action(
        self, client, db_session, api_headers, scenario_element_factory
    ):
        step = scenario_element_factory()

        response = client.patch(
            f"/api/scenario-elements/{step.id}",
            data=json.dumps({"action_type": "Send Keys", "action_value": "hello"}),
            headers=api_headers
        )

        data = json.loads(response.data)
        assert data["action_type"] == "Send Keys"
        assert data["action_value"] == "hello"
        assert data["needs_value"] is True

    def test_value_cleared_for_valueless_action(
        self, client, db_session, api_headers, scenario_element_factory
    ):
        step = scenario_element_factory(action_type="Wait Text", action_value="Welcome")

        response = client.patch(
            f"/api/scenario-elements/{step.id}",
            data=json.dumps({"action_type": "Should See"}),
            headers=api_headers
        )

        assert json.loads(response.data)["action_value"] == ""

    def test_unknown_action_is_rejected(self, client, db_session, api_headers, scenario_element_factory):
        step = scenario_element_factory()

        response = client.patch(
            f"/api/scenario-elements/{step.id}",
            data=json.dumps({"action_type": "click"}),
            headers=api_headers
        )

        assert response.status_code == 400

    def test_remove_step(self, client, db_session, scenario_element_factory):
        step = scenario_element_factory()

        response = client.delete(f"/api/scenario-elements/{step.id}")

        assert response.status_code == 200
        assert client.delete(f"/api/scenario-elements/{step.id}").status_code == 404
