"""Tests for the unified mod data model."""
import pytest
from pydantic import ValidationError as PydanticValidationError

from mods.models import (
    MultiProviderSearchResponse,
    ProviderConfig,
    UnifiedAuthor,
    UnifiedClassification,
    UnifiedDependency,
    UnifiedProject,
    UnifiedSearchParams,
    UnifiedSearchResponse,
    UnifiedVersion,
    coerce_classification,
)


def _project(**overrides):
    data = {
        "id": "p1",
        "slug": "p1",
        "provider_id": "modtale",
        "title": "Project One",
        "author": UnifiedAuthor.from_name("alice"),
    }
    data.update(overrides)
    return UnifiedProject(**data)


def _version(version_id: str) -> UnifiedVersion:
    return UnifiedVersion(id=version_id, version=f"1.0.{version_id}")


class TestLatestVersion:
    def test_latest_version_is_first_version(self):
        project = _project(versions=[_version("v2"), _version("v1")])
        assert project.latest_version is not None
        assert project.latest_version.id == "v2"

    def test_latest_version_absent_without_versions(self):
        assert _project().latest_version is None

    def test_latest_version_serialized_in_camel_case(self):
        data = _project(versions=[_version("v1")]).model_dump(by_alias=True, mode="json")
        assert data["latestVersion"]["id"] == "v1"
        assert data["providerId"] == "modtale"

    def test_latest_version_null_in_json_when_no_versions(self):
        data = _project().model_dump(by_alias=True, mode="json")
        assert data["latestVersion"] is None

    def test_find_version(self):
        project = _project(versions=[_version("v2"), _version("v1")])
        assert project.find_version("v1").id == "v1"
        assert project.find_version("v9") is None


class TestClassification:
    @pytest.mark.parametrize("value", [None, "", "unknown", 42, "mods"])
    def test_unrecognized_values_default_to_plugin(self, value):
        assert _project(classification=value).classification == UnifiedClassification.PLUGIN

    def test_lowercase_value_is_accepted(self):
        assert _project(classification="modpack").classification == UnifiedClassification.MODPACK

    def test_coerce_keeps_enum_members(self):
        assert coerce_classification(UnifiedClassification.ART) is UnifiedClassification.ART


class TestDependency:
    @pytest.mark.parametrize(
        "dep_type,required",
        [("required", True), ("optional", False), ("incompatible", False), ("embedded", False)],
    )
    def test_required_follows_type(self, dep_type, required):
        dep = UnifiedDependency(project_id="x", project_name="X", type=dep_type)
        assert dep.required is required

    def test_resolved_defaults_true(self):
        assert UnifiedDependency(project_id="x", project_name="X").resolved is True

    def test_unknown_type_rejected(self):
        with pytest.raises(PydanticValidationError):
            UnifiedDependency(project_id="x", project_name="X", type="recommended")


class TestProjectFields:
    def test_game_versions_are_distinct(self):
        project = _project(game_versions=["1.0", "1.1", "1.0", None, ""])
        assert project.game_versions == ["1.0", "1.1"]

    def test_negative_file_size_clamped(self):
        assert UnifiedVersion(id="v", version="1", file_size=-5).file_size == 0

    def test_raw_payload_uses_underscore_alias(self):
        project = _project(raw={"upstream": True})
        assert project.model_dump(by_alias=True)["_raw"] == {"upstream": True}

    def test_populate_from_camel_case(self):
        project = UnifiedProject.model_validate(
            {
                "id": "p",
                "slug": "p",
                "providerId": "curseforge",
                "title": "T",
                "author": {"id": "a", "username": "a"},
                "iconUrl": "https://example.com/i.png",
            }
        )
        assert project.provider_id == "curseforge"
        assert project.icon_url == "https://example.com/i.png"


class TestSearchModels:
    def test_search_params_defaults(self):
        params = UnifiedSearchParams()
        assert params.page == 1
        assert params.page_size == 50

    def test_search_params_reject_page_zero(self):
        with pytest.raises(PydanticValidationError):
            UnifiedSearchParams(page=0)

    def test_empty_response_echoes_requested_paging(self):
        response = UnifiedSearchResponse.empty("modtale", UnifiedSearchParams(page=3, page_size=10))
        assert response.total == 0
        assert response.has_more is False
        assert response.projects == []
        assert (response.page, response.page_size, response.provider_id) == (3, 10, "modtale")

    def test_total_across_providers_sums_totals(self):
        response = MultiProviderSearchResponse(
            results=[
                UnifiedSearchResponse(provider_id="a", total=5),
                UnifiedSearchResponse(provider_id="b", total=0),
                UnifiedSearchResponse(provider_id="c", total=7),
            ]
        )
        assert response.total_across_providers == 12
        assert response.model_dump(by_alias=True)["totalAcrossProviders"] == 12

    def test_empty_multi_response(self):
        data = MultiProviderSearchResponse(results=[]).model_dump(by_alias=True)
        assert data == {"results": [], "totalAcrossProviders": 0}

    def test_provider_config_rejects_non_positive_timeout(self):
        with pytest.raises(PydanticValidationError):
            ProviderConfig(timeout=0)
