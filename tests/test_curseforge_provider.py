"""Tests for the CurseForge adapter."""
import asyncio

import httpx
import pytest

from exceptions import DownloadUnavailableError, UpstreamError, UpstreamHTTPError
from mods.models import (
    ProviderCapability,
    ProviderConfig,
    UnifiedClassification,
    UnifiedSearchParams,
)
from mods.providers.curseforge import CurseForgeProvider, classify_class_name

BASE = "https://cf.test"
GAME_ID = 70216

GAMES = {"data": [{"id": 432, "name": "Minecraft", "slug": "minecraft"}, {"id": 9001, "name": "Hytale", "slug": "hytale"}]}
CATEGORIES = {
    "data": [
        {"id": 10, "name": "Mods", "slug": "mods", "isClass": True},
        {"id": 11, "name": "Modpacks", "slug": "modpacks", "isClass": True},
        {"id": 12, "name": "Worlds", "slug": "worlds", "isClass": True},
        {"id": 13, "name": "Texture Packs", "slug": "texture-packs", "isClass": True},
        {"id": 50, "name": "Magic", "slug": "magic", "isClass": False, "classId": 10},
    ]
}


def _mod_payload(mod_id: int = 1, **overrides):
    data = {
        "id": mod_id,
        "name": f"Mod {mod_id}",
        "slug": f"mod-{mod_id}",
        "summary": "s" * 250,
        "classId": 11,
        "authors": [{"id": 7, "name": "carol"}],
        "categories": [{"id": 50, "name": "Magic", "slug": "magic", "iconUrl": "https://cf.test/m.png"}],
        "downloadCount": 1000,
        "thumbsUpCount": 12,
        "logo": {"url": "https://cf.test/logo.png"},
        "screenshots": [{"url": "https://cf.test/s1.png"}, {"url": "https://cf.test/s2.png"}],
        "latestFiles": [
            {
                "id": 900,
                "displayName": "Mod 1.2",
                "fileName": "mod-1.2.zip",
                "fileDate": "2025-03-01T00:00:00Z",
                "fileLength": 4096,
                "downloadCount": 50,
                "gameVersions": ["0.9"],
                "hashes": [{"value": "md5hash", "algo": 2}, {"value": "sha1hash", "algo": 1}],
            }
        ],
        "latestFilesIndexes": [{"gameVersion": "0.9"}, {"gameVersion": "0.9"}, {"gameVersion": "0.8"}],
        "dateCreated": "2025-01-01T00:00:00Z",
        "dateModified": "2025-03-01T00:00:00Z",
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_provider(transport_factory):
    def _make(routes=None, api_key="cf-key", game_id=GAME_ID):
        transport = transport_factory(routes)
        provider = CurseForgeProvider(
            base_url=BASE, client=transport.client(), game_slug="hytale", known_game_id=GAME_ID
        )
        provider.api_key = api_key
        provider.game_id = game_id
        return provider, transport

    return _make


class TestClassification:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Mods", UnifiedClassification.PLUGIN),
            ("Modpacks", UnifiedClassification.MODPACK),
            ("Texture Packs", UnifiedClassification.MODPACK),
            ("Resource Packs", UnifiedClassification.MODPACK),
            ("Art", UnifiedClassification.ART),
            ("Worlds", UnifiedClassification.SAVE),
            ("Data Sets", UnifiedClassification.DATA),
            ("Other", None),
        ],
    )
    def test_classify_class_name(self, name, expected):
        assert classify_class_name(name) == expected

    def test_unknown_class_id_defaults_to_plugin(self):
        provider = CurseForgeProvider(base_url=BASE)
        assert provider.get_classification(None) == UnifiedClassification.PLUGIN
        assert provider.get_classification(999) == UnifiedClassification.PLUGIN


class TestDiscovery:
    @pytest.mark.asyncio
    async def test_initialize_discovers_game_and_categories(self, make_provider):
        provider, transport = make_provider(
            {"/v1/games": GAMES, "/v1/categories": CATEGORIES}, api_key=None, game_id=None
        )

        await provider.initialize(ProviderConfig(api_key="cf-key"))

        assert provider.game_id == 9001
        assert transport.last("/v1/categories").url.params["gameId"] == "9001"
        assert transport.last("/v1/games").headers["x-api-key"] == "cf-key"
        assert provider.classification_map == {
            10: UnifiedClassification.PLUGIN,
            11: UnifiedClassification.MODPACK,
            12: UnifiedClassification.SAVE,
            13: UnifiedClassification.MODPACK,
        }

    @pytest.mark.asyncio
    async def test_game_missing_falls_back_to_known_id(self, make_provider):
        provider, _ = make_provider(
            {"/v1/games": {"data": [{"id": 1, "name": "Other", "slug": "other"}]}, "/v1/categories": CATEGORIES},
            api_key=None,
            game_id=None,
        )
        await provider.initialize(ProviderConfig(api_key="cf-key"))
        assert provider.game_id == GAME_ID

    @pytest.mark.asyncio
    async def test_discovery_failure_falls_back_to_known_id(self, make_provider, caplog):
        provider, _ = make_provider({"/v1/games": (500, {})}, api_key=None, game_id=None)
        await provider.initialize(ProviderConfig(api_key="cf-key"))
        assert provider.game_id == GAME_ID
        assert "Failed to discover game" in caplog.text

    @pytest.mark.asyncio
    async def test_initialize_without_key_makes_no_calls(self, make_provider):
        provider, transport = make_provider({}, api_key=None, game_id=None)
        await provider.initialize(ProviderConfig())
        assert transport.requests == []
        assert provider.is_configured() is False

    @pytest.mark.asyncio
    async def test_set_api_key_schedules_background_discovery(self, make_provider):
        provider, transport = make_provider(
            {"/v1/games": GAMES, "/v1/categories": CATEGORIES}, api_key=None, game_id=None
        )

        provider.set_api_key("new-key")
        assert provider.is_configured() is True
        await provider._discovery_task

        assert provider.game_id == 9001
        assert transport.last("/v1/games").headers["x-api-key"] == "new-key"

    def test_set_api_key_without_loop_does_not_raise(self):
        provider = CurseForgeProvider(base_url=BASE)
        provider.set_api_key("k")
        assert provider.api_key == "k"
        assert provider._discovery_task is None

    @pytest.mark.asyncio
    async def test_key_change_discovers_once(self, make_provider):
        provider, transport = make_provider(
            {"/v1/games": GAMES, "/v1/categories": CATEGORIES}, api_key=None, game_id=None
        )

        provider.set_api_key("new-key")
        background = provider._discovery_task
        await provider.initialize(ProviderConfig(api_key="new-key"))

        assert background.cancelled()
        assert transport.paths().count("/v1/games") == 1
        assert transport.paths().count("/v1/categories") == 1
        assert provider.game_id == 9001

    @pytest.mark.asyncio
    async def test_aclose_cancels_pending_discovery(self, caplog):
        started = asyncio.Event()

        async def _hanging(request):
            started.set()
            await asyncio.Event().wait()

        client = httpx.AsyncClient(transport=httpx.MockTransport(_hanging))
        provider = CurseForgeProvider(base_url=BASE, client=client)
        provider.set_api_key("k")
        discovery = provider._discovery_task
        await started.wait()

        await provider.aclose()
        await client.aclose()

        assert discovery.cancelled()
        assert provider._discovery_task is None
        assert "Failed to discover game" not in caplog.text
        assert "Failed to load categories" not in caplog.text


class TestSearch:
    def test_index_and_page_size(self, make_provider):
        provider, _ = make_provider()
        query = provider.build_search_query(UnifiedSearchParams(page=3, page_size=10))
        assert query["index"] == "20"
        assert query["pageSize"] == "10"
        assert query["gameId"] == str(GAME_ID)

    def test_page_size_capped(self, make_provider):
        provider, _ = make_provider()
        query = provider.build_search_query(UnifiedSearchParams(page=2, page_size=200))
        assert query["pageSize"] == "50"
        assert query["index"] == "50"

    @pytest.mark.parametrize(
        "sort_by,code", [("name", "1"), ("downloads", "2"), ("rating", "3"), ("updated", "4"), ("created", "11")]
    )
    def test_sort_field_codes(self, make_provider, sort_by, code):
        provider, _ = make_provider()
        query = provider.build_search_query(UnifiedSearchParams(sort_by=sort_by, sort_order="asc"))
        assert query["sortField"] == code
        assert query["sortOrder"] == "asc"

    def test_filters(self, make_provider):
        provider, _ = make_provider()
        provider.classification_map = {11: UnifiedClassification.MODPACK}
        query = provider.build_search_query(
            UnifiedSearchParams(
                query="sky",
                classification=UnifiedClassification.MODPACK,
                categories=["5", "6"],
                game_version="0.9",
            )
        )
        assert query["searchFilter"] == "sky"
        assert query["classId"] == "11"
        assert query["categoryIds"] == "[5,6]"
        assert query["gameVersion"] == "0.9"

    def test_unmapped_classification_is_omitted(self, make_provider):
        provider, _ = make_provider()
        query = provider.build_search_query(UnifiedSearchParams(classification=UnifiedClassification.DATA))
        assert "classId" not in query

    @pytest.mark.asyncio
    async def test_search_round_trips_page(self, make_provider):
        payload = {
            "data": [_mod_payload(1)],
            "pagination": {"index": 20, "pageSize": 10, "resultCount": 10, "totalCount": 45},
        }
        provider, transport = make_provider({"/v1/mods/search": payload})

        response = await provider.search_projects(UnifiedSearchParams(page=3, page_size=10))

        assert transport.last("/v1/mods/search").url.params["index"] == "20"
        assert response.page == 3
        assert response.page_size == 10
        assert response.total == 45
        assert response.has_more is True
        assert response.projects[0].id == "1"

    @pytest.mark.asyncio
    async def test_last_page_has_no_more(self, make_provider):
        payload = {
            "data": [_mod_payload(1)],
            "pagination": {"index": 40, "pageSize": 10, "resultCount": 5, "totalCount": 45},
        }
        provider, _ = make_provider({"/v1/mods/search": payload})
        response = await provider.search_projects(UnifiedSearchParams(page=5, page_size=10))
        assert response.has_more is False
        assert response.page == 5

    @pytest.mark.asyncio
    async def test_unexpected_shape_returns_empty(self, make_provider, caplog):
        provider, _ = make_provider({"/v1/mods/search": {"data": []}})
        response = await provider.search_projects(UnifiedSearchParams())
        assert response.total == 0
        assert response.projects == []
        assert "Unexpected search response format" in caplog.text

    @pytest.mark.asyncio
    async def test_search_discovers_game_when_missing(self, make_provider):
        payload = {"data": [], "pagination": {"index": 0, "pageSize": 50, "resultCount": 0, "totalCount": 0}}
        provider, transport = make_provider(
            {"/v1/games": GAMES, "/v1/categories": CATEGORIES, "/v1/mods/search": payload}, game_id=None
        )
        await provider.search_projects(UnifiedSearchParams())
        assert transport.paths() == ["/v1/games", "/v1/categories", "/v1/mods/search"]
        assert transport.last("/v1/mods/search").url.params["gameId"] == "9001"


class TestTransforms:
    def test_transform_mod(self, make_provider):
        provider, _ = make_provider()
        provider.classification_map = {11: UnifiedClassification.MODPACK}

        project = provider.transform_mod(_mod_payload())

        assert project.id == "1"
        assert project.provider_id == "curseforge"
        assert project.classification == UnifiedClassification.MODPACK
        assert project.author.username == "carol"
        assert project.short_description == "s" * 200
        assert project.icon_url == "https://cf.test/logo.png"
        assert project.banner_url == "https://cf.test/s1.png"
        assert project.gallery_images == ["https://cf.test/s1.png", "https://cf.test/s2.png"]
        assert project.game_versions == ["0.9", "0.8"]
        assert [c.slug for c in project.categories] == ["magic"]
        assert project.rating_count == 12

        version = project.latest_version
        assert version.id == "900"
        assert version.version == "Mod 1.2"
        assert version.file_size == 4096
        assert version.file_hash == "sha1hash"
        assert version.changelog is None

    def test_missing_author_is_unknown(self, make_provider):
        provider, _ = make_provider()
        project = provider.transform_mod(_mod_payload(authors=[]))
        assert project.author.username == "Unknown"


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_project(self, make_provider):
        provider, _ = make_provider({"/v1/mods/1": {"data": _mod_payload(1)}})
        project = await provider.get_project("1")
        assert project.title == "Mod 1"

    @pytest.mark.asyncio
    async def test_get_project_without_data_raises(self, make_provider):
        provider, _ = make_provider({"/v1/mods/1": {}})
        with pytest.raises(UpstreamError):
            await provider.get_project("1")

    @pytest.mark.asyncio
    async def test_categories_are_class_categories(self, make_provider):
        provider, _ = make_provider({"/v1/categories": CATEGORIES})
        categories = await provider.get_categories()
        assert [c.id for c in categories] == ["10", "11", "12", "13"]
        assert all(c.id and c.name and c.slug for c in categories)

    def test_no_optional_capabilities(self):
        provider = CurseForgeProvider(base_url=BASE)
        for capability in ProviderCapability:
            assert not provider.supports(capability)
        assert provider.get_download_url("1", "900") is None


class TestDependencies:
    @pytest.mark.asyncio
    async def test_dependencies_resolve_names_and_types(self, make_provider):
        file = {
            "data": {
                "id": 900,
                "dependencies": [
                    {"modId": 2, "relationType": 3},
                    {"modId": 3, "relationType": 2},
                    {"modId": 4, "relationType": 5},
                    {"modId": 5, "relationType": 6},
                ],
            }
        }
        provider, _ = make_provider(
            {
                "/v1/mods/1/files/900": file,
                "/v1/mods/2": {"data": {"name": "Core"}},
                "/v1/mods/3": {"data": {"name": "Extras"}},
                "/v1/mods/4": {"data": {"name": "Rival"}},
                "/v1/mods/5": {"data": {"name": "Bundled"}},
            }
        )

        deps = await provider.get_version_dependencies("1", "900")

        assert [(d.project_id, d.project_name, d.type) for d in deps] == [
            ("2", "Core", "required"),
            ("3", "Extras", "optional"),
            ("4", "Rival", "incompatible"),
            ("5", "Bundled", "embedded"),
        ]
        assert [d.required for d in deps] == [True, False, False, False]
        assert all(d.resolved for d in deps)

    @pytest.mark.asyncio
    async def test_unresolvable_dependency_is_marked(self, make_provider):
        file = {"data": {"id": 900, "dependencies": [{"modId": 77, "relationType": 3}]}}
        provider, _ = make_provider({"/v1/mods/1/files/900": file})

        deps = await provider.get_version_dependencies("1", "900")

        assert len(deps) == 1
        assert deps[0].project_name == "Mod #77"
        assert deps[0].resolved is False
        assert deps[0].required is True

    @pytest.mark.asyncio
    async def test_file_lookup_failure_returns_empty(self, make_provider, caplog):
        provider, _ = make_provider({"/v1/mods/1/files/900": (500, {})})
        assert await provider.get_version_dependencies("1", "900") == []
        assert "Error getting dependencies" in caplog.text


class TestDownload:
    @pytest.mark.asyncio
    async def test_inline_download_url(self, make_provider):
        provider, transport = make_provider(
            {
                "/v1/mods/1/files/900": {"data": {"id": 900, "downloadUrl": "https://edge.test/files/mod.zip"}},
                "/files/mod.zip": lambda request: httpx.Response(200, content=b"PK"),
            }
        )
        stream = await provider.download_version("1", "900")
        assert await stream.read() == b"PK"
        assert "/v1/mods/1/files/900/download-url" not in transport.paths()

    @pytest.mark.asyncio
    async def test_falls_back_to_download_url_endpoint(self, make_provider):
        provider, transport = make_provider(
            {
                "/v1/mods/1/files/900": {"data": {"id": 900, "downloadUrl": None}},
                "/v1/mods/1/files/900/download-url": {"data": "https://edge.test/files/other.zip"},
                "/files/other.zip": lambda request: httpx.Response(200, content=b"ZIP"),
            }
        )
        stream = await provider.download_version("1", "900")
        assert await stream.read() == b"ZIP"
        assert "/v1/mods/1/files/900/download-url" in transport.paths()

    @pytest.mark.asyncio
    async def test_no_download_url_raises(self, make_provider):
        provider, _ = make_provider(
            {
                "/v1/mods/1/files/900": {"data": {"id": 900}},
                "/v1/mods/1/files/900/download-url": {"data": None},
            }
        )
        with pytest.raises(DownloadUnavailableError):
            await provider.download_version("1", "900")

    @pytest.mark.asyncio
    async def test_transfer_failure_raises(self, make_provider):
        provider, _ = make_provider(
            {
                "/v1/mods/1/files/900": {"data": {"id": 900, "downloadUrl": "https://edge.test/files/mod.zip"}},
                "/files/mod.zip": (403, {}),
            }
        )
        with pytest.raises(UpstreamHTTPError):
            await provider.download_version("1", "900")


@pytest.mark.asyncio
async def test_concurrent_dependency_lookups_share_one_adapter(make_provider):
    file = {"data": {"id": 900, "dependencies": [{"modId": i, "relationType": 3} for i in range(2, 6)]}}
    routes = {"/v1/mods/1/files/900": file}
    routes.update({f"/v1/mods/{i}": {"data": {"name": f"Dep {i}"}} for i in range(2, 6)})
    provider, _ = make_provider(routes)

    first, second = await asyncio.gather(
        provider.get_version_dependencies("1", "900"),
        provider.get_version_dependencies("1", "900"),
    )
    assert [d.project_name for d in first] == [d.project_name for d in second]
