"""
Tests for CatalogService: import, search caching, reads and authorization.

Run with: pytest tests/test_catalog_service.py -v
"""

import pytest

from catalog_service import (
    INSERTED_PREVIEW_LIMIT,
    PREVIEW_LIMIT,
    AuthenticatedCaller,
    CatalogService,
)
from conftest import ADMIN_PASSWORD, ADMIN_USER, make_record
from errors import IngestionFailed, InvalidInput, NotFound, Unauthorized

VIP_SENTENCE = "Este Modelo já está disponível na tabela VIP"

BASIC_CSV = (
    "iPhone 11,iPhone 11 / iPhone XR\n"
    "Galaxy S23 Ultra," + VIP_SENTENCE + "\n"
    "Moto G8,Moto G8 Power/Moto G8 Play\n"
)


class TestAuthentication:

    def test_valid_credentials(self, service):
        caller = service.authenticate(ADMIN_USER, ADMIN_PASSWORD)
        assert isinstance(caller, AuthenticatedCaller)
        assert caller.username == ADMIN_USER

    @pytest.mark.parametrize("username,password", [
        (ADMIN_USER, "wrong"),
        ("root", ADMIN_PASSWORD),
        ("", ADMIN_PASSWORD),
        (ADMIN_USER, ""),
    ])
    def test_bad_credentials(self, service, username, password):
        with pytest.raises(Unauthorized):
            service.authenticate(username, password)

    def test_login_disabled_without_password(self, store):
        service = CatalogService(store, admin_password=None)
        with pytest.raises(Unauthorized):
            service.authenticate("admin", "anything")

    def test_caller_cannot_be_forged(self):
        with pytest.raises(Unauthorized):
            AuthenticatedCaller("admin")


class TestImport:

    def test_preview_does_not_store(self, service, write_csv):
        preview = service.preview_import(write_csv(BASIC_CSV))
        assert preview.total_count == 3
        assert [r.model_name for r in preview.records] == ["iPhone 11", "Galaxy S23 Ultra", "Moto G8"]
        assert service.stats()['total_models'] == 0

    def test_preview_is_capped(self, service, write_csv):
        text = "".join(f"Model {i},Sibling {i}\n" for i in range(30))
        preview = service.preview_import(write_csv(text))
        assert len(preview.records) == PREVIEW_LIMIT
        assert preview.total_count == 30
        assert preview.to_dict()['total'] == 30

    def test_commit_requires_caller(self, service, write_csv):
        with pytest.raises(Unauthorized):
            service.commit_import(write_csv(BASIC_CSV), None)
        assert service.stats()['total_models'] == 0

    def test_commit_replaces_catalog(self, service, caller, write_csv):
        service.commit_import(write_csv("Pixel 7,Pixel 7a\n", "old.csv"), caller)
        summary = service.commit_import(write_csv(BASIC_CSV), caller)
        assert summary.total_processed == 3
        assert summary.total_inserted == 3
        assert summary.duplicates_skipped == 0
        assert service.stats() == {'total_models': 3, 'vip_models': 1}
        assert service.search("pixel") == []

    def test_commit_skips_duplicates(self, service, caller, write_csv):
        text = (
            "iPhone 11,iPhone XR\n"
            "iPhone 11,iPhone 11 Pro\n"
            "Moto G8,Moto G8 Power\n"
        )
        summary = service.commit_import(write_csv(text), caller)
        assert summary.total_processed == 3
        assert summary.total_inserted == 2
        assert summary.duplicates_skipped == 1

        iphone = service.search("iphone 11", limit=1)[0]
        assert iphone.compatible_models == ["iPhone XR"]

    def test_inserted_preview_is_capped(self, service, caller, write_csv):
        text = "".join(f"Model {i},Sibling {i}\n" for i in range(25))
        summary = service.commit_import(write_csv(text), caller)
        assert summary.total_inserted == 25
        assert len(summary.inserted_preview) == INSERTED_PREVIEW_LIMIT
        assert summary.to_dict()['data']['total_inserted'] == 25

    def test_no_valid_rows_keeps_catalog(self, service, caller, write_csv):
        service.commit_import(write_csv(BASIC_CSV), caller)
        with pytest.raises(IngestionFailed) as exc:
            service.commit_import(write_csv("Only model\n,orphan\n", "bad.csv"), caller)
        assert exc.value.detail['rejected'] == 2
        assert service.stats()['total_models'] == 3

    def test_unreadable_file(self, service, caller, tmp_path):
        with pytest.raises(IngestionFailed):
            service.commit_import(str(tmp_path / "missing.csv"), caller)

    def test_error_renders_to_dict(self, service, caller, write_csv):
        with pytest.raises(IngestionFailed) as exc:
            service.commit_import(write_csv(""), caller)
        payload = exc.value.to_dict()
        assert payload['success'] is False
        assert payload['error'] == "IngestionFailed"


class TestSearch:

    @pytest.fixture
    def loaded(self, service, caller, write_csv):
        service.commit_import(write_csv(BASIC_CSV), caller)
        return service

    def test_search_ranks(self, loaded):
        assert [r.model_name for r in loaded.search("iph")] == ["iPhone 11"]

    def test_empty_query_lists_catalog(self, loaded):
        assert [r.model_name for r in loaded.search("", limit=2)] == ["iPhone 11", "Galaxy S23 Ultra"]

    def test_limit_coerced(self, loaded):
        assert len(loaded.search("", limit="2")) == 2
        assert len(loaded.search("", limit="many")) == 3

    def test_vip_filter(self, loaded):
        assert [r.model_name for r in loaded.search("", vip_only=True)] == ["Galaxy S23 Ultra"]

    def test_free_filter(self, loaded):
        assert [r.model_name for r in loaded.search("", free_only=True)] == ["iPhone 11", "Moto G8"]

    def test_vip_filter_wins(self, loaded):
        results = loaded.search("", vip_only=True, free_only=True)
        assert [r.model_name for r in results] == ["Galaxy S23 Ultra"]

    def test_index_reused_within_ttl(self, loaded):
        loaded.search("moto")
        # write behind the service's back: the cached snapshot is still served
        loaded.store.replace_all([make_record("Pixel 7", ["Pixel 7a"])])
        assert [r.model_name for r in loaded.search("moto")] == ["Moto G8"]
        assert loaded.search("pixel") == []

    def test_expired_index_rebuilt(self, loaded):
        loaded.search("moto")
        loaded.store.replace_all([make_record("Pixel 7", ["Pixel 7a"])])
        loaded.index_ttl_seconds = 0
        loaded._index.built_at -= 1
        assert [r.model_name for r in loaded.search("pixel")] == ["Pixel 7"]

    def test_commit_during_rebuild_is_not_masked(self, loaded, caller, write_csv, monkeypatch):
        store = loaded.store
        real_find_all = store.find_all
        calls = []

        def find_all_then_commit(*args, **kwargs):
            snapshot = real_find_all(*args, **kwargs)
            if not calls:
                calls.append(1)
                loaded.commit_import(write_csv("Pixel 7,Pixel 7a\n", "new.csv"), caller)
            return snapshot

        monkeypatch.setattr(store, "find_all", find_all_then_commit)
        loaded.search("moto")
        assert [r.model_name for r in loaded.search("pixel")] == ["Pixel 7"]

    def test_refresh_is_explicit(self, loaded):
        loaded.search("moto")
        loaded.store.replace_all([make_record("Pixel 7", ["Pixel 7a"])])
        loaded.refresh_search_index()
        assert [r.model_name for r in loaded.search("pixel")] == ["Pixel 7"]


class TestReads:

    @pytest.fixture
    def loaded(self, service, caller, write_csv):
        service.commit_import(write_csv(BASIC_CSV), caller)
        return service

    def test_get_record(self, loaded):
        first = loaded.list_by_tier(False)[0]
        assert loaded.get_record(first.id).model_name == "iPhone 11"

    def test_get_record_missing(self, loaded):
        with pytest.raises(NotFound) as exc:
            loaded.get_record(9999)
        assert exc.value.detail == {'id': 9999}

    def test_list_by_tier(self, loaded):
        assert [r.model_name for r in loaded.list_by_tier(True)] == ["Galaxy S23 Ultra"]
        assert [r.model_name for r in loaded.list_by_tier(False)] == ["iPhone 11", "Moto G8"]

    def test_sample(self, loaded):
        result = loaded.sample(2)
        assert len(result.records) == 2
        assert result.total == 3

    def test_sample_defaults(self, loaded):
        result = loaded.sample("lots")
        assert len(result.records) == 3
        assert result.total == 3


class TestPresentationContent:

    @pytest.fixture
    def record_id(self, service, caller, write_csv):
        service.commit_import(write_csv(BASIC_CSV), caller)
        return service.list_by_tier(False)[0].id

    def test_update(self, service, caller, record_id):
        updated = service.update_presentation_content(record_id, "<p>Película 3D</p>", caller)
        assert updated.presentation_content == "<p>Película 3D</p>"
        assert service.get_record(record_id).presentation_content == "<p>Película 3D</p>"

    def test_requires_caller(self, service, record_id):
        with pytest.raises(Unauthorized):
            service.update_presentation_content(record_id, "<p>x</p>", None)

    @pytest.mark.parametrize("content", [None, "", "   "])
    def test_empty_content_rejected(self, service, caller, record_id, content):
        with pytest.raises(InvalidInput):
            service.update_presentation_content(record_id, content, caller)

    def test_empty_content_checked_before_missing_id(self, service, caller):
        with pytest.raises(InvalidInput):
            service.update_presentation_content(9999, "", caller)

    def test_unknown_id_changes_nothing(self, service, caller, record_id):
        before = [r.to_dict() for r in service.store.find_all()]
        with pytest.raises(NotFound):
            service.update_presentation_content(9999, "<p>x</p>", caller)
        assert [r.to_dict() for r in service.store.find_all()] == before
