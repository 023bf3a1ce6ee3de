"""Tests for knowledge base document queries against the fake store."""

import pytest

from context_engine.core.errors import StoreFailure
from context_engine.db import documents as documents_db
from tests.fakes.fake_supabase import FakeSupabase
from tests.fakes.knowledge_base import ORG_ID


def _ids(rows) -> set[str]:
    return {row["id"] for row in rows}


class TestScope:
    def test_global_request_sees_only_global_published(self, store):
        rows = documents_db.list_published_documents(None, 50, store)
        assert _ids(rows) == {"doc-refund", "doc-invoices"}

    def test_tenant_request_adds_own_documents(self, store):
        rows = documents_db.list_published_documents(ORG_ID, 50, store)
        assert _ids(rows) == {"doc-refund", "doc-invoices", "doc-sso"}

    def test_tag_filter(self, store):
        rows = documents_db.list_published_documents(ORG_ID, 50, store, tags=["billing"])
        assert _ids(rows) == {"doc-refund", "doc-invoices"}

    def test_vector_candidates_require_a_vector(self, store):
        store.tables["knowledge_base_articles"][1]["vector"] = None
        rows = documents_db.list_vector_candidates(None, 50, store)
        assert _ids(rows) == {"doc-refund"}

    def test_full_text_is_scoped(self, store):
        rows = documents_db.search_full_text("refund", ORG_ID, 50, store)
        assert _ids(rows) == {"doc-refund", "doc-invoices"}


class TestSingleDocument:
    def test_get_document(self, store):
        assert documents_db.get_document("doc-sso", store)["title"] == "Single Sign-On Setup"

    def test_missing_document_is_none(self, store):
        assert documents_db.get_document("doc-missing", store) is None

    def test_linkable_documents_exclude_source(self, store):
        rows = documents_db.list_linkable_documents("doc-refund", None, 50, store)
        assert "doc-refund" not in _ids(rows)
        assert "doc-draft" not in _ids(rows)

    def test_linkable_documents_follow_source_scope(self, store):
        assert _ids(documents_db.list_linkable_documents("doc-refund", None, 50, store)) == {
            "doc-invoices"
        }
        assert _ids(documents_db.list_linkable_documents("doc-sso", ORG_ID, 50, store)) == {
            "doc-refund",
            "doc-invoices",
        }


class TestWrites:
    def test_store_vector(self, store):
        documents_db.store_document_vector("doc-sso", "[0.0,1.0,0.0]", store)

        assert store.updates == [("knowledge_base_articles", {"vector": "[0.0,1.0,0.0]"})]
        assert documents_db.get_document("doc-sso", store)["vector"] == "[0.0,1.0,0.0]"

    def test_update_metadata(self, store):
        documents_db.update_document_metadata("doc-sso", {"related_articles": ["a"]}, store)
        assert documents_db.get_document("doc-sso", store)["metadata"] == {
            "related_articles": ["a"]
        }


class TestFailures:
    @pytest.mark.parametrize(
        "call",
        [
            lambda c: documents_db.list_vector_candidates(None, 10, c),
            lambda c: documents_db.search_full_text("refund", None, 10, c),
            lambda c: documents_db.list_published_documents(None, 10, c),
            lambda c: documents_db.get_document("doc-refund", c),
            lambda c: documents_db.list_linkable_documents("doc-refund", None, 10, c),
            lambda c: documents_db.store_document_vector("doc-refund", "[1.0]", c),
            lambda c: documents_db.update_document_metadata("doc-refund", {}, c),
        ],
    )
    def test_store_errors_wrapped(self, call):
        broken = FakeSupabase(failing_tables={"knowledge_base_articles"})
        with pytest.raises(StoreFailure):
            call(broken)

    def test_missing_full_text_operator_wrapped(self, corpus):
        store = FakeSupabase({"knowledge_base_articles": corpus}, full_text_supported=False)
        with pytest.raises(StoreFailure):
            documents_db.search_full_text("refund", None, 10, store)

    def test_missing_embed_rpc_wrapped(self):
        with pytest.raises(StoreFailure):
            documents_db.call_embed_rpc("hello", FakeSupabase())

    def test_embed_rpc_passes_text(self):
        store = FakeSupabase(rpc_handlers={"embed": lambda text: [float(len(text))]})
        assert documents_db.call_embed_rpc("hello", store) == [5.0]
