"""Database operations for knowledge base documents.

Scope rule: a tenant request (organization_id set) sees its own documents
plus global ones (organization_id null); a global request (organization_id
None) sees only global documents.
"""

from typing import Any

from supabase import Client

from context_engine.core.errors import StoreFailure
from context_engine.core.logging import get_logger
from context_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)

DOCUMENTS_TABLE = "knowledge_base_articles"
DOCUMENT_COLUMNS = "*, category:knowledge_base_categories(*)"
LINKABLE_COLUMNS = "id, title, slug, organization_id, vector"


def _apply_scope(query: Any, organization_id: str | None) -> Any:
    if organization_id is not None:
        return query.or_(f"organization_id.eq.{organization_id},organization_id.is.null")
    return query.is_("organization_id", "null")


def _published_in_scope(client: Client, organization_id: str | None, columns: str) -> Any:
    query = client.table(DOCUMENTS_TABLE).select(columns).eq("published", True)
    return _apply_scope(query, organization_id)


def list_vector_candidates(
    organization_id: str | None,
    limit: int,
    client: Client | None = None,
) -> list[dict[str, Any]]:
    """
    List published, in-scope documents that carry a stored vector.

    Args:
        organization_id: Tenant id, or None for global-only
        limit: Maximum rows to fetch
        client: Supabase client (defaults to the shared one)

    Returns:
        Document rows including the raw ``vector`` column

    Raises:
        StoreFailure: If the query fails
    """
    client = client or get_supabase()
    try:
        response = (
            _published_in_scope(client, organization_id, DOCUMENT_COLUMNS)
            .not_.is_("vector", "null")
            .limit(limit)
            .execute()
        )
        return response.data or []
    except Exception as e:
        raise StoreFailure(f"Vector candidate query failed: {e}") from e


def search_full_text(
    terms: str,
    organization_id: str | None,
    limit: int,
    client: Client | None = None,
    tags: list[str] | None = None,
) -> list[dict[str, Any]]:
    """
    Run the store's native full-text operator over ``search_vector``.

    Args:
        terms: AND-joined search terms (``"refund & policy"``)
        organization_id: Tenant id, or None for global-only
        limit: Maximum rows to return
        client: Supabase client
        tags: Optional tag filter (document must carry all of them)

    Raises:
        StoreFailure: If the operator is unsupported or the query errors
    """
    client = client or get_supabase()
    try:
        query = _published_in_scope(client, organization_id, DOCUMENT_COLUMNS)
        if tags:
            query = query.contains("tags", tags)
        response = (
            query.text_search(
                "search_vector",
                terms,
                options={"type": "websearch", "config": "english"},
            )
            .limit(limit)
            .execute()
        )
        return response.data or []
    except Exception as e:
        raise StoreFailure(f"Full-text search failed: {e}") from e


def list_published_documents(
    organization_id: str | None,
    limit: int,
    client: Client | None = None,
    tags: list[str] | None = None,
) -> list[dict[str, Any]]:
    """
    List published, in-scope documents without any text filter.

    Raises:
        StoreFailure: If the query fails
    """
    client = client or get_supabase()
    try:
        query = _published_in_scope(client, organization_id, DOCUMENT_COLUMNS)
        if tags:
            query = query.contains("tags", tags)
        response = query.limit(limit).execute()
        return response.data or []
    except Exception as e:
        raise StoreFailure(f"Document listing failed: {e}") from e


def get_document(document_id: str, client: Client | None = None) -> dict[str, Any] | None:
    """
    Get a single document by ID.

    Returns:
        Document row or None if not found

    Raises:
        StoreFailure: If the query fails
    """
    client = client or get_supabase()
    try:
        response = (
            client.table(DOCUMENTS_TABLE)
            .select("*")
            .eq("id", document_id)
            .maybe_single()
            .execute()
        )
    except Exception as e:
        raise StoreFailure(f"Failed to load document {document_id}: {e}") from e

    # maybe_single() may hand back None instead of an empty response
    return response.data if response else None


def list_linkable_documents(
    exclude_id: str,
    organization_id: str | None,
    limit: int,
    client: Client | None = None,
) -> list[dict[str, Any]]:
    """
    List other published documents with stored vectors, for relation discovery.

    Only documents visible from the source document's scope are returned, so
    other tenants never crowd the limit.

    Raises:
        StoreFailure: If the query fails
    """
    client = client or get_supabase()
    try:
        response = (
            _published_in_scope(client, organization_id, LINKABLE_COLUMNS)
            .neq("id", exclude_id)
            .not_.is_("vector", "null")
            .limit(limit)
            .execute()
        )
        return response.data or []
    except Exception as e:
        raise StoreFailure(f"Linkable document query failed: {e}") from e


def store_document_vector(
    document_id: str,
    vector_string: str,
    client: Client | None = None,
) -> None:
    """
    Persist a document embedding in bracketed string form.

    Raises:
        StoreFailure: If the update fails
    """
    client = client or get_supabase()
    try:
        client.table(DOCUMENTS_TABLE).update({"vector": vector_string}).eq(
            "id", document_id
        ).execute()
    except Exception as e:
        raise StoreFailure(f"Failed to store vector for {document_id}: {e}") from e

    logger.info(f"Stored embedding for document {document_id}", extra={"document_id": document_id})


def update_document_metadata(
    document_id: str,
    metadata: dict[str, Any],
    client: Client | None = None,
) -> None:
    """
    Replace a document's metadata JSON.

    Raises:
        StoreFailure: If the update fails
    """
    client = client or get_supabase()
    try:
        client.table(DOCUMENTS_TABLE).update({"metadata": metadata}).eq(
            "id", document_id
        ).execute()
    except Exception as e:
        raise StoreFailure(f"Failed to update metadata for {document_id}: {e}") from e


def call_embed_rpc(text: str, client: Client | None = None) -> Any:
    """
    Call the store-side ``embed`` function.

    Returns:
        Whatever the RPC returned (validated by the caller)

    Raises:
        StoreFailure: If the RPC is missing or errors
    """
    client = client or get_supabase()
    try:
        response = client.rpc("embed", {"text": text}).execute()
        return response.data
    except Exception as e:
        raise StoreFailure(f"embed RPC failed: {e}") from e
