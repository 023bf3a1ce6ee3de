"""Shared knowledge base rows and ids for tests."""

ORG_ID = "org-acme"
OTHER_ORG_ID = "org-globex"

# Three-dimensional vectors keep the corpus readable
BILLING_VECTOR = [1.0, 0.0, 0.0]
SECURITY_VECTOR = [0.0, 1.0, 0.0]


def make_document(doc_id: str, title: str, **fields) -> dict:
    document = {
        "id": doc_id,
        "title": title,
        "slug": title.lower().replace(" ", "-"),
        "summary": None,
        "body": "",
        "published": True,
        "organization_id": None,
        "vector": None,
        "tags": [],
        "metadata": {},
    }
    document.update(fields)
    return document


def sample_corpus() -> list[dict]:
    """Knowledge base rows across global and two tenants."""
    return [
        make_document(
            "doc-refund",
            "Refund Policy",
            summary="How customers get their money back",
            body="Refunds are issued within 14 days of a cancelled order.",
            vector=BILLING_VECTOR,
            tags=["billing"],
        ),
        make_document(
            "doc-invoices",
            "Invoice Schedule",
            summary="When invoices go out",
            body="Invoices are sent monthly. See the refund policy for disputes.",
            vector="[0.9,0.1,0.0]",
            tags=["billing"],
        ),
        make_document(
            "doc-sso",
            "Single Sign-On Setup",
            summary="Configure SAML for your workspace",
            body="Security teams can enforce SSO for every member.",
            vector=SECURITY_VECTOR,
            organization_id=ORG_ID,
        ),
        make_document(
            "doc-globex",
            "Globex Refund Exceptions",
            summary="Tenant-specific refund terms",
            body="Globex customers follow a 30 day refund policy.",
            vector=BILLING_VECTOR,
            organization_id=OTHER_ORG_ID,
        ),
        make_document(
            "doc-draft",
            "Draft Refund Changes",
            body="Unpublished refund policy draft.",
            published=False,
            vector=BILLING_VECTOR,
        ),
    ]
