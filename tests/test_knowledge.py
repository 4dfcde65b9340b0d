from banking_gateway.services.knowledge import InMemoryKnowledgeBase, extract_snippet


def test_load_defaults(knowledge_base):
    assert len(knowledge_base) == 10
    assert knowledge_base.get("kb-aml-regulations").metadata == {"category": "compliance", "type": "AML"}


def test_search_ranks_by_term_overlap(knowledge_base):
    hits = knowledge_base.search("AML suspicious activity reports", top_k=3)

    assert hits[0].document.document_id == "kb-aml-regulations"
    assert hits[0].score == 1.0
    assert len(hits) <= 3
    assert [hit.score for hit in hits] == sorted((hit.score for hit in hits), reverse=True)


def test_search_threshold_and_type_filter(knowledge_base):
    hits = knowledge_base.search("customer risk", top_k=10, document_type="kyc")
    assert [hit.document.document_id for hit in hits] == ["kb-kyc-requirements"]

    assert knowledge_base.search("customer zebra", top_k=10, threshold=0.9) == []


def test_search_with_only_stopwords():
    kb = InMemoryKnowledgeBase()
    kb.add("doc-1", "The bank is open")
    assert kb.search("the and of") == []


def test_add_replaces_and_delete():
    kb = InMemoryKnowledgeBase()
    kb.add("doc-1", "wire transfer limits")
    kb.add("doc-1", "overdraft protection")

    assert len(kb) == 1
    assert kb.search("wire transfer") == []
    assert kb.search("overdraft")[0].document.document_id == "doc-1"

    assert kb.delete("doc-1") is True
    assert kb.delete("doc-1") is False
    assert len(kb) == 0


def test_context_for(knowledge_base):
    context = knowledge_base.context_for("fraud detection unusual transaction patterns", top_k=2)
    assert context.startswith("Relevant Banking Knowledge:")
    assert "Fraud Detection Best Practices" in context

    assert InMemoryKnowledgeBase().context_for("anything") == "No relevant banking knowledge found."


def test_extract_snippet():
    content = "x" * 300 + "wire transfer" + "y" * 300
    snippet = extract_snippet(content, "WIRE TRANSFER")

    assert snippet.startswith("...")
    assert snippet.endswith("...")
    assert "wire transfer" in snippet
    assert len(snippet) == 100 + len("wire transfer") + 100 + 6

    assert extract_snippet("short text", "missing") == "short text"
    assert extract_snippet("a" * 250, "missing") == "a" * 200 + "..."
    assert extract_snippet("", "query") == ""
