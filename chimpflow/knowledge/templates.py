"""Code templates handed to the bot owner on code requests."""

BASIC_FLOW = '''# Basic knowledge flow
import asyncio
import time

from chimpflow.graph import Flow, Node, SharedStore


async def process_knowledge(store, data):
    query = data["query"]

    knowledge = store.get("knowledgeCache") or {}
    knowledge[query] = {"processed": True, "timestamp": time.time()}
    store.set("knowledgeCache", knowledge)

    return {"success": True, "response": f"Knowledge processed: {query}", "confidence": 85}


knowledge_node = Node("knowledge_processor", process_knowledge)
flow = Flow(knowledge_node, SharedStore())
result = asyncio.run(flow.run({"query": "your query here"}))'''

SEARCH_FLOW = '''# Search flow
from chimpflow.graph import Flow, Node, SharedStore


def build_search_flow(search):
    async def search_step(store, data):
        query = data["query"]
        try:
            result = await search(query, max_results=5)
        except Exception as e:
            return {"success": False, "error": str(e), "response": "Search failed"}

        results = store.get("searchResults") or {}
        results[query] = result
        store.set("searchResults", results)

        fact_check = result.get("factCheck", {})
        return {
            "success": True,
            "response": fact_check.get("verification", ""),
            "confidence": fact_check.get("confidenceScore", 0),
        }

    return Flow(Node("search_processor", search_step), SharedStore())'''

VALIDATION_FLOW = '''# Validation flow
from chimpflow.graph import Flow, Node, SharedStore


async def validate(store, data):
    statement = data["statement"]
    reliable = [s for s in data["sources"] if s.get("reliable")]

    confidence = min(sum(s.get("confidence", 20) for s in reliable), 100)

    results = store.get("validationResults") or {}
    results[statement] = {
        "confidence": confidence,
        "sources": len(reliable),
        "verified": confidence >= 60,
    }
    store.set("validationResults", results)

    return {"success": True, "verified": confidence >= 60, "confidence": confidence}


flow = Flow(Node("validator", validate), SharedStore())'''

CODE_TEMPLATES = {
    "basic_flow": BASIC_FLOW,
    "search_flow": SEARCH_FLOW,
    "validation_flow": VALIDATION_FLOW,
}


def select_template(query: str) -> str:
    """Pick the template that best matches the request."""
    q = query.lower()
    if "search" in q or "fetch" in q:
        return SEARCH_FLOW
    if "validation" in q or "confirm" in q:
        return VALIDATION_FLOW
    return BASIC_FLOW
