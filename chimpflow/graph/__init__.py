"""Graph execution runtime and stores."""

from chimpflow.graph.engine import Edge, Flow, Node, SharedStore, always
from chimpflow.graph.persistent_store import KnowledgeEntry, PersistentSharedStore

__all__ = [
    "Edge",
    "Flow",
    "Node",
    "SharedStore",
    "always",
    "KnowledgeEntry",
    "PersistentSharedStore",
]
