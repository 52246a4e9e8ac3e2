"""Graph execution runtime: nodes, conditional edges and a shared store.

A ``Flow`` runs its start node; every node runs its action and then follows
each outgoing edge whose condition accepts the action's output. The engine
does no error handling of its own: an exception raised by an action
propagates out of ``Flow.run``.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

Action = Callable[["SharedStore", Any], Awaitable[Any]]
Condition = Callable[[Any, "SharedStore"], bool]

_MISSING = object()


def always(_output: Any, _store: "SharedStore") -> bool:
    """Edge condition that always fires."""
    return True


class SharedStore:
    """Mutable key/value state threaded through a flow run."""

    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}

    def set(self, key: str, value: Any) -> "SharedStore":
        self.data[key] = value
        return self

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.data

    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it was present."""
        return self.data.pop(key, _MISSING) is not _MISSING

    def clear(self) -> "SharedStore":
        self.data.clear()
        return self

    def get_all(self) -> Dict[str, Any]:
        """Shallow copy of every key."""
        return dict(self.data)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return len(self.data)


@dataclass
class Edge:
    """Outgoing connection to another node."""
    target: "Node"
    condition: Condition = always


class Node:
    """A single asynchronous step plus its outgoing conditional edges."""

    def __init__(self, node_id: str, action: Action):
        self.id = node_id
        self.action = action
        self.edges: List[Edge] = []

    def connect(self, node: "Node", condition: Optional[Condition] = None) -> "Node":
        """Add an edge to ``node``; returns self so edges can be chained."""
        self.edges.append(Edge(target=node, condition=condition or always))
        return self

    async def execute(self, store: SharedStore, data: Any = None) -> Any:
        """Run the action, then every edge whose condition accepts its output.

        Edges are evaluated in declaration order against the action's own
        output. When several edges fire, the last downstream result that is
        not None becomes this node's result (later edges overwrite earlier
        ones). With no edge firing, the action's output is returned.
        """
        output = await self.action(store, data)
        result = output

        for edge in self.edges:
            if edge.condition(output, store):
                logger.debug(f"Node {self.id} -> {edge.target.id}")
                downstream = await edge.target.execute(store, output)
                if downstream is not None:
                    result = downstream

        return result

    def __repr__(self) -> str:
        return f"Node({self.id!r}, edges={[e.target.id for e in self.edges]})"


class Flow:
    """A runnable graph of nodes sharing one store.

    A flow can be run any number of times against the same store.
    """

    def __init__(self, start_node: Node, store: Optional[SharedStore] = None):
        self.start_node = start_node
        self.store = store if store is not None else SharedStore()

    async def run(self, initial_data: Any = None) -> Any:
        """Execute the graph from the start node."""
        if initial_data is None:
            initial_data = {}
        return await self.start_node.execute(self.store, initial_data)

    def get_store(self) -> SharedStore:
        return self.store
