from __future__ import annotations

import copy
import math
from collections.abc import Hashable, Iterator
from typing import NamedTuple

import polars as pl


def actor_series(name: str, actors: list) -> pl.Series:
    """Polars column of actor ids.

    Actor ids may be any hashable, but a polars column holds one dtype: when
    the ids mix types they are rendered with ``str``.
    """
    if len({type(a) for a in actors}) > 1:
        return pl.Series(name, [str(a) for a in actors], dtype=pl.Utf8)
    return pl.Series(name, actors)


class Node(NamedTuple):
    """An actor's presence in one layer."""

    actor: Hashable
    layer: str


class Edge(NamedTuple):
    """Undirected, weighted intra-layer edge between two nodes of ``layer``."""

    u: Node
    v: Node
    layer: str
    weight: float


class MultilayerNetwork:
    """Undirected, weighted multilayer network (single aspect).

    Actors are identities shared across layers. A node is the presence of an
    actor in one layer, and edges only connect nodes of the same layer;
    inter-layer coupling is not stored here, community detection synthesizes
    it from the presence sets.

    Parameters
    ----------
    name : str, optional
        Free-form label, only used by ``repr``.

    Notes
    -----
    - Actors, layers and presences keep insertion order. The node index used
      for supra matrices is layer-major: all nodes of the first layer (in actor
      insertion order), then the second layer, and so on.
    - Parallel edges are allowed; their weights add up in adjacency queries.
    - Self-loops are allowed and contribute twice their weight to the degree.

    """

    def __init__(self, name: str | None = None):
        self.name = name

        # Entities
        self._actors: dict[Hashable, None] = {}  # ordered set of actor ids
        self._layers: dict[str, None] = {}  # ordered set of layer ids
        self._actor_attrs: dict[Hashable, dict] = {}
        self._layer_attrs: dict[str, dict] = {}

        # Presence (V_M): layer -> ordered actors, actor -> ordered layers
        self._layer_actors: dict[str, dict[Hashable, None]] = {}
        self._actor_layers: dict[Hashable, dict[str, None]] = {}

        # Edges
        self.edge_definitions: dict[str, tuple[Hashable, Hashable, str]] = {}
        self.edge_weights: dict[str, float] = {}
        self._adj: dict[Node, dict[Node, dict[str, None]]] = {}  # node -> nbr -> edge ids
        self._next_edge_id = 0

        # Supra row index (built lazily)
        self._row_to_node: list[Node] | None = None
        self._node_to_row: dict[Node, int] | None = None

    # Actors

    def add_actor(self, actor: Hashable, **attrs):
        """Add an actor (no-op if present) and upsert its attributes."""
        if actor not in self._actors:
            self._actors[actor] = None
            self._actor_layers[actor] = {}
        if attrs:
            self._actor_attrs.setdefault(actor, {}).update(attrs)
        return actor

    def has_actor(self, actor: Hashable) -> bool:
        return actor in self._actors

    def actors(self) -> list:
        return list(self._actors)

    def num_actors(self) -> int:
        return len(self._actors)

    def get_actor_attrs(self, actor: Hashable) -> dict:
        self._assert_actor(actor)
        return dict(self._actor_attrs.get(actor, {}))

    @property
    def actor_attributes(self) -> pl.DataFrame:
        """Actor attribute table keyed by ``actor_id`` (one row per actor)."""
        if not self._actors:
            return pl.DataFrame({"actor_id": []})
        ids = actor_series("actor_id", list(self._actors))
        rows = [self._actor_attrs.get(a, {}) for a in self._actors]
        if not any(rows):
            return ids.to_frame()
        attrs = pl.DataFrame(rows, infer_schema_length=None, strict=False)
        return attrs.insert_column(0, ids)

    # Layers

    def add_layer(self, layer: str, **attrs):
        """Add a layer (no-op if present) and upsert its attributes."""
        if not isinstance(layer, str):
            raise ValueError(f"layer id must be a string, got {type(layer).__name__}")
        if layer not in self._layers:
            self._layers[layer] = None
            self._layer_actors[layer] = {}
            self._invalidate_index()
        if attrs:
            self._layer_attrs.setdefault(layer, {}).update(attrs)
        return layer

    def has_layer(self, layer: str) -> bool:
        return layer in self._layers

    def layers(self) -> list[str]:
        return list(self._layers)

    def num_layers(self) -> int:
        return len(self._layers)

    def get_layer_attrs(self, layer: str) -> dict:
        self._assert_layer(layer)
        return dict(self._layer_attrs.get(layer, {}))

    # Nodes (presence)

    def add_node(self, actor: Hashable, layer: str) -> Node:
        """Declare that ``actor`` is present in ``layer`` (creating both if missing)."""
        self.add_actor(actor)
        self.add_layer(layer)
        if actor not in self._layer_actors[layer]:
            self._layer_actors[layer][actor] = None
            self._actor_layers[actor][layer] = None
            self._adj[Node(actor, layer)] = {}
            self._invalidate_index()
        return Node(actor, layer)

    def has_node(self, actor: Hashable, layer: str) -> bool:
        return layer in self._layer_actors and actor in self._layer_actors[layer]

    def nodes(self, layer: str | None = None) -> list[Node]:
        """Nodes of one layer, or all nodes in layer-major order."""
        if layer is not None:
            self._assert_layer(layer)
            return [Node(a, layer) for a in self._layer_actors[layer]]
        return [Node(a, L) for L in self._layers for a in self._layer_actors[L]]

    def num_nodes(self, layer: str | None = None) -> int:
        if layer is not None:
            self._assert_layer(layer)
            return len(self._layer_actors[layer])
        return sum(len(v) for v in self._layer_actors.values())

    def presences(self, actor: Hashable) -> list[Node]:
        """All nodes of ``actor`` across layers."""
        self._assert_actor(actor)
        return [Node(actor, L) for L in self._actor_layers[actor]]

    def actor_of(self, node: Node) -> Hashable:
        node = Node(*node)
        if not self.has_node(node.actor, node.layer):
            raise KeyError(f"node {tuple(node)!r} not in network")
        return node.actor

    # Edges

    def add_edge(
        self,
        actor1: Hashable,
        actor2: Hashable,
        layer: str,
        *,
        weight: float = 1.0,
        edge_id: str | None = None,
    ) -> str:
        """Add an undirected edge inside ``layer``; missing presences are created.

        Returns
        -------
        str
            The edge id (generated as ``e<k>`` when not given).

        """
        weight = float(weight)
        if not math.isfinite(weight) or weight < 0:
            raise ValueError(f"edge weight must be finite and non-negative, got {weight!r}")
        if edge_id is None:
            while f"e{self._next_edge_id}" in self.edge_definitions:
                self._next_edge_id += 1
            edge_id = f"e{self._next_edge_id}"
            self._next_edge_id += 1
        elif edge_id in self.edge_definitions:
            raise ValueError(f"edge id {edge_id!r} already exists")

        u = self.add_node(actor1, layer)
        v = self.add_node(actor2, layer)
        self.edge_definitions[edge_id] = (actor1, actor2, layer)
        self.edge_weights[edge_id] = weight
        self._adj[u].setdefault(v, {})[edge_id] = None
        self._adj[v].setdefault(u, {})[edge_id] = None
        return edge_id

    def remove_edge(self, edge_id: str):
        if edge_id not in self.edge_definitions:
            raise KeyError(f"edge {edge_id!r} not in network")
        a1, a2, layer = self.edge_definitions.pop(edge_id)
        self.edge_weights.pop(edge_id)
        u, v = Node(a1, layer), Node(a2, layer)
        for x, y in ((u, v), (v, u)):
            ids = self._adj[x].get(y)
            if ids is not None:
                ids.pop(edge_id, None)
                if not ids:
                    del self._adj[x][y]

    def has_edge(self, actor1: Hashable, actor2: Hashable, layer: str) -> bool:
        u = Node(actor1, layer)
        return bool(self._adj.get(u, {}).get(Node(actor2, layer)))

    def edges(self, layer: str | None = None) -> Iterator[Edge]:
        """Iterate edges, optionally restricted to one layer."""
        if layer is not None:
            self._assert_layer(layer)
        for eid, (a1, a2, L) in self.edge_definitions.items():
            if layer is not None and L != layer:
                continue
            yield Edge(Node(a1, L), Node(a2, L), L, self.edge_weights[eid])

    def num_edges(self, layer: str | None = None) -> int:
        if layer is None:
            return len(self.edge_definitions)
        self._assert_layer(layer)
        return sum(1 for _, _, L in self.edge_definitions.values() if L == layer)

    def neighbors(self, actor: Hashable, layer: str) -> list:
        """Actors adjacent to ``actor`` inside ``layer``."""
        node = Node(actor, layer)
        if node not in self._adj:
            raise KeyError(f"node {tuple(node)!r} not in network")
        return [nbr.actor for nbr, ids in self._adj[node].items() if ids]

    def degree(self, actor: Hashable, layer: str, weighted: bool = True) -> float:
        """Degree of ``actor`` in ``layer``; self-loops count twice."""
        node = Node(actor, layer)
        if node not in self._adj:
            raise KeyError(f"node {tuple(node)!r} not in network")
        total = 0.0
        for nbr, ids in self._adj[node].items():
            for eid in ids:
                w = self.edge_weights[eid] if weighted else 1.0
                total += 2 * w if nbr == node else w
        return total

    # Supra row index

    def _invalidate_index(self):
        self._row_to_node = None
        self._node_to_row = None

    def ensure_node_index(self) -> int:
        """Build the stable node <-> row mapping (layer-major). Returns the node count."""
        if self._row_to_node is None:
            self._row_to_node = self.nodes()
            self._node_to_row = {n: i for i, n in enumerate(self._row_to_node)}
        return len(self._row_to_node)

    def node_to_row(self, node: Node) -> int:
        self.ensure_node_index()
        key = Node(*node)
        if key not in self._node_to_row:
            raise KeyError(f"node {tuple(key)!r} not in network")
        return self._node_to_row[key]

    def row_to_node(self, row: int) -> Node:
        self.ensure_node_index()
        try:
            return self._row_to_node[row]
        except IndexError:
            raise KeyError(f"row {row} not in node index") from None

    # Tables

    def edges_frame(self) -> pl.DataFrame:
        """Edge table with columns ``actor1, actor2, layer, weight``."""
        if not self.edge_definitions:
            return pl.DataFrame(
                schema={
                    "actor1": pl.Utf8,
                    "actor2": pl.Utf8,
                    "layer": pl.Utf8,
                    "weight": pl.Float64,
                }
            )
        defs = list(self.edge_definitions.values())
        m = len(defs)
        # one dtype for both endpoint columns
        ends = actor_series("actor", [d[0] for d in defs] + [d[1] for d in defs])
        return pl.DataFrame(
            [
                ends[:m].alias("actor1"),
                ends[m:].alias("actor2"),
                pl.Series("layer", [d[2] for d in defs], dtype=pl.Utf8),
                pl.Series("weight", list(self.edge_weights.values()), dtype=pl.Float64),
            ]
        )

    def nodes_frame(self) -> pl.DataFrame:
        """Presence table with columns ``actor, layer`` in node index order."""
        nodes = self.nodes()
        if not nodes:
            return pl.DataFrame(schema={"actor": pl.Utf8, "layer": pl.Utf8})
        return pl.DataFrame(
            [
                actor_series("actor", [n.actor for n in nodes]),
                pl.Series("layer", [n.layer for n in nodes], dtype=pl.Utf8),
            ]
        )

    # Misc

    def copy(self) -> MultilayerNetwork:
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return (
            f"<MultilayerNetwork{label}: {self.num_actors()} actors, {self.num_layers()} layers, "
            f"{self.num_nodes()} nodes, {self.num_edges()} edges>"
        )

    ## validation helpers

    def _assert_actor(self, actor):
        if actor not in self._actors:
            raise KeyError(f"actor {actor!r} not in network")

    def _assert_layer(self, layer):
        if layer not in self._layers:
            raise KeyError(f"unknown layer {layer!r}; known: {list(self._layers)!r}")
