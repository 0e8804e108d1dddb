from __future__ import annotations

try:
    import networkx as nx
except ModuleNotFoundError as e:
    raise ModuleNotFoundError(
        "Optional dependency 'networkx' is not installed. "
        "Install with: pip install mlnet[networkx]"
    ) from e

from collections.abc import Mapping

from ..core.network import MultilayerNetwork


def from_nx_layers(
    layers: Mapping[str, nx.Graph],
    *,
    weight: str = "weight",
    network: MultilayerNetwork | None = None,
) -> MultilayerNetwork:
    """Build a multilayer network from one networkx graph per layer.

    Graph nodes are actors, so the same node id in two graphs is the same
    actor. Isolated graph nodes become presences without edges. Multigraph
    parallel edges are kept as parallel edges.

    Parameters
    ----------
    layers : Mapping[str, networkx.Graph]
        Layer id -> graph. Directed graphs are rejected.
    weight : str
        Edge attribute holding the weight (default 1.0 when absent).
    network : MultilayerNetwork, optional
        Network to add to; a new one is created otherwise.

    Returns
    -------
    MultilayerNetwork

    """
    if network is None:
        network = MultilayerNetwork()
    for layer, G in layers.items():
        if G.is_directed():
            raise ValueError(f"layer {layer!r}: directed graphs are not supported")
        network.add_layer(str(layer))
        for v in G.nodes():
            network.add_node(v, str(layer))
        for u, v, data in G.edges(data=True):
            network.add_edge(u, v, str(layer), weight=data.get(weight, 1.0))
    return network


def to_nx(network: MultilayerNetwork, layer: str, *, weight: str = "weight") -> nx.Graph:
    """Export one layer as an undirected ``networkx.Graph``.

    Parallel edges are merged by summing their weights, matching how they
    enter the supra matrix.
    """
    G = nx.Graph(layer=layer)
    G.add_nodes_from(node.actor for node in network.nodes(layer))
    for u, v, _, w in network.edges(layer):
        if G.has_edge(u.actor, v.actor):
            G[u.actor][v.actor][weight] += w
        else:
            G.add_edge(u.actor, v.actor, **{weight: w})
    return G
