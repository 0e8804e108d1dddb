import numpy as np
import polars as pl
import pytest

from conftest import as_sorted_groups, random_network, ring_network, triangles_network
from mlnet.community.glouvain import (
    AggregationLevel,
    GLouvain,
    get_ml_community,
    multislice_modularity,
)
from mlnet.community.supra import build_supra_matrix
from mlnet.core.network import MultilayerNetwork, Node
from mlnet.exceptions import EmptyNetworkError, InvalidParameterError
from mlnet.utils.random import RandomSource

try:
    import networkx as nx

    HAS_NX = True
except ImportError:
    HAS_NX = False


def _labels_by_layer(model):
    out = {}
    for node, c in zip(model.nodes_, model.labels_):
        out.setdefault(node.layer, {})[node.actor] = int(c)
    return out


def _groups(mapping):
    groups = {}
    for actor, c in mapping.items():
        groups.setdefault(c, set()).add(actor)
    return sorted(tuple(sorted(g)) for g in groups.values())


class TestScenarios:
    def test_uncoupled_rings_split_into_pairs(self, rings):
        communities = get_ml_community(rings, gamma=1.0, omega=0.0)
        # each layer independently gives {0,1} and {2,3}; layers are not merged
        assert len(communities) == 4
        assert as_sorted_groups(communities) == [(0, 1), (0, 1), (2, 3), (2, 3)]

    def test_uncoupled_rings_are_mirrored(self, rings):
        model = GLouvain(gamma=1.0, omega=0.0).fit(rings)
        by_layer = _labels_by_layer(model)
        assert _groups(by_layer["L1"]) == _groups(by_layer["L2"]) == [(0, 1), (2, 3)]

    def test_strong_coupling_ties_presences_together(self, rings):
        model = GLouvain(gamma=1.0, omega=100.0).fit(rings)
        by_layer = _labels_by_layer(model)
        for actor in range(4):
            assert by_layer["L1"][actor] == by_layer["L2"][actor]
        communities = model.communities_
        assert len(communities) <= 2
        for actor in range(4):
            assert sum(actor in c for c in communities) == 1

    def test_two_triangles(self, triangles):
        communities = get_ml_community(triangles, gamma=1.0, omega=1.0)
        assert as_sorted_groups(communities) == [(0, 1, 2), (3, 4, 5)]

    @pytest.mark.parametrize("seed", range(6))
    def test_two_triangles_independent_of_visitation_order(self, triangles, seed):
        communities = get_ml_community(triangles, 1.0, 1.0, seed=seed, randomize=True)
        assert as_sorted_groups(communities) == [(0, 1, 2), (3, 4, 5)]

    def test_bridged_cliques(self):
        # two 4-cliques joined by the bridge 3-4
        net = MultilayerNetwork()
        for group in ([0, 1, 2, 3], [4, 5, 6, 7]):
            for i, a in enumerate(group):
                for b in group[i + 1 :]:
                    net.add_edge(a, b, "L1")
        net.add_edge(3, 4, "L1")
        model = GLouvain().fit(net)
        assert as_sorted_groups(model.communities_) == [(0, 1, 2, 3), (4, 5, 6, 7)]


class TestUncoupledEqualsSingleLayer:
    @staticmethod
    def _two_layer_network():
        net = MultilayerNetwork()
        for group in ([0, 1, 2, 3], [4, 5, 6, 7]):
            for i, a in enumerate(group):
                for b in group[i + 1 :]:
                    net.add_edge(a, b, "cliques")
        net.add_edge(3, 4, "cliques")
        for a, b in [(0, 1), (1, 2), (2, 0), (3, 4), (4, 5), (5, 3), (2, 3)]:
            net.add_edge(a, b, "triangles")
        return net

    @staticmethod
    def _single_layer(net, layer):
        single = MultilayerNetwork()
        for node in net.nodes(layer):
            single.add_node(node.actor, layer)
        for u, v, _, w in net.edges(layer):
            single.add_edge(u.actor, v.actor, layer, weight=w)
        return single

    def test_omega_zero_matches_per_layer_runs(self):
        net = self._two_layer_network()
        by_layer = _labels_by_layer(GLouvain(gamma=1.0, omega=0.0).fit(net))
        for layer in net.layers():
            single = GLouvain(gamma=1.0, omega=0.0).fit(self._single_layer(net, layer))
            assert _groups(by_layer[layer]) == _groups(_labels_by_layer(single)[layer])

    def test_omega_zero_does_not_mix_layers(self):
        net = self._two_layer_network()
        model = GLouvain(gamma=1.0, omega=0.0).fit(net)
        by_layer = _labels_by_layer(model)
        assert set(by_layer["cliques"].values()).isdisjoint(by_layer["triangles"].values())

    @pytest.mark.skipif(not HAS_NX, reason="networkx not installed")
    def test_matches_networkx_louvain_on_reference_graph(self):
        net = self._two_layer_network()
        by_layer = _labels_by_layer(GLouvain(gamma=1.0, omega=0.0).fit(net))
        G = nx.Graph()
        G.add_edges_from((u.actor, v.actor) for u, v, _, _ in net.edges("cliques"))
        expected = nx.community.louvain_communities(G, resolution=1.0, seed=42)
        assert _groups(by_layer["cliques"]) == sorted(tuple(sorted(c)) for c in expected)


class TestProperties:
    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_every_actor_is_covered(self, seed):
        net = random_network(seed=seed)
        communities = get_ml_community(net, gamma=1.0, omega=0.5)
        covered = set().union(*communities)
        assert covered == set(net.actors())

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_modularity_non_decreasing_across_levels(self, seed):
        net = random_network(seed=seed, n_actors=40, p=0.1)
        model = GLouvain(gamma=1.0, omega=0.3).fit(net)
        scores = [level.modularity for level in model.levels_]
        assert all(b >= a - 1e-12 for a, b in zip(scores, scores[1:]))
        assert model.modularity_ == pytest.approx(scores[-1])

    def test_levels_shrink_until_convergence(self):
        model = GLouvain(omega=0.5).fit(random_network(seed=9, n_actors=40, p=0.1))
        levels = model.levels_
        assert all(isinstance(level, AggregationLevel) for level in levels)
        for level in levels[:-1]:
            assert level.n_communities < level.n_nodes
        assert levels[-1].n_communities == levels[-1].n_nodes
        for prev, nxt in zip(levels, levels[1:]):
            assert nxt.n_nodes == prev.n_communities

    def test_final_labels_compose_level_partitions(self):
        net = random_network(seed=12, n_actors=30)
        model = GLouvain(omega=0.2).fit(net)
        labels = np.arange(net.num_nodes())
        for level in model.levels_:
            labels = level.partition[labels]
        same_final = model.labels_[:, None] == model.labels_[None, :]
        same_composed = labels[:, None] == labels[None, :]
        np.testing.assert_array_equal(same_final, same_composed)

    def test_reported_modularity_matches_scorer(self):
        net = random_network(seed=13)
        model = GLouvain(gamma=0.8, omega=0.4).fit(net)
        assert model.modularity_ == pytest.approx(
            multislice_modularity(net, model.labels_, gamma=0.8, omega=0.4)
        )

    def test_seeded_runs_are_reproducible(self):
        net = random_network(seed=21, n_actors=40)
        a = GLouvain(omega=0.5, randomize=True, seed=5).fit_predict(net)
        b = GLouvain(omega=0.5, randomize=True, seed=5).fit_predict(net)
        np.testing.assert_array_equal(a, b)

    def test_explicit_random_source(self):
        net = random_network(seed=22)
        a = GLouvain(randomize=True, random_source=RandomSource(3)).fit_predict(net)
        b = GLouvain(randomize=True, seed=3).fit_predict(net)
        np.testing.assert_array_equal(a, b)

    def test_cross_layer_disagreement_is_surfaced(self):
        # actor 2 sits with {0, 1} in L1 and with {3, 4} in L2
        net = MultilayerNetwork()
        for a, b in [(0, 1), (1, 2), (2, 0), (3, 4)]:
            net.add_edge(a, b, "L1")
        for a, b in [(0, 1), (2, 3), (3, 4), (4, 2)]:
            net.add_edge(a, b, "L2")
        communities = get_ml_community(net, gamma=1.0, omega=0.0)
        assert sum(2 in c for c in communities) == 2


class TestModelApi:
    def test_outputs(self, triangles):
        model = GLouvain().fit(triangles)
        assert model.nodes_ == triangles.nodes()
        mapping = model.node_communities()
        assert mapping[Node(0, "L1")] == mapping[Node(2, "L1")] != mapping[Node(3, "L1")]
        frame = model.to_frame()
        assert isinstance(frame, pl.DataFrame)
        assert frame.columns == ["actor", "layer", "cid"]
        assert frame.height == 6
        assert model.get_params()["gamma"] == 1.0

    def test_not_fitted(self):
        with pytest.raises(RuntimeError):
            GLouvain().to_frame()

    def test_max_levels_warns(self):
        net = MultilayerNetwork()
        for group in ([0, 1, 2, 3], [4, 5, 6, 7]):
            for i, a in enumerate(group):
                for b in group[i + 1 :]:
                    net.add_edge(a, b, "L1")
        net.add_edge(3, 4, "L1")
        with pytest.warns(RuntimeWarning):
            model = GLouvain(max_levels=1).fit(net)
        assert len(model.levels_) == 1

    def test_edgeless_layer_warns(self):
        net = MultilayerNetwork()
        net.add_edge("a", "b", "L1")
        net.add_node("a", "L2")
        with pytest.warns(RuntimeWarning, match="'L2'"):
            model = GLouvain().fit(net)
        assert model.labels_.shape == (3,)

    def test_frame_with_mixed_actor_types(self):
        net = MultilayerNetwork()
        net.add_edge(0, "a", "L1")
        frame = GLouvain().fit(net).to_frame()
        assert frame["actor"].to_list() == ["0", "a"]
        assert frame["layer"].to_list() == ["L1", "L1"]
        assert frame.schema["cid"] == pl.Int64

    def test_edgeless_network_keeps_singletons(self):
        net = MultilayerNetwork()
        net.add_node("a", "L1")
        net.add_node("b", "L1")
        with pytest.warns(RuntimeWarning):
            communities = get_ml_community(net, 1.0, 0.0)
        assert as_sorted_groups(communities) == [("a",), ("b",)]


class TestErrors:
    def test_empty_network(self):
        with pytest.raises(EmptyNetworkError):
            get_ml_community(MultilayerNetwork(), 1.0, 1.0)

    @pytest.mark.parametrize("gamma,omega", [(0.0, 1.0), (-2.0, 1.0), (1.0, -1.0)])
    def test_invalid_parameters_fail_on_construction(self, gamma, omega):
        with pytest.raises(InvalidParameterError):
            GLouvain(gamma=gamma, omega=omega)

    @pytest.mark.parametrize("kwargs", [{"max_passes": 0}, {"max_levels": 0}])
    def test_invalid_bounds(self, kwargs):
        with pytest.raises(InvalidParameterError):
            GLouvain(**kwargs)

    def test_failed_fit_leaves_model_unfitted(self):
        model = GLouvain()
        with pytest.raises(EmptyNetworkError):
            model.fit(MultilayerNetwork())
        assert model.labels_ is None
        assert model.communities_ is None

    def test_multislice_modularity_length_mismatch(self, triangles):
        with pytest.raises(ValueError):
            multislice_modularity(triangles, [0, 1])


def test_matches_matrix_modularity(rings):
    B = build_supra_matrix(rings, 1.0, 0.0)
    model = GLouvain(omega=0.0).fit(rings)
    assert model.modularity_ == pytest.approx(B.modularity(model.labels_))
    # a pair of a 4-ring scores 2 * (1 - 4/8) - 2 * 4/8 = 0, like the whole ring
    assert model.modularity_ == pytest.approx(0.0, abs=1e-12)
