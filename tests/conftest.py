"""Shared fixtures and helpers for mlnet tests."""

import pathlib
import shutil
import sys
import tempfile
from pathlib import Path

import numpy as np
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]  # project root
sys.path.insert(0, str(ROOT))

from mlnet.core.network import MultilayerNetwork  # noqa: E402

# ======================================================================
# BUILDERS
# ======================================================================


def ring_network(n_layers=2, size=4):
    """``n_layers`` identical rings over actors ``0..size-1`` (unit weights)."""
    net = MultilayerNetwork(name="rings")
    for li in range(n_layers):
        layer = f"L{li + 1}"
        for a in range(size):
            net.add_edge(a, (a + 1) % size, layer)
    return net


def triangles_network():
    """Single layer with two disconnected triangles 0-1-2 and 3-4-5."""
    net = MultilayerNetwork(name="triangles")
    for a, b in [(0, 1), (1, 2), (2, 0), (3, 4), (4, 5), (5, 3)]:
        net.add_edge(a, b, "L1")
    return net


def random_network(seed=0, n_actors=20, n_layers=3, p=0.2, presence=0.8):
    """Random weighted multilayer network; not every actor is in every layer."""
    rng = np.random.default_rng(seed)
    net = MultilayerNetwork(name=f"random-{seed}")
    for li in range(n_layers):
        layer = f"L{li}"
        present = [a for a in range(n_actors) if rng.random() < presence]
        for a in present:
            net.add_node(a, layer)
        for i, a in enumerate(present):
            for b in present[i + 1 :]:
                if rng.random() < p:
                    net.add_edge(a, b, layer, weight=float(rng.integers(1, 4)))
    return net


# ======================================================================
# FIXTURES
# ======================================================================


@pytest.fixture
def rings():
    return ring_network()


@pytest.fixture
def triangles():
    return triangles_network()


@pytest.fixture
def path_network():
    """Single layer path 0-1-2."""
    net = MultilayerNetwork()
    net.add_edge(0, 1, "L1")
    net.add_edge(1, 2, "L1")
    return net


@pytest.fixture
def tmpdir_fixture():
    """Temporary directory for file I/O (input/output) tests."""
    tmpdir = Path(tempfile.mkdtemp())
    yield tmpdir
    shutil.rmtree(tmpdir)


# ======================================================================
# HELPERS
# ======================================================================


def as_sorted_groups(communities):
    """Canonical, order-free form of a list of actor sets."""
    return sorted(tuple(sorted(c)) for c in communities)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
