# mlnet/__init__.py
"""mlnet: multilayer networks and generalized Louvain community detection."""

from __future__ import annotations

from importlib import import_module
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version
from typing import Any

# Lazily exposed submodules (imported on first attribute access)
_lazy_submodules = {
    "core": "mlnet.core",
    "community": "mlnet.community",
    "io": "mlnet.io",
    "adapters": "mlnet.adapters",
    "utils": "mlnet.utils",
    "exceptions": "mlnet.exceptions",
    "networkx": "mlnet.adapters.networkx_adapter",
    "csvio": "mlnet.io.csv_io",
}

# Curated top-level symbols (lazy). name -> (module, attribute)
_lazy_symbols: dict[str, tuple[str, str]] = {
    # Core
    "MultilayerNetwork": ("mlnet.core.network", "MultilayerNetwork"),
    "Node": ("mlnet.core.network", "Node"),
    "Edge": ("mlnet.core.network", "Edge"),
    # Community detection
    "GLouvain": ("mlnet.community.glouvain", "GLouvain"),
    "get_ml_community": ("mlnet.community.glouvain", "get_ml_community"),
    "multislice_modularity": ("mlnet.community.glouvain", "multislice_modularity"),
    "build_supra_matrix": ("mlnet.community.supra", "build_supra_matrix"),
    # Errors
    "InvalidParameterError": ("mlnet.exceptions", "InvalidParameterError"),
    "EmptyNetworkError": ("mlnet.exceptions", "EmptyNetworkError"),
    "InternalInvariantError": ("mlnet.exceptions", "InternalInvariantError"),
    # Utilities
    "RandomSource": ("mlnet.utils.random", "RandomSource"),
    # CSV (polars)
    "read_multilayer_csv": ("mlnet.io.csv_io", "read_multilayer_csv"),
    "write_communities_csv": ("mlnet.io.csv_io", "write_communities_csv"),
    # NetworkX adapter (optional dependency)
    "from_nx_layers": ("mlnet.adapters.networkx_adapter", "from_nx_layers"),
    "to_nx": ("mlnet.adapters.networkx_adapter", "to_nx"),
}

__all__ = sorted(set(list(_lazy_submodules) + list(_lazy_symbols)))


def __getattr__(name: str) -> Any:  # PEP 562: lazy attribute resolution
    if name in _lazy_submodules:
        return import_module(_lazy_submodules[name])
    if name in _lazy_symbols:
        mod, attr = _lazy_symbols[name]
        return getattr(import_module(mod), attr)
    raise AttributeError(name)


def __dir__() -> list[str]:
    return sorted(list(globals().keys()) + list(__all__))


try:
    __version__ = _pkg_version("mlnet")
except PackageNotFoundError:
    __version__ = "0.0.0"
