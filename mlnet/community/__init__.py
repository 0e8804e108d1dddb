from .glouvain import AggregationLevel, GLouvain, get_ml_community, multislice_modularity
from .local_move import LocalMoveOptimizer
from .metanetwork import membership_matrix, metanetwork
from .supra import SupraModularityMatrix, build_supra_matrix

__all__ = [
    "AggregationLevel",
    "GLouvain",
    "LocalMoveOptimizer",
    "SupraModularityMatrix",
    "build_supra_matrix",
    "get_ml_community",
    "membership_matrix",
    "metanetwork",
    "multislice_modularity",
]
