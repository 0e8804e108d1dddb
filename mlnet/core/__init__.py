from .network import Edge, MultilayerNetwork, Node

__all__ = ["Edge", "MultilayerNetwork", "Node"]
