# Adapters import optional third-party libraries; import them explicitly, e.g.
#   from mlnet.adapters.networkx_adapter import from_nx_layers
