from .csv_io import (
    from_dataframe,
    read_communities_csv,
    read_multilayer_csv,
    write_communities_csv,
)

__all__ = [
    "from_dataframe",
    "read_communities_csv",
    "read_multilayer_csv",
    "write_communities_csv",
]
