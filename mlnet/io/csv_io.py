"""CSV input/output for multilayer networks, using Polars (no stdlib ``csv``).

Network files are multilayer edge lists, one edge per row:

    actor1,actor2,layer[,weight]

A header row is optional and detected when its first three fields are
column names; lines starting with ``#`` are ignored. The weight may be
omitted on any row (1.0). Community files have the columns ``actor, layer, cid``.

Public entry points:
- read_multilayer_csv(path, ...) -> MultilayerNetwork
- from_dataframe(df, ...) -> MultilayerNetwork   (polars, pandas, ... via narwhals)
- write_communities_csv(model_or_frame, path, ...)
- read_communities_csv(path, ...) -> polars.DataFrame
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import narwhals as nw
import polars as pl

from ..core.network import MultilayerNetwork

_COLUMNS = ["actor1", "actor2", "layer", "weight"]
_ENDPOINT_NAMES = {"actor1", "actor2", "actor", "from", "to", "source", "target", "src", "dst"}
_LAYER_NAMES = {"layer", "layers", "slice"}


def _looks_like_header(row: tuple) -> bool:
    # Every key field must be a column name; a single matching token is data.
    first, second, layer = (str(x).strip().lower() if x is not None else "" for x in row[:3])
    return first in _ENDPOINT_NAMES and second in _ENDPOINT_NAMES and layer in _LAYER_NAMES


def read_multilayer_csv(
    path: str | Path,
    *,
    separator: str = ",",
    has_header: bool | None = None,
    directed: bool = False,
    network: MultilayerNetwork | None = None,
) -> MultilayerNetwork:
    """Read a multilayer edge list into a network.

    Parameters
    ----------
    path : str | Path
    separator : str
        Field separator.
    has_header : bool, optional
        ``None`` auto-detects a header from its column names.
    directed : bool
        Must be False; directed networks are not supported.
    network : MultilayerNetwork, optional
        Network to add the edges to (a new one is created otherwise).

    Raises
    ------
    ValueError
        On directed input, rows with fewer than three fields or non-numeric weights.

    """
    if directed:
        raise ValueError("directed multilayer networks are not supported")
    # Fixed four-column schema; a row without a weight gets a null there.
    raw = pl.read_csv(
        path,
        separator=separator,
        has_header=False,
        schema={c: pl.Utf8 for c in _COLUMNS},
        comment_prefix="#",
        truncate_ragged_lines=True,
        raise_if_empty=False,
    )
    if raw.height == 0:
        return network if network is not None else MultilayerNetwork(name=Path(path).stem)

    raw = raw.select(pl.all().str.strip_chars())
    if has_header is None:
        has_header = _looks_like_header(raw.row(0))
    first_line = 2 if has_header else 1
    if has_header:
        raw = raw.slice(1)

    missing = raw.with_row_index("row").filter(
        pl.any_horizontal([pl.col(c).is_null() | (pl.col(c) == "") for c in _COLUMNS[:3]])
    )
    if missing.height:
        bad = int(missing["row"][0]) + first_line
        raise ValueError(f"{path}: row {bad} has fewer than 3 fields (actor1, actor2, layer)")

    try:
        raw = raw.with_columns(
            pl.when(pl.col("weight").is_null() | (pl.col("weight") == ""))
            .then(pl.lit("1.0"))
            .otherwise(pl.col("weight"))
            .cast(pl.Float64)
            .alias("weight")
        )
    except pl.exceptions.PolarsError as e:
        raise ValueError(f"{path}: non-numeric weight column") from e

    if network is None:
        network = MultilayerNetwork(name=Path(path).stem)
    return from_dataframe(raw, network=network)


def from_dataframe(
    df: Any,
    *,
    actor1: str = "actor1",
    actor2: str = "actor2",
    layer: str = "layer",
    weight: str | None = "weight",
    network: MultilayerNetwork | None = None,
) -> MultilayerNetwork:
    """Build a network from any eager dataframe supported by narwhals.

    A missing ``weight`` column (or ``weight=None``) means unit weights.
    """
    ndf = nw.from_native(df, eager_only=True)
    for col in (actor1, actor2, layer):
        if col not in ndf.columns:
            raise ValueError(f"missing column {col!r}; available: {ndf.columns!r}")
    use_weight = weight is not None and weight in ndf.columns

    if network is None:
        network = MultilayerNetwork()
    for row in ndf.iter_rows(named=True):
        w = row[weight] if use_weight else 1.0
        network.add_edge(
            row[actor1], row[actor2], str(row[layer]), weight=1.0 if w is None else float(w)
        )
    return network


def write_communities_csv(model_or_frame: Any, path: str | Path, *, separator: str = ","):
    """Write ``actor, layer, cid`` rows from a fitted ``GLouvain`` or a frame."""
    if hasattr(model_or_frame, "to_frame"):
        frame = model_or_frame.to_frame()
    else:
        frame = model_or_frame
        if not isinstance(frame, pl.DataFrame):
            frame = pl.DataFrame(nw.from_native(frame, eager_only=True).to_dict(as_series=False))
    missing = {"actor", "layer", "cid"} - set(frame.columns)
    if missing:
        raise ValueError(f"community table is missing columns {sorted(missing)!r}")
    frame.select("actor", "layer", "cid").write_csv(path, separator=separator)


def read_communities_csv(path: str | Path, *, separator: str = ",") -> pl.DataFrame:
    """Read a community table written by :func:`write_communities_csv`.

    The ``actor`` dtype is inferred, so integer actor ids come back as
    integers; tables with mixed id types were written as strings.
    """
    return pl.read_csv(
        path,
        separator=separator,
        infer_schema_length=None,
        schema_overrides={"layer": pl.Utf8, "cid": pl.Int64},
    )
