"""Import of quantitative tables (search engine exports) into assays.

A table holds one row per feature (PSM, peptide or protein). Some columns
are quantitative, one per sample; all other columns become feature metadata.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from pathlib import Path
from typing import Any

import polars as pl
from polars.exceptions import PolarsError

from msfeatures.core.container import MsContainer
from msfeatures.core.exceptions import MissingColumnError, ValidationError
from msfeatures.core.structures import Assay
from msfeatures.io.config import DEFAULT_NULL_VALUES, ImportConfig, check_import_keys
from msfeatures.io.exceptions import IOFormatError

__all__ = [
    "read_assay",
    "read_features",
]

logger = logging.getLogger(__name__)


def _load_table(
    source: str | Path | pl.DataFrame, sep: str, null_values: list[str]
) -> pl.DataFrame:
    if isinstance(source, pl.DataFrame):
        return source

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    try:
        if path.suffix == ".parquet":
            return pl.read_parquet(path)
        return pl.read_csv(
            path, separator=sep, null_values=null_values, infer_schema_length=10000
        )
    except PolarsError as e:
        raise IOFormatError(f"Could not parse table ({e})", str(path)) from e


def _resolve_quant_cols(
    df: pl.DataFrame,
    quant_cols: list[str] | list[int] | None,
    quant_pattern: str | None,
) -> list[str]:
    if quant_pattern is not None:
        pattern = re.compile(quant_pattern)
        cols = [c for c in df.columns if pattern.search(c)]
        if not cols:
            raise IOFormatError(f"No column matches quantitative pattern '{quant_pattern}'")
        return cols

    if not quant_cols:
        raise ValidationError("No quantitative columns given.")
    cols = []
    for col in quant_cols:
        if isinstance(col, int):
            if not -len(df.columns) <= col < len(df.columns):
                raise MissingColumnError(str(col), "table")
            cols.append(df.columns[col])
        elif col in df.columns:
            cols.append(col)
        else:
            raise MissingColumnError(col, "table")
    if len(set(cols)) != len(cols):
        raise ValidationError(f"Quantitative columns given more than once: {cols}")
    return cols


def read_assay(
    source: str | Path | pl.DataFrame,
    quant_cols: list[str] | list[int] | None = None,
    fnames: str | None = None,
    sep: str = "\t",
    *,
    quant_pattern: str | None = None,
    null_values: list[str] | None = None,
) -> Assay:
    """
    Read one quantitative table into an Assay.

    Parameters
    ----------
    source : str | Path | pl.DataFrame
        Delimited text file, parquet file, or an already loaded table.
    quant_cols : list[str] | list[int], optional
        Quantitative columns by name or position, one per sample.
    fnames : str, optional
        Column holding unique feature names. Features are numbered from 1
        when omitted.
    sep : str, default "\\t"
        Field delimiter of text files.
    quant_pattern : str, optional
        Regular expression selecting quantitative columns, instead of
        ``quant_cols``.
    null_values : list[str], optional
        Strings read as missing values.

    Returns
    -------
    Assay
        Features in rows; quantitative column names become sample ids.

    Raises
    ------
    FileNotFoundError
        If ``source`` is a path that does not exist.
    MissingColumnError
        If a quantitative column or ``fnames`` is not in the table.
    IOFormatError
        If the table cannot be parsed or a quantitative column is not numeric.

    Examples
    --------
    >>> assay = read_assay("psms.tsv", quant_pattern="^Reporter", fnames="PSM.ID")
    """
    df = _load_table(source, sep, null_values or DEFAULT_NULL_VALUES)
    cols = _resolve_quant_cols(df, quant_cols, quant_pattern)

    try:
        X = df.select(pl.col(cols).cast(pl.Float64, strict=True)).to_numpy()
    except PolarsError as e:
        raise IOFormatError(f"Quantitative columns must be numeric ({e})") from e

    var = df.drop(cols)
    if fnames is not None:
        if fnames not in var.columns:
            raise MissingColumnError(fnames, "table")
        ids = var[fnames].cast(pl.Utf8)
    else:
        ids = pl.Series([str(i + 1) for i in range(df.height)], dtype=pl.Utf8)
    var = var.drop("_index", strict=False).insert_column(0, ids.alias("_index"))

    obs = pl.DataFrame({"_index": cols})
    logger.info("Read %d features x %d samples", df.height, len(cols))
    return Assay(X=X.reshape(df.height, len(cols)), var=var, obs=obs)


def read_features(
    source: str | Path | pl.DataFrame,
    config: ImportConfig | None = None,
    **overrides: Any,
) -> MsContainer:
    """
    Read a quantitative table into a new container with one assay.

    Parameters
    ----------
    source : str | Path | pl.DataFrame
        Table to read.
    config : ImportConfig, optional
        Import settings; keyword ``overrides`` replace individual fields.
        Without a config the overrides build one.

    Returns
    -------
    MsContainer
        Container in the ``POPULATED`` state.

    Raises
    ------
    ConfigurationError
        If an override is not an ImportConfig field or the settings conflict.

    Examples
    --------
    >>> container = read_features(
    ...     "psms.tsv", quant_pattern="^Reporter", feature_id_col="PSM.ID", assay_name="psms"
    ... )
    >>> container = read_features("psms.tsv", load_import_config("import.yaml"))
    """
    check_import_keys(overrides)
    if config is None:
        config = ImportConfig(**overrides)
    elif overrides:
        config = dataclasses.replace(config, **overrides)

    assay = read_assay(
        source,
        config.quant_cols,
        config.feature_id_col,
        config.sep,
        quant_pattern=config.quant_pattern,
        null_values=config.null_values,
    )
    container = MsContainer().add_assay(config.assay_name, assay)
    return container.log_operation(
        action="read_features",
        params={
            "source": str(source) if not isinstance(source, pl.DataFrame) else "<DataFrame>",
            "assay": config.assay_name,
            "n_features": assay.n_features,
            "n_samples": assay.n_samples,
        },
    )
