"""Dataset schema shared by training, batch scoring and the API."""

from typing import Any, Dict, List, Literal, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict

from src.exceptions import SchemaMismatch


class ColumnSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: Literal["categorical", "numeric"]
    levels: Optional[Tuple[str, ...]] = None   # categorical domain, None = learn at fit time
    minimum: Optional[float] = None            # plausible range for numerics
    maximum: Optional[float] = None
    description: str = ""

    @property
    def is_categorical(self) -> bool:
        return self.kind == "categorical"


class DatasetSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    columns: Tuple[ColumnSpec, ...]
    outcome: str = "stroke"

    @property
    def feature_names(self) -> List[str]:
        return [col.name for col in self.columns]

    @property
    def categorical_columns(self) -> List[str]:
        return [col.name for col in self.columns if col.is_categorical]

    @property
    def numeric_columns(self) -> List[str]:
        return [col.name for col in self.columns if not col.is_categorical]

    def column(self, name: str) -> ColumnSpec:
        for col in self.columns:
            if col.name == name:
                return col
        raise KeyError(name)

    def with_levels(self, levels: Dict[str, Tuple[str, ...]]) -> "DatasetSchema":
        """Return a copy whose categorical domains are replaced by ``levels``."""
        columns = tuple(
            col.model_copy(update={"levels": tuple(levels[col.name])})
            if col.name in levels
            else col
            for col in self.columns
        )
        return self.model_copy(update={"columns": columns})


# =================================================
# Declared stroke schema
# =================================================
STROKE_SCHEMA = DatasetSchema(
    columns=(
        ColumnSpec(name="gender", kind="categorical",
                   description="Gender"),
        ColumnSpec(name="age", kind="numeric", minimum=0, maximum=120,
                   description="Age in years"),
        ColumnSpec(name="hypertension", kind="categorical",
                   description="Do you have hypertension?"),
        ColumnSpec(name="heart_disease", kind="categorical",
                   description="Do you have heart disease?"),
        ColumnSpec(name="ever_married", kind="categorical",
                   description="Have you ever married?"),
        ColumnSpec(name="work_type", kind="categorical",
                   description="What kind of work you are doing or have done?"),
        ColumnSpec(name="Residence_type", kind="categorical",
                   description="The type of your residence"),
        ColumnSpec(name="avg_glucose_level", kind="numeric", minimum=0, maximum=310,
                   description="Average glucose level"),
        ColumnSpec(name="bmi", kind="numeric", minimum=9, maximum=73,
                   description="Body mass index"),
        ColumnSpec(name="smoking_status", kind="categorical",
                   description="Smoking status"),
    ),
    outcome="stroke",
)


# =================================================
# Frame validation
# =================================================
def _column_errors(
    series: pd.Series, spec: ColumnSpec, check_levels: bool
) -> List[str]:
    errors = []

    n_missing = int(series.isna().sum())
    if n_missing:
        errors.append(f"{n_missing} missing value(s)")
        series = series.dropna()

    if spec.is_categorical:
        if pd.api.types.is_numeric_dtype(series) and len(series):
            errors.append(
                f"expected categorical labels, got numeric codes (dtype {series.dtype})"
            )
        elif check_levels and spec.levels is not None:
            unseen = sorted(set(series.unique()) - set(spec.levels), key=str)
            if unseen:
                errors.append(
                    f"unseen level(s) {unseen}; fit-time domain is {list(spec.levels)}"
                )
        return errors

    if not pd.api.types.is_numeric_dtype(series) or pd.api.types.is_bool_dtype(series):
        errors.append(f"expected numeric values, got dtype {series.dtype}")
        return errors

    low = spec.minimum if spec.minimum is not None else float("-inf")
    high = spec.maximum if spec.maximum is not None else float("inf")
    outside = int(((series < low) | (series > high)).sum())
    if outside:
        errors.append(f"{outside} value(s) outside plausible range [{low}, {high}]")

    return errors


def validate_frame(
    df: pd.DataFrame, schema: DatasetSchema, check_levels: bool = False
) -> None:
    """
    Check that ``df`` carries every schema column with the declared type.

    Raises SchemaMismatch naming the first offending column; the full list
    of problems is attached as ``errors``.
    """
    errors: List[Dict[str, Any]] = []

    for spec in schema.columns:
        if spec.name not in df.columns:
            errors.append({"column": spec.name, "detail": "column missing"})
            continue
        for detail in _column_errors(df[spec.name], spec, check_levels):
            errors.append({"column": spec.name, "detail": detail})

    if errors:
        first = errors[0]
        raise SchemaMismatch(first["column"], first["detail"], errors)


def validate_outcome(y: pd.Series, outcome: str) -> None:
    if y.isna().any():
        raise SchemaMismatch(outcome, f"{int(y.isna().sum())} missing outcome value(s)")

    values = set(y.unique().tolist())
    if not values <= {0, 1}:
        raise SchemaMismatch(
            outcome, f"outcome must be binary 0/1, found {sorted(values, key=str)}"
        )


def learn_levels(df: pd.DataFrame, schema: DatasetSchema) -> Dict[str, Tuple[str, ...]]:
    """Sorted categorical domains observed in ``df``."""
    levels = {}

    for name in schema.categorical_columns:
        observed = tuple(sorted(str(value) for value in df[name].dropna().unique()))
        declared = schema.column(name).levels

        if declared is not None:
            extra = sorted(set(observed) - set(declared))
            if extra:
                raise SchemaMismatch(
                    name, f"level(s) {extra} not in declared domain {list(declared)}"
                )

        levels[name] = observed

    return levels
