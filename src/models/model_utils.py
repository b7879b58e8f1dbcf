import math

import pandas as pd

from sklearn.compose import ColumnTransformer
from sklearn.preprocessing import StandardScaler, OneHotEncoder
from sklearn.pipeline import Pipeline
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import train_test_split

from src.exceptions import SchemaMismatch, SplitError
from src.models.schema import (
    DatasetSchema,
    STROKE_SCHEMA,
    validate_frame,
    validate_outcome,
)


def load_data(csv_path, schema: DatasetSchema = STROKE_SCHEMA) -> pd.DataFrame:
    df = pd.read_csv(csv_path)
    if schema.outcome not in df.columns:
        raise SchemaMismatch(schema.outcome, "Target column missing")

    validate_outcome(df[schema.outcome], schema.outcome)
    validate_frame(df, schema)
    return df


def split_data(
    df: pd.DataFrame,
    schema: DatasetSchema = STROKE_SCHEMA,
    test_size: float = 0.2,
    random_state: int = 42,
):
    """Stratified train/test split on the outcome column."""
    if not 0.0 < test_size < 1.0:
        raise SplitError(f"test_size must lie in (0, 1), got {test_size}")

    if schema.outcome not in df.columns:
        raise SchemaMismatch(schema.outcome, "Target column missing")
    validate_frame(df, schema)

    X = df[schema.feature_names]
    y = df[schema.outcome]

    n_classes = y.nunique()
    if n_classes < 2:
        raise SplitError(
            f"stratification column '{schema.outcome}' has {n_classes} class(es), need 2"
        )

    n_test = math.ceil(test_size * len(df))
    n_train = len(df) - n_test
    if n_test == 0 or n_train == 0:
        raise SplitError(
            f"split of {len(df)} rows leaves an empty partition "
            f"(train={n_train}, test={n_test})"
        )

    try:
        return train_test_split(
            X, y, test_size=test_size, random_state=random_state, stratify=y
        )
    except ValueError as exc:
        raise SplitError(str(exc)) from exc


def build_preprocessor(schema: DatasetSchema) -> ColumnTransformer:
    categorical_cols = schema.categorical_columns
    numerical_cols = schema.numeric_columns

    # Explicit domains keep the reference level stable and reject unseen labels
    categories = [list(schema.column(name).levels or ()) for name in categorical_cols]

    return ColumnTransformer(
        transformers=[
            ("num", StandardScaler(), numerical_cols),
            (
                "cat",
                OneHotEncoder(
                    categories=categories if all(categories) else "auto",
                    drop="first",
                    handle_unknown="error",
                    sparse_output=False,
                ),
                categorical_cols,
            ),
        ],
        verbose_feature_names_out=False,
    )


def build_model_pipeline(preprocessor, max_iter: int = 100) -> Pipeline:
    # Unpenalized maximum likelihood, Newton iterations
    logreg = LogisticRegression(
        penalty=None,
        solver="newton-cg",
        max_iter=max_iter,
    )

    return Pipeline(
        steps=[
            ("preprocessor", preprocessor),
            ("classifier", logreg),
        ]
    )
