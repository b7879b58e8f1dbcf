"""Fit and persist the stroke preprocessing + logistic-regression pipeline."""

import os
import pickle
import warnings
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List

import numpy as np
import pandas as pd
import sklearn
from sklearn.exceptions import ConvergenceWarning
from sklearn.pipeline import Pipeline

from src.exceptions import (
    ArtifactLoadFailure,
    ConvergenceFailure,
    RankDeficiency,
    SchemaMismatch,
)
from src.logging_config import get_logger
from src.models.model_utils import build_model_pipeline, build_preprocessor
from src.models.schema import (
    DatasetSchema,
    STROKE_SCHEMA,
    learn_levels,
    validate_frame,
    validate_outcome,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class FittedPipeline:
    schema: DatasetSchema
    pipeline: Pipeline
    n_train: int
    prevalence: float
    fitted_at: str
    sklearn_version: str = sklearn.__version__

    @property
    def preprocessor(self):
        return self.pipeline.named_steps["preprocessor"]

    @property
    def classifier(self):
        return self.pipeline.named_steps["classifier"]

    @property
    def feature_names(self) -> List[str]:
        """Names of the transformed (encoded + scaled) features."""
        return [str(name) for name in self.preprocessor.get_feature_names_out()]

    @property
    def coefficients(self) -> np.ndarray:
        return self.classifier.coef_[0].copy()

    @property
    def intercept(self) -> float:
        return float(self.classifier.intercept_[0])

    @property
    def encoding_table(self) -> Dict[str, Dict[str, Any]]:
        encoder = self.preprocessor.named_transformers_["cat"]
        table = {}
        for name, levels in zip(self.schema.categorical_columns, encoder.categories_):
            levels = [str(level) for level in levels]
            table[name] = {"reference": levels[0], "encoded": levels[1:]}
        return table

    @property
    def scaling_table(self) -> Dict[str, Dict[str, float]]:
        scaler = self.preprocessor.named_transformers_["num"]
        return {
            name: {"mean": float(mean), "std": float(scale)}
            for name, mean, scale in zip(
                self.schema.numeric_columns, scaler.mean_, scaler.scale_
            )
        }

    def to_dict(self) -> Dict[str, Any]:
        """Library-independent view of the artifact: tables and weights."""
        return {
            "schema": self.schema.model_dump(),
            "encoding": self.encoding_table,
            "scaling": self.scaling_table,
            "coefficients": dict(zip(self.feature_names, self.coefficients.tolist())),
            "intercept": self.intercept,
            "n_train": self.n_train,
            "prevalence": self.prevalence,
            "fitted_at": self.fitted_at,
            "sklearn_version": self.sklearn_version,
        }


# =================================================
# Fit
# =================================================
def _check_full_rank(Xt: np.ndarray, feature_names: List[str]) -> None:
    design = np.column_stack([np.ones(len(Xt)), Xt])
    if np.linalg.matrix_rank(design) == design.shape[1]:
        return

    # Walk the columns left to right; a column that adds no rank is redundant
    redundant = []
    rank = np.linalg.matrix_rank(design[:, :1])
    for j in range(1, design.shape[1]):
        new_rank = np.linalg.matrix_rank(design[:, : j + 1])
        if new_rank == rank:
            redundant.append(feature_names[j - 1])
        rank = new_rank

    raise RankDeficiency(
        redundant, "design matrix is rank deficient, linearly dependent feature(s)"
    )


def fit_pipeline(
    X: pd.DataFrame,
    y: pd.Series,
    schema: DatasetSchema = STROKE_SCHEMA,
    max_iter: int = 100,
) -> FittedPipeline:
    validate_outcome(y, schema.outcome)
    if y.nunique() < 2:
        raise SchemaMismatch(
            schema.outcome, "training partition needs both outcome classes"
        )

    validate_frame(X, schema, check_levels=True)

    levels = learn_levels(X, schema)
    single = [name for name, observed in levels.items() if len(observed) < 2]
    if single:
        raise RankDeficiency(single, "categorical column(s) with a single observed level")

    fitted_schema = schema.with_levels(levels)
    pipeline = build_model_pipeline(build_preprocessor(fitted_schema), max_iter=max_iter)
    preprocessor = pipeline.named_steps["preprocessor"]
    classifier = pipeline.named_steps["classifier"]

    Xt = preprocessor.fit_transform(X[fitted_schema.feature_names])
    _check_full_rank(Xt, [str(name) for name in preprocessor.get_feature_names_out()])

    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        try:
            classifier.fit(Xt, y.astype(int).to_numpy())
        except ConvergenceWarning as exc:
            raise ConvergenceFailure(
                f"solver did not converge within {max_iter} iterations: {exc}"
            ) from exc

    artifact = FittedPipeline(
        schema=fitted_schema,
        pipeline=pipeline,
        n_train=len(X),
        prevalence=float(y.mean()),
        fitted_at=datetime.now(timezone.utc).isoformat(),
    )

    logger.info(
        "Pipeline fitted on %d rows (prevalence=%.4f, features=%d)",
        artifact.n_train,
        artifact.prevalence,
        len(artifact.feature_names),
    )
    return artifact


# =================================================
# Persistence
# =================================================
def save_artifact(artifact: FittedPipeline, path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, "wb") as f:
        pickle.dump(artifact, f)

    logger.info("Artifact saved at %s", path)


def load_artifact(path: str) -> FittedPipeline:
    if not path or not os.path.exists(path):
        raise ArtifactLoadFailure(f"Model file not found at {path}")

    try:
        with open(path, "rb") as f:
            artifact = pickle.load(f)
    except Exception as exc:
        raise ArtifactLoadFailure(f"Could not deserialize {path}: {exc}") from exc

    if not isinstance(artifact, FittedPipeline):
        raise ArtifactLoadFailure(
            f"{path} holds a {type(artifact).__name__}, not a fitted stroke pipeline"
        )

    logger.info("Artifact loaded from %s", path)
    return artifact
