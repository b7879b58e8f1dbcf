from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Literal, Mapping, Type

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model
from sklearn.metrics import (
    accuracy_score,
    precision_score,
    recall_score,
    f1_score,
    roc_auc_score,
)

from src.exceptions import SchemaMismatch
from src.models.pipeline import FittedPipeline
from src.models.schema import DatasetSchema, validate_frame


DEFAULT_THRESHOLD = 0.5


@dataclass(frozen=True)
class PredictionResult:
    predicted_class: int
    prob_0: float
    prob_1: float
    threshold: float = DEFAULT_THRESHOLD

    def to_dict(self, digits: int = 3) -> Dict[str, Any]:
        """Display form; probabilities are rounded, the result itself is not."""
        return {
            "predicted_class": self.predicted_class,
            "prob_0": round(self.prob_0, digits),
            "prob_1": round(self.prob_1, digits),
            "threshold": self.threshold,
        }

    def message(self) -> str:
        shown = self.to_dict()
        return (
            f"The predicted class is: {self.predicted_class}, "
            f"where 0 = no stroke; 1 = stroke. "
            f"The predicted probability for class 0 is: {shown['prob_0']}. "
            f"The predicted probability for class 1 is: {shown['prob_1']}."
        )


# =================================================
# Request model
# =================================================
@lru_cache(maxsize=8)
def build_request_model(schema: DatasetSchema) -> Type[BaseModel]:
    """
    Generate the typed request model for ``schema``.

    Numeric fields parse to float inside their plausible range; categorical
    fields only accept the exact (case-sensitive) fit-time levels.
    """
    fields: Dict[str, Any] = {}

    for col in schema.columns:
        if col.is_categorical:
            annotation = Literal[col.levels] if col.levels else str
            fields[col.name] = (annotation, Field(..., description=col.description))
        else:
            fields[col.name] = (
                float,
                Field(
                    ...,
                    ge=col.minimum,
                    le=col.maximum,
                    allow_inf_nan=False,
                    description=col.description,
                ),
            )

    return create_model(
        "StrokeRequest",
        __config__=ConfigDict(frozen=True, extra="ignore"),
        **fields,
    )


def _describe(error: Dict[str, Any], schema: DatasetSchema) -> Dict[str, Any]:
    column = str(error["loc"][0]) if error["loc"] else "request"

    if error["type"] == "missing":
        detail = "missing required field"
    elif error["type"] == "literal_error":
        levels = list(schema.column(column).levels or ())
        detail = f"value {error['input']!r} is not in the fit-time domain {levels}"
    else:
        detail = f"{error['msg']} (got {error['input']!r})"

    return {"column": column, "detail": detail}


def coerce_request(schema: DatasetSchema, raw: Mapping[str, Any]) -> Dict[str, Any]:
    request_model = build_request_model(schema)

    try:
        request = request_model.model_validate(dict(raw))
    except ValidationError as exc:
        errors = [_describe(error, schema) for error in exc.errors()]
        raise SchemaMismatch(errors[0]["column"], errors[0]["detail"], errors) from exc

    return request.model_dump()


# =================================================
# Linear model
# =================================================
def check_threshold(threshold: float) -> None:
    if not 0.0 < threshold < 1.0:
        raise ValueError(f"threshold must lie in (0, 1), got {threshold}")


def sigmoid(z: np.ndarray) -> np.ndarray:
    z = np.asarray(z, dtype=float)
    out = np.empty_like(z)
    positive = z >= 0
    out[positive] = 1.0 / (1.0 + np.exp(-z[positive]))
    exp_z = np.exp(z[~positive])
    out[~positive] = exp_z / (1.0 + exp_z)
    return out


def _is_positive(prob_1, threshold: float):
    return prob_1 >= threshold


def classify(prob_1: float, threshold: float = DEFAULT_THRESHOLD) -> int:
    return int(_is_positive(prob_1, threshold))


def _logits(artifact: FittedPipeline, frame: pd.DataFrame) -> np.ndarray:
    Xt = artifact.preprocessor.transform(frame[artifact.schema.feature_names])
    return np.asarray(Xt, dtype=float) @ artifact.coefficients + artifact.intercept


def predict(
    artifact: FittedPipeline,
    raw: Mapping[str, Any],
    threshold: float = DEFAULT_THRESHOLD,
) -> PredictionResult:
    """Validate one raw request and score it. Pure: same input, same output."""
    check_threshold(threshold)

    values = coerce_request(artifact.schema, raw)
    frame = pd.DataFrame([values], columns=artifact.schema.feature_names)

    prob_1 = float(sigmoid(_logits(artifact, frame))[0])

    return PredictionResult(
        predicted_class=classify(prob_1, threshold),
        prob_0=1.0 - prob_1,
        prob_1=prob_1,
        threshold=threshold,
    )


def predict_frame(
    artifact: FittedPipeline,
    df: pd.DataFrame,
    threshold: float = DEFAULT_THRESHOLD,
) -> pd.DataFrame:
    """
    Score every row of ``df``.

    The whole frame is checked against the fit-time schema first, so a
    dataset whose labels or codes were never harmonized is rejected rather
    than scored.
    """
    check_threshold(threshold)
    validate_frame(df, artifact.schema, check_levels=True)

    if df.empty:
        prob_1 = np.empty(0, dtype=float)
    else:
        prob_1 = sigmoid(_logits(artifact, df))

    return pd.DataFrame(
        {
            "predicted_class": _is_positive(prob_1, threshold).astype(int),
            "prob_0": 1.0 - prob_1,
            "prob_1": prob_1,
        },
        index=df.index,
    )


def evaluate(
    artifact: FittedPipeline,
    X: pd.DataFrame,
    y: pd.Series,
    threshold: float = DEFAULT_THRESHOLD,
) -> Dict[str, float]:
    scored = predict_frame(artifact, X, threshold)
    y_pred = scored["predicted_class"]
    y_proba = scored["prob_1"]

    return {
        "accuracy": accuracy_score(y, y_pred),
        "precision": precision_score(y, y_pred, zero_division=0),
        "recall": recall_score(y, y_pred, zero_division=0),
        "f1_score": f1_score(y, y_pred, zero_division=0),
        "roc_auc": roc_auc_score(y, y_proba),
    }
