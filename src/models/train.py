import json
import time
from typing import Optional

import mlflow
import pandas as pd

from sklearn.model_selection import StratifiedKFold, cross_val_score

from src import config
from src.models.inference import evaluate
from src.models.model_utils import (
    build_model_pipeline,
    build_preprocessor,
    load_data,
    split_data,
)
from src.models.pipeline import fit_pipeline, save_artifact
from src.models.schema import STROKE_SCHEMA, DatasetSchema, learn_levels


# ------------------------------------------------------------------
# Progress helper
# ------------------------------------------------------------------
def log_step(message: str) -> None:
    print(f"[{time.strftime('%H:%M:%S')}] {message}", flush=True)


# ------------------------------------------------------------------
# Cross-validated baseline on the training partition
# ------------------------------------------------------------------
def cross_validate(
    X_train: pd.DataFrame,
    y_train: pd.Series,
    schema: DatasetSchema = STROKE_SCHEMA,
    n_splits: int = 5,
    random_state: int = 42,
    max_iter: int = 100,
):
    fold_schema = schema.with_levels(learn_levels(X_train, schema))
    pipeline = build_model_pipeline(build_preprocessor(fold_schema), max_iter=max_iter)

    cv = StratifiedKFold(
        n_splits=n_splits,
        shuffle=True,
        random_state=random_state,
    )

    scores = cross_val_score(
        pipeline,
        X_train[fold_schema.feature_names],
        y_train,
        cv=cv,
        scoring="roc_auc",
        n_jobs=1,
    )
    return scores.mean(), scores.std()


def track_run(artifact, metrics: dict, model_path: str) -> None:
    mlflow.set_tracking_uri(config.MLFLOW_TRACKING_URI)
    mlflow.set_experiment(config.MLFLOW_EXPERIMENT)

    with mlflow.start_run(run_name="Logistic Regression"):
        mlflow.log_params(artifact.classifier.get_params())
        mlflow.log_metrics(metrics)
        mlflow.log_dict(artifact.to_dict(), "pipeline.json")
        mlflow.log_artifact(model_path)


# ------------------------------------------------------------------
# Training run
# ------------------------------------------------------------------
def run_training(
    data_path: Optional[str] = None,
    model_path: Optional[str] = None,
    schema: DatasetSchema = STROKE_SCHEMA,
    track: Optional[bool] = None,
):
    data_path = data_path or config.DATA_PATH
    model_path = model_path or config.MODEL_PATH
    if track is None:
        track = bool(config.MLFLOW_TRACKING_URI)

    log_step("Starting model training and evaluation")

    # ------------------------------
    # Load data
    # ------------------------------
    df = load_data(data_path, schema)
    log_step(f"Loaded {len(df)} rows, stroke prevalence {df[schema.outcome].mean():.4f}")

    # ------------------------------
    # Train / test split
    # ------------------------------
    X_train, X_test, y_train, y_test = split_data(
        df,
        schema,
        test_size=config.TEST_SIZE,
        random_state=config.RANDOM_STATE,
    )

    # ------------------------------
    # Cross-validation
    # ------------------------------
    log_step("Evaluating Logistic Regression with cross-validation")
    cv_mean, cv_std = cross_validate(
        X_train,
        y_train,
        schema,
        n_splits=config.CV_FOLDS,
        random_state=config.RANDOM_STATE,
        max_iter=config.MAX_ITER,
    )
    log_step(f"Logistic Regression CV ROC-AUC: {cv_mean:.4f} ± {cv_std:.4f}")

    # ------------------------------
    # Final fit (aborts before saving on failure)
    # ------------------------------
    artifact = fit_pipeline(X_train, y_train, schema, max_iter=config.MAX_ITER)

    # ------------------------------
    # Test set evaluation
    # ------------------------------
    log_step("Evaluating fitted pipeline on test set")
    metrics = evaluate(artifact, X_test, y_test, threshold=config.PREDICTION_THRESHOLD)
    metrics["cv_roc_auc_mean"] = cv_mean
    metrics["cv_roc_auc_std"] = cv_std

    for key, value in metrics.items():
        log_step(f"{key}: {value:.4f}")

    # ------------------------------
    # Save artifact
    # ------------------------------
    save_artifact(artifact, model_path)
    log_step(f"Final model saved at {model_path}")
    log_step(json.dumps(artifact.to_dict()["coefficients"], indent=2))

    if track:
        track_run(artifact, metrics, model_path)
        log_step("Run logged to MLflow")

    log_step("Training completed successfully")
    return artifact, metrics


# ------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------
def main() -> None:
    run_training()


if __name__ == "__main__":
    main()
