import dataclasses
import json
import pickle

import numpy as np                           # Array comparisons on model weights
import pytest                                # Pytest framework for testing and assertions
from sklearn.pipeline import Pipeline        # Scikit-learn Pipeline class

from src import config
from src.exceptions import (
    ArtifactLoadFailure,
    ConvergenceFailure,
    RankDeficiency,
    SchemaMismatch,
)
from src.models.pipeline import (
    FittedPipeline,
    fit_pipeline,
    load_artifact,
    save_artifact,
)
from src.models.train import run_training


def test_training_pipeline_runs(fitted_artifact):
    """Ensure model pipeline trains without errors"""
    assert isinstance(fitted_artifact, FittedPipeline)
    assert isinstance(fitted_artifact.pipeline, Pipeline)
    assert fitted_artifact.n_train == 320
    assert 0.0 < fitted_artifact.prevalence < 1.0


def test_artifact_is_immutable(fitted_artifact):
    with pytest.raises(dataclasses.FrozenInstanceError):
        fitted_artifact.n_train = 0

    weights = fitted_artifact.coefficients
    weights[:] = 0.0                         # Mutating the copy leaves the model alone
    assert np.any(fitted_artifact.coefficients != 0.0)


def test_artifact_logical_schema(fitted_artifact):
    exported = fitted_artifact.to_dict()

    assert len(exported["coefficients"]) == len(fitted_artifact.feature_names)
    assert exported["encoding"]["work_type"] == {
        "reference": "Government job",
        "encoded": ["Private job", "Self-employed"],
    }
    assert set(exported["scaling"]) == {"age", "avg_glucose_level", "bmi"}
    assert exported["scaling"]["age"]["std"] > 0
    json.dumps(exported)                     # Portable, JSON-compatible


def test_fit_time_domains_are_recorded(fitted_artifact):
    schema = fitted_artifact.schema
    assert schema.column("smoking_status").levels == (
        "Currently smokes",
        "Formerly smoked",
        "Never smoked",
    )
    assert schema.column("age").levels is None


def test_constant_numeric_column_reported(split):
    X_train, _, y_train, _ = split
    X = X_train.copy()
    X["bmi"] = 30.0                          # Zero variance

    with pytest.raises(RankDeficiency) as exc_info:
        fit_pipeline(X, y_train)

    assert "bmi" in exc_info.value.features


def test_duplicated_indicator_reported(split):
    X_train, _, y_train, _ = split
    X = X_train.copy()
    X["ever_married"] = X["hypertension"]     # Identical No/Yes dummies

    with pytest.raises(RankDeficiency) as exc_info:
        fit_pipeline(X, y_train)

    assert exc_info.value.features == ["ever_married_Yes"]


def test_single_level_categorical_reported(split):
    X_train, _, y_train, _ = split
    X = X_train.copy()
    X["Residence_type"] = "Urban"                 # Only one level left

    with pytest.raises(RankDeficiency) as exc_info:
        fit_pipeline(X, y_train)

    assert exc_info.value.features == ["Residence_type"]


def test_convergence_failure_is_fatal(split):
    X_train, _, y_train, _ = split

    with pytest.raises(ConvergenceFailure):
        fit_pipeline(X_train, y_train, max_iter=1)  # One Newton step cannot converge


def test_single_outcome_class_rejected(split):
    X_train, _, y_train, _ = split

    with pytest.raises(SchemaMismatch) as exc_info:
        fit_pipeline(X_train, y_train * 0)

    assert exc_info.value.column == "stroke"


def test_save_and_load_artifact(tmp_path, fitted_artifact):
    path = tmp_path / "models" / "pipeline.pkl"
    save_artifact(fitted_artifact, str(path))

    loaded = load_artifact(str(path))

    assert loaded.schema == fitted_artifact.schema
    np.testing.assert_array_equal(loaded.coefficients, fitted_artifact.coefficients)
    assert loaded.intercept == fitted_artifact.intercept


def test_load_missing_artifact(tmp_path):
    with pytest.raises(ArtifactLoadFailure):
        load_artifact(str(tmp_path / "absent.pkl"))


def test_load_corrupt_artifact(tmp_path):
    path = tmp_path / "corrupt.pkl"
    path.write_bytes(b"not a pickle")     # Garbage bytes on disk

    with pytest.raises(ArtifactLoadFailure):
        load_artifact(str(path))


def test_load_foreign_object(tmp_path):
    path = tmp_path / "foreign.pkl"
    with open(path, "wb") as f:
        pickle.dump({"weights": [1, 2, 3]}, f)

    with pytest.raises(ArtifactLoadFailure):
        load_artifact(str(path))


def test_run_training_end_to_end(tmp_path, stroke_df):
    data_path = tmp_path / "stroke.csv"
    model_path = tmp_path / "stroke_lr_pipeline.pkl"
    stroke_df.to_csv(data_path, index=False)

    artifact, metrics = run_training(str(data_path), str(model_path), track=False)

    assert model_path.exists()                # Artifact persisted after training
    assert load_artifact(str(model_path)).schema == artifact.schema
    for key in ("accuracy", "precision", "recall", "f1_score", "roc_auc"):
        assert 0.0 <= metrics[key] <= 1.0


def test_run_training_aborts_without_saving(tmp_path, stroke_df, monkeypatch):
    data_path = tmp_path / "stroke.csv"
    model_path = tmp_path / "stroke_lr_pipeline.pkl"
    stroke_df.to_csv(data_path, index=False)
    monkeypatch.setattr(config, "MAX_ITER", 1)

    with pytest.raises(ConvergenceFailure):
        run_training(str(data_path), str(model_path), track=False)

    assert not model_path.exists()            # Nothing persisted on failure


def test_run_training_reads_config_at_call_time(tmp_path, stroke_df, monkeypatch):
    data_path = tmp_path / "stroke.csv"
    model_path = tmp_path / "configured.pkl"
    stroke_df.to_csv(data_path, index=False)
    monkeypatch.setattr(config, "DATA_PATH", str(data_path))    # Changed after import
    monkeypatch.setattr(config, "MODEL_PATH", str(model_path))
    monkeypatch.setattr(config, "MLFLOW_TRACKING_URI", None)

    run_training()

    assert model_path.exists()
