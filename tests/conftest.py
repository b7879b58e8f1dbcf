import numpy as np                           # Random generator for synthetic records
import pandas as pd                          # DataFrame construction
import pytest                                # Fixtures

from src.models.model_utils import split_data       # Stratified split under test elsewhere
from src.models.pipeline import fit_pipeline        # Fits the artifact shared by the suite


LEVELS = {                                   # Categorical domains of the curated stroke dataset
    "gender": ["Female", "Male"],
    "hypertension": ["No", "Yes"],
    "heart_disease": ["No", "Yes"],
    "ever_married": ["No", "Yes"],
    "work_type": ["Government job", "Private job", "Self-employed"],
    "Residence_type": ["Rural", "Urban"],
    "smoking_status": ["Currently smokes", "Formerly smoked", "Never smoked"],
}


def make_stroke_frame(n: int = 400, seed: int = 7) -> pd.DataFrame:
    """Synthetic stroke records; the outcome follows a known logistic model."""
    rng = np.random.default_rng(seed)

    df = pd.DataFrame({
        "gender": rng.choice(LEVELS["gender"], n),
        "age": rng.uniform(40, 100, n).round(0),
        "hypertension": rng.choice(LEVELS["hypertension"], n, p=[0.7, 0.3]),
        "heart_disease": rng.choice(LEVELS["heart_disease"], n, p=[0.8, 0.2]),
        "ever_married": rng.choice(LEVELS["ever_married"], n, p=[0.3, 0.7]),
        "work_type": rng.choice(LEVELS["work_type"], n),
        "Residence_type": rng.choice(LEVELS["Residence_type"], n),
        "avg_glucose_level": rng.uniform(55, 300, n).round(2),
        "bmi": rng.uniform(15, 60, n).round(1),
        "smoking_status": rng.choice(LEVELS["smoking_status"], n),
    })

    logit = (
        -3.0
        + 0.05 * (df["age"] - 60)
        + 0.01 * (df["avg_glucose_level"] - 120)
        + 0.9 * (df["hypertension"] == "Yes")
        + 0.7 * (df["heart_disease"] == "Yes")
    )
    prob = 1.0 / (1.0 + np.exp(-logit.to_numpy(dtype=float)))
    df["stroke"] = (rng.uniform(0, 1, n) < prob).astype(int)
    return df


@pytest.fixture(scope="session")
def stroke_df() -> pd.DataFrame:
    return make_stroke_frame()


@pytest.fixture(scope="session")
def split(stroke_df):
    return split_data(stroke_df)             # X_train, X_test, y_train, y_test


@pytest.fixture(scope="session")
def fitted_artifact(split):
    X_train, _, y_train, _ = split
    return fit_pipeline(X_train, y_train)


@pytest.fixture
def valid_request() -> dict:
    return {                                 # Known feature row, values arrive as strings
        "gender": "Male",
        "age": "67",
        "hypertension": "No",
        "heart_disease": "Yes",
        "ever_married": "Yes",
        "work_type": "Private job",
        "Residence_type": "Urban",
        "avg_glucose_level": "228.69",
        "bmi": "36.6",
        "smoking_status": "Formerly smoked",
    }
