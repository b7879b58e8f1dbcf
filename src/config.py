import os

from dotenv import load_dotenv


# =================================================
# Environment
# =================================================
BASE_DIR = os.path.dirname(os.path.dirname(__file__))
ENV_PATH = os.path.join(BASE_DIR, ".env")
load_dotenv(dotenv_path=ENV_PATH)

APP_NAME = os.getenv("APP_NAME", "Stroke Risk API")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))

# Relative paths are resolved against the project root
MODEL_PATH = os.path.join(
    BASE_DIR, os.getenv("MODEL_PATH", os.path.join("models", "stroke_lr_pipeline.pkl"))
)
DATA_PATH = os.path.join(
    BASE_DIR, os.getenv("DATA_PATH", os.path.join("data", "stroke.csv"))
)


# =================================================
# Training / inference
# =================================================
TARGET_COL = "stroke"
TEST_SIZE = float(os.getenv("TEST_SIZE", 0.2))
RANDOM_STATE = int(os.getenv("RANDOM_STATE", 42))
MAX_ITER = int(os.getenv("MAX_ITER", 100))
CV_FOLDS = int(os.getenv("CV_FOLDS", 5))
PREDICTION_THRESHOLD = float(os.getenv("PREDICTION_THRESHOLD", 0.5))


# =================================================
# MLflow (tracking is skipped when the URI is unset)
# =================================================
MLFLOW_TRACKING_URI = os.getenv("MLFLOW_TRACKING_URI")
MLFLOW_EXPERIMENT = os.getenv("MLFLOW_EXPERIMENT", "Stroke Logistic Regression")
