import time
from typing import Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import Response, JSONResponse
from prometheus_client import Counter, Histogram, generate_latest

from src import config
from src.api.schemas import ErrorResponse, PredictionResponse
from src.exceptions import ArtifactLoadFailure, SchemaMismatch
from src.logging_config import get_logger
from src.models.inference import build_request_model, check_threshold, predict
from src.models.pipeline import FittedPipeline, load_artifact


logger = get_logger(config.APP_NAME)


# =================================================
# Prometheus metrics
# =================================================
REQUEST_COUNT = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "api_request_latency_seconds",
    "API request latency",
    ["endpoint"],
)

PREDICTIONS_TOTAL = Counter(
    "model_predictions_total",
    "Total number of predictions",
)

PREDICTION_ERRORS_TOTAL = Counter(
    "model_prediction_errors_total",
    "Total prediction errors",
)

SCHEMA_REJECTIONS_TOTAL = Counter(
    "model_schema_rejections_total",
    "Requests rejected by schema validation",
    ["column"],
)

PREDICTION_LATENCY = Histogram(
    "model_prediction_latency_seconds",
    "Prediction latency",
)


# =================================================
# FastAPI app
# =================================================
app = FastAPI(title=config.APP_NAME)


# =================================================
# Global artifact (loaded once, read-only afterwards)
# =================================================
artifact: Optional[FittedPipeline] = None


def install_artifact(new_artifact: FittedPipeline) -> None:
    global artifact

    check_threshold(config.PREDICTION_THRESHOLD)
    request_model = build_request_model(new_artifact.schema)
    artifact = new_artifact

    logger.info(
        "Serving pipeline fitted at %s with fields %s",
        new_artifact.fitted_at,
        list(request_model.model_fields),
    )


# =================================================
# Startup: load artifact (fatal on failure)
# =================================================
@app.on_event("startup")
def load_model():
    install_artifact(load_artifact(config.MODEL_PATH))


# =================================================
# Middleware: logging + metrics
# =================================================
@app.middleware("http")
async def log_and_metrics(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    REQUEST_COUNT.labels(
        method=request.method,
        endpoint=request.url.path,
        status=str(response.status_code),
    ).inc()

    REQUEST_LATENCY.labels(
        endpoint=request.url.path
    ).observe(duration)

    logger.info(
        "%s %s status=%s latency=%.4fs",
        request.method,
        request.url.path,
        response.status_code,
        duration,
    )

    return response


def _require_artifact() -> FittedPipeline:
    current = artifact
    if current is None:
        PREDICTION_ERRORS_TOTAL.inc()
        raise HTTPException(
            status_code=503,
            detail="model_not_loaded",
        )
    return current


# =================================================
# Health check
# =================================================
@app.get("/")
def health():
    return {"status": "ok", "model_loaded": artifact is not None}


# =================================================
# Prediction endpoint
# =================================================
@app.get("/predict/values", response_model=PredictionResponse)
async def predict_values(request: Request):
    start_time = time.time()
    current = _require_artifact()

    try:
        result = predict(
            current,
            request.query_params,
            threshold=config.PREDICTION_THRESHOLD,
        )
    except SchemaMismatch as exc:
        PREDICTION_ERRORS_TOTAL.inc()
        SCHEMA_REJECTIONS_TOTAL.labels(column=exc.column).inc()
        logger.info("Request rejected: %s", exc)
        body = ErrorResponse(
            error="schema_mismatch",
            column=exc.column,
            detail=exc.detail,
            errors=exc.errors,
        )
        return JSONResponse(status_code=422, content=body.model_dump())
    except Exception:
        PREDICTION_ERRORS_TOTAL.inc()
        logger.exception("Prediction failed")
        raise HTTPException(
            status_code=500,
            detail="prediction_failed",
        )

    PREDICTIONS_TOTAL.inc()
    PREDICTION_LATENCY.observe(time.time() - start_time)

    logger.info(
        "prediction class=%d prob_1=%.4f",
        result.predicted_class,
        result.prob_1,
    )

    return PredictionResponse(**result.to_dict(), message=result.message())


# =================================================
# Request schema (what a harmonized dataset must match)
# =================================================
@app.get("/schema")
def request_schema():
    current = _require_artifact()
    return {
        "outcome": current.schema.outcome,
        "fields": [col.model_dump() for col in current.schema.columns],
        "threshold": config.PREDICTION_THRESHOLD,
        "fitted_at": current.fitted_at,
    }


# =================================================
# Explicit reload; the previous artifact stays active on failure
# =================================================
@app.post("/reload")
def reload_model():
    try:
        new_artifact = load_artifact(config.MODEL_PATH)
    except ArtifactLoadFailure as exc:
        logger.error("Reload failed: %s", exc)
        body = ErrorResponse(error="artifact_load_failed", detail=str(exc))
        return JSONResponse(status_code=500, content=body.model_dump())

    install_artifact(new_artifact)
    return {"status": "reloaded", "fitted_at": new_artifact.fitted_at}


# =================================================
# Metrics endpoint
# =================================================
@app.get("/metrics")
def metrics():
    return Response(
        generate_latest(),
        media_type="text/plain",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.HOST, port=config.PORT)
