from typing import List, Optional                # Typing helpers for list/optional fields

from pydantic import BaseModel                  # BaseModel provides data validation and serialization


class PredictionResponse(BaseModel):            # Response schema returned after prediction
    predicted_class: int                        # 0 = no stroke, 1 = stroke
    prob_0: float                               # Probability of class 0, rounded for display
    prob_1: float                               # Probability of class 1, rounded for display
    threshold: float                            # Decision threshold applied to prob_1
    message: str                                # Human-readable summary of the prediction


class FieldError(BaseModel):                    # One offending request field
    column: str
    detail: str


class ErrorResponse(BaseModel):                 # Structured error body for rejected requests
    error: str                                  # Machine-readable error code
    column: Optional[str] = None                # First offending column, if any
    detail: str
    errors: List[FieldError] = []               # Every problem found in the request
