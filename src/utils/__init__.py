"""Utility modules shared by the engine and the LLM layer."""

from .json_extractor import JSONExtractionError, extract_json
from .metrics import log_metric, timed_operation

__all__ = ["extract_json", "JSONExtractionError", "timed_operation", "log_metric"]
