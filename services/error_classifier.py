# services/error_classifier.py
"""
Error classification for failed samples.

A failure is keyed as "{code}: {message}". The code defaults to "000" and the
message falls back to the standard reason phrase for the code, then to a
generic message. The same key is used for the global tally and for the
per-bucket error maps of the time series.
"""

from typing import Dict, List, Optional, Tuple

DEFAULT_ERROR_CODE = "000"
DEFAULT_ERROR_MESSAGE = "Unspecified error"

HTTP_ERROR_CODES = {
    "400": "Bad Request",
    "401": "Unauthorized",
    "403": "Forbidden",
    "404": "Not Found",
    "429": "Too Many Requests",
    "500": "Internal Server Error",
    "502": "Bad Gateway",
    "503": "Service Unavailable",
    "504": "Gateway Timeout",
}


def error_key(code: str, message: str) -> str:
    return f"{code}: {message}"


class ErrorClassifier:
    def __init__(self, fallback_message: str = DEFAULT_ERROR_MESSAGE):
        self.fallback_message = fallback_message
        # insertion order is first-seen order; finalize() relies on it for ties
        self.counts: Dict[Tuple[str, str], int] = {}

    def classify(self, code: Optional[str], message: Optional[str]) -> Tuple[str, str]:
        code = code or DEFAULT_ERROR_CODE
        message = message or HTTP_ERROR_CODES.get(code) or self.fallback_message
        return code, message

    def record(self, code: Optional[str], message: Optional[str]) -> str:
        """Tally one failure and return its error key."""
        classified = self.classify(code, message)
        self.counts[classified] = self.counts.get(classified, 0) + 1
        return error_key(*classified)

    def finalize(self) -> List[Dict[str, object]]:
        """Error breakdown sorted by count, descending (stable on ties)."""
        details = [
            {"code": code, "message": message, "count": count}
            for (code, message), count in self.counts.items()
        ]
        return sorted(details, key=lambda d: d["count"], reverse=True)
