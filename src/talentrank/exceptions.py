"""
Exception classes for the talentrank matching engine.

Fatal errors (``UpstreamUnavailable``, ``InvalidInput``) are raised to the
caller. ``RetrievalDegraded`` and ``PairScoringFailed`` are recorded on the
run report instead of being raised, so callers and tests can assert on them.
"""
from typing import Any, Dict, List, Optional


class MatchingError(Exception):
    """Base exception for the matching engine"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class RetrievalDegraded(MatchingError):
    """A retrieval stage fell back to neutral scoring"""

    def __init__(
        self,
        message: str,
        stage: str,
        affected_ids: Optional[List[str]] = None,
        neutral_score: float = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        details['stage'] = stage
        details['affected_count'] = len(affected_ids or [])
        if neutral_score is not None:
            details['neutral_score'] = neutral_score
        self.stage = stage
        self.affected_ids = list(affected_ids or [])
        super().__init__(message, error_code="RETRIEVAL_DEGRADED", details=details, **kwargs)


class PairScoringFailed(MatchingError):
    """Scoring a single candidate/job pair raised"""

    def __init__(self, message: str, candidate_id: str, job_id: str, **kwargs):
        details = kwargs.pop('details', {})
        details['candidate_id'] = candidate_id
        details['job_id'] = job_id
        self.candidate_id = candidate_id
        self.job_id = job_id
        super().__init__(message, error_code="PAIR_SCORING_FAILED", details=details, **kwargs)


class UpstreamUnavailable(MatchingError):
    """A corpus accessor or the persistence layer is unreachable after retries"""

    def __init__(self, message: str, operation: str = None, attempts: int = None, **kwargs):
        details = kwargs.pop('details', {})
        if operation:
            details['operation'] = operation
        if attempts is not None:
            details['attempts'] = attempts
        self.operation = operation
        super().__init__(message, error_code="UPSTREAM_UNAVAILABLE", details=details, **kwargs)


class InvalidInput(MatchingError):
    """Rejected before any retrieval begins"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)
        self.field = field
        super().__init__(message, error_code="INVALID_INPUT", details=details, **kwargs)


class EntityNotFound(InvalidInput):
    """The query entity does not exist in the store"""

    def __init__(self, message: str, entity_id: str = None, **kwargs):
        super().__init__(message, field="entity_id", value=entity_id, **kwargs)
        self.error_code = "ENTITY_NOT_FOUND"


class EmbeddingError(MatchingError):
    """Raised when the embedding provider cannot embed a text"""

    def __init__(self, message: str, model_name: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if model_name:
            details['model_name'] = model_name
        super().__init__(message, error_code="EMBEDDING_ERROR", details=details, **kwargs)


class ExtractionError(MatchingError):
    """Raised by the document extraction workflow that produces candidate profiles"""

    def __init__(self, message: str, document_id: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if document_id:
            details['document_id'] = document_id
        super().__init__(message, error_code="EXTRACTION_ERROR", details=details, **kwargs)
