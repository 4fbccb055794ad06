from .apply import ApplyClient, ApplyResult
from .blueprint import BlueprintValidation, validate_blueprint
from .errors import CollaboratorError
from .generation import CodeGenerationClient
from .review import ReviewClient, ReviewIssue, ReviewResult, review_from_dict

__all__ = [
    "ApplyClient",
    "ApplyResult",
    "BlueprintValidation",
    "validate_blueprint",
    "CollaboratorError",
    "CodeGenerationClient",
    "ReviewClient",
    "ReviewIssue",
    "ReviewResult",
    "review_from_dict",
]
