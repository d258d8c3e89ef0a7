# landscape/errors.py
from typing import Any, Dict


class LandscapeError(Exception):
    """Base de los errores del servicio; cada uno sabe su status HTTP."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(LandscapeError):
    status_code = 400


class AuthError(LandscapeError):
    status_code = 401


class NotFound(LandscapeError):
    status_code = 404


class UpstreamError(LandscapeError):
    """Generative API or task queue failure."""

    status_code = 502


class PersistenceError(LandscapeError):
    status_code = 500


class ConfigError(LandscapeError):
    """Raised at startup with every configuration problem found."""

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("Configuration errors:\n" + "\n".join(self.problems))
