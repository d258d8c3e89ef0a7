import pytest

from landscape import config
from landscape.config import database_uri, engine_options, validate_config
from landscape.errors import ConfigError


def _config(**overrides):
    cfg = {
        "ENV": "development",
        "OPENAI_API_KEY": "sk-test",
        "DATABASE_TYPE": "sqlite",
        "DATABASE_PATH": ":memory:",
        "DATABASE_URL": "",
        "TASK_BACKEND": "celery",
        "API_KEY": "",
        "RATE_LIMIT_WINDOW_SECONDS": 900,
        "RATE_LIMIT_MAX_REQUESTS": 100,
    }
    cfg.update(overrides)
    return cfg


def test_valid_config():
    validate_config(_config())


def test_all_problems_reported_together():
    with pytest.raises(ConfigError) as exc:
        validate_config(_config(
            ENV="production",
            OPENAI_API_KEY="",
            DATABASE_TYPE="mysql",
            TASK_BACKEND="cloud_tasks",
            GCP_PROJECT_ID="",
            CLOUD_TASKS_SERVICE_URL="",
            RATE_LIMIT_WINDOW_SECONDS=0,
        ))
    problems = exc.value.problems
    assert len(problems) == 6
    assert "OPENAI_API_KEY is required" in problems
    assert "Unsupported DATABASE_TYPE: mysql" in problems
    assert "API_KEY is required in production" in problems
    assert exc.value.message.startswith("Configuration errors:")


def test_postgres_requires_url():
    with pytest.raises(ConfigError) as exc:
        validate_config(_config(DATABASE_TYPE="postgresql"))
    assert exc.value.problems == ["DATABASE_URL is required when DATABASE_TYPE=postgresql"]


def test_database_uri():
    assert database_uri(_config()) == "sqlite://"
    url = "postgresql+psycopg2://u:p@db:5432/landscape"
    assert database_uri(_config(DATABASE_TYPE="postgresql", DATABASE_URL=url)) == url
    assert database_uri(_config(DATABASE_PATH="/tmp/x.db")) == "sqlite:////tmp/x.db"


def test_engine_options():
    assert engine_options(_config(DATABASE_PATH="/tmp/x.db")) == {"pool_size": 1, "max_overflow": 0}
    assert engine_options(_config(DATABASE_TYPE="postgresql"))["pool_pre_ping"] is True


def test_testing_config():
    assert config.TestingConfig.TASK_BACKEND == "disabled"
    assert config.TestingConfig.RATELIMIT_ENABLED is False
