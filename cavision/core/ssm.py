"""
AWS Systems Manager Parameter Store loader.

Runs only in deployed environments. Parameter Store values are injected into
os.environ so the pydantic Settings class can read them unchanged.
"""

import logging
import os

logger = logging.getLogger(__name__)

# SSM parameter name -> environment variable name
_PARAM_MAP: dict[str, str] = {
    "AI_DB_URL": "DB_URL",
    "AI_API_KEY": "API_KEY",
    "GEMINI_API_KEY": "GEMINI_API_KEY",
    "GEMINI_MODEL": "GEMINI_MODEL",
    "GEMINI_TEMPERATURE": "GEMINI_TEMPERATURE",
    "UPLOAD_MAX_BYTES": "UPLOAD_MAX_BYTES",
    "TRANSCRIPT_MAX_CHARS": "TRANSCRIPT_MAX_CHARS",
    "ENABLE_QUIZ_CLEANUP": "ENABLE_QUIZ_CLEANUP",
    "QUIZ_CLEANUP_CRON": "QUIZ_CLEANUP_CRON",
    "QUIZ_CLEANUP_TZ": "QUIZ_CLEANUP_TZ",
    "QUIZ_RETENTION_HOURS": "QUIZ_RETENTION_HOURS",
}


def load_ssm_parameters() -> None:
    """Read Parameter Store values into os.environ.

    Only runs when USE_PARAMETER_STORE is "true". The prefix is derived from
    APP_ENV (defaults to "dev").
    """
    if os.getenv("USE_PARAMETER_STORE", "").lower() != "true":
        logger.info("USE_PARAMETER_STORE is not set; skipping SSM loading")
        return

    try:
        import boto3
    except ImportError:
        logger.warning("boto3 is not installed; skipping SSM loading")
        return

    env = os.getenv("APP_ENV", "dev")
    prefix = f"/cavision/{env}"
    client = boto3.client("ssm", region_name=os.getenv("AWS_REGION", "ap-south-1"))

    logger.info("Loading parameters from SSM prefix=%s", prefix)

    loaded = 0
    for ssm_key, env_key in _PARAM_MAP.items():
        name = f"{prefix}/{ssm_key}"
        try:
            resp = client.get_parameter(Name=name, WithDecryption=True)
            os.environ[env_key] = resp["Parameter"]["Value"]
            loaded += 1
        except client.exceptions.ParameterNotFound:
            logger.debug("SSM parameter not found: %s (skipped)", name)
        except Exception:
            logger.warning("Failed to get SSM parameter: %s", name, exc_info=True)

    logger.info("Loaded %d/%d parameters from SSM", loaded, len(_PARAM_MAP))
