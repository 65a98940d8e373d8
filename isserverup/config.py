"""
Central configuration module for the server availability checker.
Handles environment variables and fixed request settings.
"""

import os
from typing import Tuple, List
from dataclasses import dataclass


VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_LOG_FORMATS = ("text", "json")


@dataclass
class CheckConfig:
    """Settings applied to every HTTP check. Not configurable at runtime."""
    
    # Matches curl's default connect timeout
    timeout_seconds: float = 300.0
    
    user_agent: str = "IsServerUp/1.0"
    
    # Status code a target must return to pass
    expected_status: int = 200


@dataclass
class LogConfig:
    """Logging configuration."""
    
    level: str = os.getenv("LOG_LEVEL", "WARNING")
    format: str = os.getenv("LOG_FORMAT", "text")  # json or text
    
    # Attach url/status_code/elapsed_ms to per-check log records
    log_checks: bool = os.getenv("LOG_CHECKS", "true").lower() == "true"


# Global configuration instances
check_config = CheckConfig()
log_config = LogConfig()


def validate_config() -> Tuple[bool, List[str]]:
    """
    Validate configuration and return status with any error messages.
    
    Returns:
        Tuple: (is_valid, error_messages)
    """
    errors = []
    
    if log_config.level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}, got {log_config.level!r}"
        )
    
    if log_config.format.lower() not in VALID_LOG_FORMATS:
        errors.append(
            f"LOG_FORMAT must be one of {', '.join(VALID_LOG_FORMATS)}, got {log_config.format!r}"
        )
    
    if check_config.timeout_seconds <= 0:
        errors.append(f"timeout must be positive, got {check_config.timeout_seconds}")
    
    return len(errors) == 0, errors


def get_config_summary() -> dict:
    """
    Get a summary of current configuration (safe for logging).
    
    Returns:
        dict: Configuration summary
    """
    return {
        "timeout_seconds": check_config.timeout_seconds,
        "user_agent": check_config.user_agent,
        "expected_status": check_config.expected_status,
        "log_level": log_config.level,
        "log_format": log_config.format,
    }
