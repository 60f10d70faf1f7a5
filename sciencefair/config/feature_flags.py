"""
Feature Flags Configuration

Centralized feature flag management for the engine.
All feature flags are loaded from environment variables.
"""
import os


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


class FeatureFlags:
    """
    Feature flags for the application.
    
    To add a new feature flag:
    1. Add it here as a class property
    2. Load it from environment variable
    3. Use it in your code
    """
    
    # Results API (rankings, publish, rollback)
    FEATURE_RESULTS_ENGINE: bool = get_bool_env('FEATURE_RESULTS_ENGINE', True)
    
    # Publish/rollback write phase runs inside a single transaction.
    # When disabled every step commits on its own and a failure leaves
    # earlier steps applied.
    FEATURE_ATOMIC_PUBLISH: bool = get_bool_env('FEATURE_ATOMIC_PUBLISH', True)
    
    # Timed-out judging sessions are handed to the category coordinator
    FEATURE_REVIEW_ESCALATION: bool = get_bool_env('FEATURE_REVIEW_ESCALATION', True)
    
    @classmethod
    def get_all_flags(cls) -> dict:
        """Get all feature flags as a dictionary."""
        return {
            key: value
            for key, value in cls.__dict__.items()
            if not key.startswith('_') and isinstance(value, bool)
        }


# Singleton instance for easy importing
feature_flags = FeatureFlags()
