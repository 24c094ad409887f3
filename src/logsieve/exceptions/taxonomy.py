"""Error codes for logsieve.

Error Code Convention:
    LS1xx - Identity (logset hashing) errors
    LS2xx - Local store process errors
    LS3xx - Extraction errors
    LS4xx - Ingestion errors
    LS5xx - Validation errors
    LS6xx - Analysis / plugin errors
    LS7xx - Configuration errors
    LS8xx - Orchestration errors
    LS9xx - Cleanup errors
"""

from enum import Enum


class ErrorCode(Enum):
    """Structured error codes for observability and debugging."""

    # Identity errors (LS1xx)
    LS100 = "LS100"  # Logset hash could not be computed
    LS101 = "LS101"  # Target does not exist

    # Local store process errors (LS2xx)
    LS200 = "LS200"  # Store process failed to start
    LS201 = "LS201"  # Port owned by another live instance
    LS202 = "LS202"  # Store process did not bind its port in time

    # Extraction errors (LS3xx)
    LS300 = "LS300"  # Archive could not be unpacked
    LS301 = "LS301"  # Remote download failed
    LS302 = "LS302"  # Archive member escapes destination

    # Ingestion errors (LS4xx)
    LS400 = "LS400"  # Store write failed
    LS401 = "LS401"  # Root log directory missing

    # Validation errors (LS5xx)
    LS500 = "LS500"  # Database contains no valid log data

    # Analysis errors (LS6xx)
    LS600 = "LS600"  # Plugin execution failed
    LS601 = "LS601"  # Report publishing failed

    # Configuration errors (LS7xx)
    LS700 = "LS700"  # Invalid configuration value
    LS701 = "LS701"  # Unknown plugin requested

    # Orchestration errors (LS8xx)
    LS800 = "LS800"  # Generic orchestration failure
    LS801 = "LS801"  # Run cancelled between stages
    LS802 = "LS802"  # Run context invariant violated

    # Cleanup errors (LS9xx)
    LS900 = "LS900"  # Database drop failed
    LS901 = "LS901"  # Metadata record removal failed
    LS902 = "LS902"  # Temp directory removal failed
    LS903 = "LS903"  # Local store shutdown failed
