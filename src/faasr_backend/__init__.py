"""FaaSr backend.

Small HTTP backend that:
- installs the FaaSr GitHub App and ensures a fork of FaaSr-workflow
- uploads workflow JSON files into the fork
- triggers and reports on the registration workflow
"""

__version__ = "1.0.0"

from faasr_backend.config import BackendSettings

__all__ = ["__version__", "BackendSettings"]
