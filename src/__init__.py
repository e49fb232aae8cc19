"""phasekit: versioned phase manifests executed by external AI agents."""

from phasekit.version import __version__

__all__ = ["__version__"]
