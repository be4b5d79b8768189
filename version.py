"""Version and build information"""
import os
import platform
from prometheus_client import CollectorRegistry, Info


__version__ = "1.0.0"

# Set at image build time, e.g. from `git rev-parse --short HEAD`
REVISION = os.getenv("EMQ_EXPORTER_REVISION", "unknown")


def version_info() -> str:
    return f"Version {__version__} (git-{REVISION})"


def user_agent() -> str:
    return f"emq_exporter/{__version__}"


def register_build_info(registry: CollectorRegistry) -> Info:
    """Expose ``emq_exporter_build_info`` on the given registry"""
    build_info = Info(
        "exporter_build",
        "A metric with a constant '1' value labeled by version and revision from which emq_exporter was built.",
        namespace="emq",
        registry=registry,
    )
    build_info.info({
        "version": __version__,
        "revision": REVISION,
        "pythonversion": platform.python_version(),
    })
    return build_info
