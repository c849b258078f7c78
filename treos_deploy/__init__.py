"""treos-deploy: publish TreOS system images to a content store.

Verifies the kernels, initcpios, disk images and shrinkwrap named by an
issue file, uploads what the store lacks, links the new system record to
its predecessor on the same repository branch and publishes it, signed.
"""

__version__ = "0.2.0"
__description__ = "Publish TreOS system images as signed, linked store records"

from treos_deploy.core.orchestrator import PublishOrchestrator
from treos_deploy.cli.app import app as cli

__all__ = ["PublishOrchestrator", "cli", "__version__"]
