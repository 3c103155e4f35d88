"""
hco-bundle - OLM bundle builder for the HyperConverged Cluster Operator.

Builds one ClusterServiceVersion out of the descriptors that each
sub-operator (KubeVirt, CDI, network addons, ...) generates for itself:

- **Digest resolution**: every image is pinned to its sha256 digest
- **Descriptor extraction**: run each generator with and without its CRDs
- **Merging**: related images, permissions, deployments and overrides
- **Templating**: plain Kubernetes manifests for non-OLM installs
- **Bundle assembly**: crds/, olm-catalog/ and index-image/ layouts

Quick Start:
    >>> from hcobundle.config import BuildSettings
    >>> from hcobundle.pipeline import run_bundle_build
    >>>
    >>> settings = BuildSettings.for_project(".")
    >>> result = await run_bundle_build(settings)
    >>> result.success
    True
"""

__version__ = "1.3.0"
__license__ = "Apache-2.0"

from hcobundle.errors import BundleError
from hcobundle.pipeline import Pipeline, PipelineBuilder, PipelineContext, PipelineResult, run_bundle_build
from hcobundle.pipeline.frames import Frame
from hcobundle.pipeline.processor import Processor

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Core pipeline
    "Pipeline",
    "PipelineBuilder",
    "PipelineContext",
    "PipelineResult",
    "Processor",
    "Frame",
    "run_bundle_build",
    # Errors
    "BundleError",
]
