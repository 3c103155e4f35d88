"""
Pytest configuration and fixtures for hco-bundle tests.

Generators and registries are replaced by in-process fakes:

- FakeInspector answers every inspection with a digest derived from the
  reference, so resolution is deterministic.
- FakeRunner prints a small CSV for the component named after the image,
  and appends its CRDs when given the dump-schemas flag.
"""

import hashlib
import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from hcobundle.pipeline import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from hcobundle.descriptors.models import RunMetadata  # noqa: E402
from hcobundle.registry.images import ImageReference  # noqa: E402
from hcobundle.utils.process import CommandResult  # noqa: E402

DUMP_FLAGS = ("--dump-crds", "--dumpCRDs")


def digest_for(reference: str) -> str:
    """The digest FakeInspector reports for a reference."""
    return "sha256:" + hashlib.sha256(str(reference).encode("utf-8")).hexdigest()


def pinned(reference: str) -> str:
    image = ImageReference.parse(reference)
    return str(image.with_digest(digest_for(str(image))))


def component_csv(
    name: str,
    image: str,
    *,
    group: str | None = None,
    plural: str = "widgets",
    kind: str = "Widget",
    service_account: str | None = None,
) -> str:
    """A minimal generator-style CSV with one deployment and one owned CRD."""
    group = group or f"{name}.example.com"
    service_account = service_account or f"{name}-operator"
    return f"""apiVersion: operators.coreos.com/v1alpha1
kind: ClusterServiceVersion
metadata:
  name: {name}.v1.0.0
  namespace: placeholder
spec:
  displayName: {name}
  install:
    strategy: deployment
    spec:
      permissions:
      - serviceAccountName: {service_account}
        rules:
        - apiGroups:
          - ""
          resources:
          - configmaps
          verbs:
          - get
      clusterPermissions:
      - serviceAccountName: {service_account}
        rules:
        - apiGroups:
          - {group}
          resources:
          - "*"
          verbs:
          - "*"
      deployments:
      - name: {name}-operator
        spec:
          replicas: 1
          selector:
            matchLabels:
              name: {name}-operator
          template:
            metadata:
              labels:
                name: {name}-operator
            spec:
              serviceAccountName: {service_account}
              containers:
              - name: {name}-operator
                image: {image}
  customresourcedefinitions:
    owned:
    - name: {plural}.{group}
      version: v1
      kind: {kind}
      displayName: {kind}
"""


def component_crd(group: str, kind: str = "Widget", plural: str | None = None) -> str:
    plural = plural or f"{kind.lower()}s"
    return f"""apiVersion: apiextensions.k8s.io/v1
kind: CustomResourceDefinition
metadata:
  name: {plural}.{group}
spec:
  group: {group}
  names:
    kind: {kind}
    plural: {plural}
  scope: Namespaced
  versions:
  - name: v1
    served: true
    storage: true
"""


class FakeInspector:
    """Registry inspector answering from memory."""

    def __init__(self, digests: dict[str, str | None] | None = None):
        self.digests = digests or {}
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "fake"

    async def inspect(self, image: ImageReference) -> dict:
        reference = str(image)
        self.calls.append(reference)
        digest = self.digests.get(reference, digest_for(reference))
        metadata = {"Name": image.repository}
        if digest is not None:
            metadata["Digest"] = digest
        return metadata


class FakeRunner:
    """
    Generator runner printing synthetic CSVs.

    Args:
        schemas: Component (image name) -> list of (group, kind) it declares;
            one ``<name>.example.com``/``Widget`` CRD when not listed
        returncodes: Component -> exit code to fail with
        outputs: Component -> (base, extended) stdout to print verbatim
    """

    def __init__(
        self,
        schemas: dict[str, list[tuple[str, str]]] | None = None,
        returncodes: dict[str, int] | None = None,
        outputs: dict[str, tuple[str, str]] | None = None,
    ):
        self.schemas = schemas or {}
        self.returncodes = returncodes or {}
        self.outputs = outputs or {}
        self.calls: list[list[str]] = []

    def command(self, entrypoint: str, image: str, args) -> list[str]:
        return ["fake-run", f"--entrypoint={entrypoint}", image, *args]

    async def run(self, entrypoint: str, image: str, args) -> CommandResult:
        command = self.command(entrypoint, image, args)
        self.calls.append(command)

        reference = ImageReference.parse(image)
        name = reference.name
        dump = any(flag in args for flag in DUMP_FLAGS)

        returncode = self.returncodes.get(name, 0)
        if returncode:
            return CommandResult(args=tuple(command), returncode=returncode, stdout="", stderr="boom")

        if name in self.outputs:
            base, extended = self.outputs[name]
            return CommandResult(
                args=tuple(command), returncode=0, stdout=extended if dump else base, stderr=""
            )

        declared = self.schemas.get(name, [(f"{name}.example.com", "Widget")])
        group, kind = declared[0] if declared else (f"{name}.example.com", "Widget")
        stdout = component_csv(name, pinned(image), group=group, kind=kind, plural=f"{kind.lower()}s")
        if dump:
            for crd_group, crd_kind in declared:
                stdout += "---\n" + component_crd(crd_group, crd_kind)
        return CommandResult(args=tuple(command), returncode=0, stdout=stdout, stderr="")


@pytest.fixture
def fake_inspector():
    """Deterministic registry inspector."""
    return FakeInspector()


@pytest.fixture
def fake_runner():
    """Generator runner with one Widget CRD per component."""
    return FakeRunner()


@pytest.fixture
def run_metadata():
    """Run metadata with a fixed creation time."""
    return RunMetadata(
        csv_version="1.3.0",
        replaces_version="1.2.0",
        operator_image=pinned("quay.io/kubevirt/hyperconverged-cluster-operator:1.3.0"),
        created_at="2020-10-23 08:58:25",
        component_versions={"KUBEVIRT_VERSION": "v0.34.0"},
    )
