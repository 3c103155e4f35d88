"""KubeVirt (virt-operator) descriptor builder."""
from __future__ import annotations

from .base import ComponentBuilder, RecordingResolver

VIRT_COMPONENTS = ("api", "controller", "handler", "launcher")


class KubeVirtBuilder(ComponentBuilder):
    """
    virt-operator's generator takes the digests of the images it deploys.

    The virt-api, virt-controller, virt-handler and virt-launcher images are
    siblings of virt-operator: same registry prefix, same tag.
    """

    dump_schemas_flag = "--dumpCRDs"

    @property
    def name(self) -> str:
        return "kubevirt"

    async def generator_args(self, resolver: RecordingResolver) -> list[str]:
        operator = await resolver.resolve(self.image)
        shas = {}
        for component in VIRT_COMPONENTS:
            resolved = await resolver.resolve(self.image.sibling(f"virt-{component}"))
            shas[component] = resolved.digest

        return [
            f"--namespace={self.options.namespace}",
            f"--csvVersion={self.options.csv_version}",
            f"--operatorImageVersion={operator.digest}",
            f"--dockerPrefix={self.image.prefix}",
            f"--kubeVirtVersion={self.version}",
            f"--apiSha={shas['api']}",
            f"--controllerSha={shas['controller']}",
            f"--handlerSha={shas['handler']}",
            f"--launcherSha={shas['launcher']}",
        ]
