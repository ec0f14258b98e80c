"""
Shell scripts that restore mirrored images under their original names.

Each artifact is built from the ordered list of transfer records by one
block formatter, so all artifacts share the same layout: one block of
commands per record, blocks separated by a blank line.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from utils.result_ledger import TransferRecord

PULL_SCRIPT = "pull"
CUSTOM_REGISTRY_SCRIPT = "custom-registry"
NERDCTL_SCRIPT = "nerdctl"

BlockFormatter = Callable[[TransferRecord], List[str]]


@dataclass
class ScriptArtifact:
    """A named script made of one command block per transfer record."""

    name: str
    blocks: List[List[str]] = field(default_factory=list)

    @property
    def lines(self) -> List[str]:
        return [line for block in self.blocks for line in block]

    @property
    def text(self) -> str:
        return "\n".join("".join(f"{line}\n" for line in block) for block in self.blocks)


def build_artifact(name: str, records: Sequence[TransferRecord], formatter: BlockFormatter) -> ScriptArtifact:
    return ScriptArtifact(name=name, blocks=[formatter(record) for record in records])


def pull_block(record: TransferRecord) -> List[str]:
    return [
        f"docker pull {record.target}",
        f"docker tag {record.target} {record.source}",
    ]


def custom_registry_block(custom_registry: str) -> BlockFormatter:
    def formatter(record: TransferRecord) -> List[str]:
        republished = f"{custom_registry}/{record.source}"
        return [
            f"docker tag {record.target} {republished}",
            f"docker push {republished}",
        ]

    return formatter


def containerd_block(tool: str, namespace: str, custom_registry: Optional[str] = None) -> BlockFormatter:
    """Pull and retag through a namespace-aware containerd CLI.

    With a custom registry the image is fetched from ``custom_registry/source``,
    otherwise from the mirrored target.
    """

    def formatter(record: TransferRecord) -> List[str]:
        origin = f"{custom_registry}/{record.source}" if custom_registry else record.target
        return [
            f"{tool} -n {namespace} pull {origin}",
            f"{tool} -n {namespace} tag {origin} {record.source}",
        ]

    return formatter


def render_scripts(
    records: Sequence[TransferRecord],
    custom_registry: Optional[str] = None,
    tool: str = "nerdctl",
    containerd_namespace: str = "k8s.io",
) -> List[ScriptArtifact]:
    """Render every artifact for ``records``.

    The pull and nerdctl artifacts are always produced; the custom-registry
    artifact only when ``custom_registry`` is set.
    """
    records = list(records)
    artifacts = [build_artifact(PULL_SCRIPT, records, pull_block)]
    if custom_registry:
        artifacts.append(build_artifact(CUSTOM_REGISTRY_SCRIPT, records, custom_registry_block(custom_registry)))
    artifacts.append(
        build_artifact(NERDCTL_SCRIPT, records, containerd_block(tool, containerd_namespace, custom_registry))
    )
    return artifacts
