"""
Destination naming for mirrored images.

Every source reference maps to a single-level repository inside the
operator's namespace, so registries that reject nested repositories
(e.g. Docker Hub) accept the pushed image.
"""

from typing import Iterable, Iterator, Optional, Tuple

DIGEST_MARKER = "@sha256"

# Hosts that mean Docker Hub; targets on the Hub carry no host prefix
DOCKER_HUB_HOSTS = ("docker.io", "index.docker.io", "registry-1.docker.io")


def destination_prefix(namespace: str, server: Optional[str] = None) -> str:
    """Repository prefix mirrored images are pushed under.

    ``server`` may be given as a login URL (``https://registry.example.com/v1/``);
    only its host[:port] part ends up in the image reference.

    >>> destination_prefix("alice", "https://registry.example.com/")
    'registry.example.com/alice'
    """
    if not server:
        return namespace
    host = server.split("://", 1)[-1].split("/", 1)[0]
    if not host or host in DOCKER_HUB_HOSTS:
        return namespace
    return f"{host}/{namespace}"


def clean_source(source: str) -> str:
    """Drop the digest marker so the digest text reads as a tag.

    ``repo/img@sha256:abc`` becomes ``repo/img:abc``.
    """
    if DIGEST_MARKER in source:
        return source.replace(DIGEST_MARKER, "", 1)
    return source


def derive_target(source: str, namespace: str) -> Tuple[str, str]:
    """Return ``(cleaned_source, target)`` for a source image reference.

    >>> derive_target("library/nginx", "alice")
    ('library/nginx', 'alice/library.nginx')
    """
    cleaned = clean_source(source)
    return cleaned, f"{namespace}/{cleaned.replace('/', '.')}"


def iter_mirror_pairs(sources: Iterable[str], namespace: str) -> Iterator[Tuple[str, str]]:
    """Yield ``(cleaned_source, target)`` for each non-empty source, in order."""
    for source in sources:
        if not source:
            continue
        yield derive_target(source, namespace)
