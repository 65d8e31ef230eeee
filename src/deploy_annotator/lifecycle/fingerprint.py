"""Version fingerprints identifying a single rollout."""

from __future__ import annotations

from collections.abc import Iterable

from deploy_annotator.contracts.models import ChildController, WorkloadSnapshot

DEFAULT_TAG = "latest"
SHORT_DIGEST_LENGTH = 7


def extract_image_tag(image_ref: str) -> str:
    """Return a human-friendly version tag from an image reference.

    Digest references yield the first seven characters of the digest, tagged
    references yield the tag. A colon before the last slash belongs to a
    registry port and is not a tag separator.
    """
    if "@" in image_ref:
        digest = image_ref.rsplit("@", 1)[1]
        _, sep, hexdigest = digest.partition(":")
        if sep and len(hexdigest) >= SHORT_DIGEST_LENGTH:
            return hexdigest[:SHORT_DIGEST_LENGTH]
        return digest

    last_slash = image_ref.rfind("/")
    last_colon = image_ref.rfind(":")
    if last_colon != -1 and last_colon > last_slash:
        return image_ref[last_colon + 1 :]
    return DEFAULT_TAG


def latest_owned_child(
    owner_uid: str, children: Iterable[ChildController]
) -> ChildController | None:
    """Pick the most recently created child controlled by ``owner_uid``."""
    current: ChildController | None = None
    for child in children:
        if not owner_uid or child.owner_uid != owner_uid:
            continue
        if current is None or child.created_at > current.created_at:
            current = child
    return current


def compute_version(
    snapshot: WorkloadSnapshot, image_tag: str, child: ChildController | None = None
) -> str:
    """Combine the child's template hash (or the generation) with the image tag.

    The template hash is stable across metadata-only writes to the workload, so
    annotating the workload itself never changes its fingerprint.
    """
    if child is not None and child.template_hash:
        return f"hash-{child.template_hash}-img-{image_tag}"
    return f"gen-{snapshot.generation}-img-{image_tag}"
