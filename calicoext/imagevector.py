"""Reading an image vector and finding the calico images in it."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

import yaml

from calicoext.constants import (
    CALICO_CLUSTER_PROPORTIONAL_AUTOSCALER_IMAGE_NAME,
    CLUSTER_PROPORTIONAL_VERTICAL_AUTOSCALER_IMAGE_NAME,
    CNI_IMAGE_NAME,
    KUBE_CONTROLLERS_IMAGE_NAME,
    NODE_IMAGE_NAME,
    POD_TO_DAEMON_FLEX_VOLUME_DRIVER_IMAGE_NAME,
    TYPHA_IMAGE_NAME,
)


class ImageNotFoundError(LookupError):
    """Raised when an image vector has no entry for a requested image."""


@dataclass(frozen=True)
class ImageSource:
    """One entry of an image vector."""

    name: str
    repository: str
    tag: str | None = None
    source_repository: str = ""
    runtime_version: str | None = None
    target_version: str | None = None

    def __str__(self) -> str:
        if self.tag is None:
            return self.repository
        delimiter = "@" if self.tag.startswith("sha256:") else ":"
        return f"{self.repository}{delimiter}{self.tag}"


def _optional_string(entry: Mapping, key: str, index: int) -> str | None:
    value = entry.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"images[{index}].{key}: expected a string")
    return value


def _parse_source(entry: Any, index: int) -> ImageSource:
    if not isinstance(entry, Mapping):
        raise ValueError(f"images[{index}]: expected an object")
    name = _optional_string(entry, "name", index)
    if not name:
        raise ValueError(f"images[{index}].name: must not be empty")
    repository = _optional_string(entry, "repository", index)
    if not repository:
        raise ValueError(f"images[{index}].repository: must not be empty")
    return ImageSource(
        name=name,
        repository=repository,
        tag=_optional_string(entry, "tag", index),
        source_repository=_optional_string(entry, "sourceRepository", index) or "",
        runtime_version=_optional_string(entry, "runtimeVersion", index),
        target_version=_optional_string(entry, "targetVersion", index),
    )


class ImageVector:
    """An ordered collection of image sources."""

    def __init__(self, sources: Iterable[ImageSource] = ()) -> None:
        self._sources = tuple(sources)

    def __iter__(self) -> Iterator[ImageSource]:
        return iter(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    @classmethod
    def read(cls, text: str) -> ImageVector:
        """Parse an image vector document with a top-level ``images`` list."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"could not parse image vector: {exc}") from exc
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("image vector must be an object")
        images = data.get("images")
        if images is None:
            return cls()
        if not isinstance(images, list):
            raise ValueError("images: expected a list")
        return cls(_parse_source(entry, index) for index, entry in enumerate(images))

    def find_image(self, name: str) -> str:
        """Return the image reference of the first entry named ``name``."""
        for source in self._sources:
            if source.name == name:
                return str(source)
        raise ImageNotFoundError(f'could not find image "{name}"')


_CALICO_IMAGE_NAMES = (
    CNI_IMAGE_NAME,
    TYPHA_IMAGE_NAME,
    KUBE_CONTROLLERS_IMAGE_NAME,
    NODE_IMAGE_NAME,
    POD_TO_DAEMON_FLEX_VOLUME_DRIVER_IMAGE_NAME,
    CALICO_CLUSTER_PROPORTIONAL_AUTOSCALER_IMAGE_NAME,
    CLUSTER_PROPORTIONAL_VERTICAL_AUTOSCALER_IMAGE_NAME,
)


def calico_images(vector: ImageVector) -> dict[str, str]:
    """Map each calico image name to its reference in ``vector``."""
    return {name: vector.find_image(name) for name in _CALICO_IMAGE_NAMES}