"""Media asset descriptors and the void blocks that embed them."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..core.nodes import Block
from ..core.schema import MEDIAPROXY


@dataclass(slots=True, frozen=True)
class MediaProxy:
    """Describes an asset the host is asked to persist.

    ``path`` is where the host stores the file, ``public_path`` the URL the
    document links to.
    """

    name: str
    path: str
    public_path: str

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Media proxies require a file name")

    @classmethod
    def for_file(cls, name: str, *, media_folder: str = "uploads", public_folder: str = "/uploads") -> MediaProxy:
        """Build a proxy for ``name`` stored under ``media_folder``."""

        filename = posixpath.basename(name.replace("\\", "/"))
        return cls(
            name=filename,
            path=posixpath.join(media_folder, filename),
            public_path=posixpath.join(public_folder, filename),
        )

    @classmethod
    def from_value(cls, value: Any) -> MediaProxy:
        if isinstance(value, MediaProxy):
            return value
        if isinstance(value, Mapping):
            return cls(str(value.get("name", "")), str(value.get("path", "")), str(value.get("public_path", "")))
        raise TypeError("Unsupported media proxy input")

    def to_data(self) -> dict[str, str]:
        return {"src": self.public_path, "alt": self.name}


def mediaproxy_block(proxy: MediaProxy) -> Block:
    """Return the void block embedding ``proxy``."""

    return Block(MEDIAPROXY, (), proxy.to_data(), True)


__all__ = ["MediaProxy", "mediaproxy_block"]
