"""Timeline normalization: map referenced media to FFmpeg inputs.

Walks the visible layers in paint order and assigns each distinct
file-backed media item the next ``-i`` slot. Text media is tracked with
``TEXT_INPUT_INDEX`` because drawtext needs no input file.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Optional

from storyreel.exceptions import InputError
from storyreel.schemas.timeline import Layer, MediaItem

logger = logging.getLogger(__name__)

TEXT_INPUT_INDEX = -1
BLOB_PREFIX = "blob:"
_DRIVE_PATH = re.compile(r"^[A-Za-z]:[\\/]")


@dataclass
class NormalizedTimeline:
    """Media actually used by the render and its input index assignment."""

    used_media: list[MediaItem] = field(default_factory=list)
    input_index: dict[str, int] = field(default_factory=dict)
    input_files: list[str] = field(default_factory=list)
    media_by_id: dict[str, MediaItem] = field(default_factory=dict)

    def media_for(self, media_id: str) -> Optional[MediaItem]:
        return self.media_by_id.get(media_id)

    def index_for(self, media_id: str) -> Optional[int]:
        return self.input_index.get(media_id)


def resolve_media_path(file_path: str, media_root: str) -> str:
    """Absolute paths (and Windows drive paths) are kept; others join ``media_root``."""
    if os.path.isabs(file_path) or _DRIVE_PATH.match(file_path):
        return file_path
    return os.path.join(media_root, file_path)


def normalize_timeline(
    layers: list[Layer],
    media_library: list[MediaItem],
    media_root: str,
) -> NormalizedTimeline:
    """Collect the media used by visible layers and assign input indices.

    Raises:
        InputError: if no usable media remains.
    """
    result = NormalizedTimeline(media_by_id={m.id: m for m in media_library})

    for layer in layers:
        if not layer.visible:
            logger.info(f"[NORMALIZE] Skipping invisible layer: {layer.name or layer.id}")
            continue

        for item in layer.items:
            media = result.media_by_id.get(item.media_id)
            if media is None:
                logger.warning(
                    f"[NORMALIZE] No media item found for timeline item {item.id} "
                    f"(mediaId: {item.media_id})"
                )
                continue
            if media.id in result.input_index:
                continue

            if media.type == "text":
                result.input_index[media.id] = TEXT_INPUT_INDEX
                result.used_media.append(media)
                continue

            if media.file_path.startswith(BLOB_PREFIX):
                logger.warning(f"[NORMALIZE] Skipping blob URL: {media.id}")
                continue
            if not media.file_path:
                logger.warning(f"[NORMALIZE] Media item {media.id} has no file path, skipping")
                continue

            path = resolve_media_path(media.file_path, media_root)
            if not os.path.isfile(path):
                logger.warning(f"[NORMALIZE] Media file not found for {media.id}: {path}")
                continue

            index = len(result.input_files)
            result.input_files.append(path)
            result.input_index[media.id] = index
            result.used_media.append(media)
            logger.info(f"[NORMALIZE] Input {index}: {media.type} - {media.id}")

    if not result.used_media:
        visible = sum(1 for layer in layers if layer.visible)
        logger.error(
            f"[NORMALIZE] No valid media items found "
            f"(layers={len(layers)}, visible={visible}, library={len(media_library)})"
        )
        raise InputError("No valid media items found")

    return result
