"""Configuration for volindex."""

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_ALLOWED_EXTENSIONS: frozenset[str] = frozenset(
    {
        "jpg",
        "jpeg",
        "png",
        "gif",
        "webp",
        "svg",
        "tif",
        "tiff",
        "bmp",
        "heic",
        "avif",
        "pdf",
        "doc",
        "docx",
        "xls",
        "xlsx",
        "ppt",
        "pptx",
        "mp3",
        "wav",
        "ogg",
        "m4a",
        "mp4",
        "mov",
        "webm",
        "zip",
    }
)

DEFAULT_IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {"jpg", "jpeg", "png", "gif", "webp", "svg", "tif", "tiff", "bmp", "heic", "avif"}
)


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    data_dir: Path = field(default_factory=lambda: Path.home() / ".cache" / "volindex")
    batch_size: int = 100
    allowed_extensions: frozenset[str] = DEFAULT_ALLOWED_EXTENSIONS
    image_extensions: frozenset[str] = DEFAULT_IMAGE_EXTENSIONS
    skip_hidden: bool = True

    @property
    def db_path(self) -> Path:
        return self.data_dir / "index.db"
