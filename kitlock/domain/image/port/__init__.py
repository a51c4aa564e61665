from kitlock.domain.image.port.archive import ArchiveFactory, ImageArchive
from kitlock.domain.image.port.image_tool import ImageConfig, ImageTool

__all__ = [
    "ArchiveFactory",
    "ImageArchive",
    "ImageConfig",
    "ImageTool",
]
