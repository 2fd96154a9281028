"""Photo processing for intake submissions."""

from .compressor import compress_image, compress_batch

__all__ = ['compress_image', 'compress_batch']
