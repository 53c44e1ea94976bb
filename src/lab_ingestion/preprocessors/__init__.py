"""
Image preprocessing applied before OCR.
"""

from .image_preprocessor import ImagePreprocessor, to_png_bytes
