"""Utility helpers package."""

from app.utils.parsing import decode_json_object, first_line, tolerant_decode

__all__ = ["decode_json_object", "first_line", "tolerant_decode"]
