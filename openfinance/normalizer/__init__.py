"""Normalizer package: repairs loosely shaped inbound payloads into canonical transaction drafts."""

from .payload import PayloadNormalizer  # noqa: F401
