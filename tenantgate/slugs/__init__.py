"""Slug allocation module."""

from tenantgate.slugs.service import SlugAllocator, allocate_slug, slug_key, slugify

__all__ = ["SlugAllocator", "allocate_slug", "slug_key", "slugify"]
