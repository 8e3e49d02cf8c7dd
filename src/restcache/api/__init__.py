"""HTTP surface for restcache: middleware and application factory."""
