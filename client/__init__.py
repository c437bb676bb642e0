"""Python client mirroring the browser-side expenses hook."""
