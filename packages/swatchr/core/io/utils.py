"""Path sanitization helpers."""

import re


def sanitize_path_component(component: str) -> str:
    """
    Make a component or asset name safe to use as a file name.

    Path separators and anything outside ``[A-Za-z0-9._-]`` become
    underscores, and leading dots are stripped so names never turn into
    hidden files.

    Example:
        >>> sanitize_path_component("icons/arrow left")
        'icons_arrow_left'
        >>> sanitize_path_component(".hidden")
        'hidden'
    """
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "_", component).lstrip(".")
    return cleaned or "_"
