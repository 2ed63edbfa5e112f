import uuid


def generate_id(prefix: str) -> str:
    """
    Return a fresh unique id such as ``chapter-3f2a9c1b7d4e``.

    >>> generate_id("doc").startswith("doc-")
    True
    """
    return f"{prefix}-{uuid.uuid4().hex[:12]}"
