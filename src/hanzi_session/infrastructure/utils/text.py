def normalize_search_text(text: str) -> str:
    """Key form of a search text, shared by the media cache and the image adapter."""
    return text.strip().lower()
