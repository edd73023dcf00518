"""LIKE patterns built from user or AI supplied text."""

LIKE_ESCAPE = '\\'


def contains_pattern(term: str) -> str:
    """'%term%' with the term's own %, _ and escape characters taken literally.

    Use with ``.like(pattern, escape=LIKE_ESCAPE)``.
    """
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace('%', LIKE_ESCAPE + '%')
        .replace('_', LIKE_ESCAPE + '_')
    )
    return f'%{escaped}%'
