def to_uppercase(value: str | None) -> str | None:
    """
    Converts a string to uppercase if it's not None.
    """
    if value is None:
        return None
    return value.strip().upper()


def to_lowercase(value: str | None) -> str | None:
    """
    Converts a string to lowercase if it's not None.
    """
    if value is None:
        return None
    return value.strip().lower()


def empty_to_none(value: str | None) -> str | None:
    """
    Treat blank environment values (``FOO=``) as unset.
    """
    if isinstance(value, str) and not value.strip():
        return None
    return value
