import uuid


def parse_id(value: uuid.UUID | str) -> uuid.UUID | None:
    """Lookups treat an unparsable id the same as an unknown one."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None
