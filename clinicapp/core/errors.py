VALUE_ERROR_PREFIX = 'Value error, '


def error_message(error: dict) -> str:
    message = str(error.get('msg', ''))
    if message.startswith(VALUE_ERROR_PREFIX):
        return message[len(VALUE_ERROR_PREFIX):]
    return message


def error_field(error: dict) -> str:
    location = [part for part in error.get('loc', ()) if isinstance(part, str)]
    if len(location) > 1 and location[0] in {'body', 'query', 'path', 'header'}:
        location = location[1:]
    return location[-1] if location else '__root__'


def field_errors(errors: list[dict]) -> dict[str, str]:
    """Collapse pydantic error dicts into one message per field, first error wins."""
    collected: dict[str, str] = {}
    for error in errors:
        collected.setdefault(error_field(error), error_message(error))
    return collected
