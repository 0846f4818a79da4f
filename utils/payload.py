def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def field(data: dict, name: str, default=None):
    """Read snake_case ``name`` from a JSON body, falling back to its camelCase spelling."""
    if name in data:
        return data[name]
    return data.get(_camel(name), default)


def has_field(data: dict, name: str) -> bool:
    return name in data or _camel(name) in data


def normalize(data: dict, names) -> dict:
    """Copy the given fields into a snake_case dict, dropping the ones not present."""
    return {name: field(data, name) for name in names if has_field(data, name)}
