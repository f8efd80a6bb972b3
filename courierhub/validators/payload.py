import re

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])([A-Z])')


def to_snake_case(key):
    """addressLine1 -> address_line1, declaredValue -> declared_value"""
    return _CAMEL_BOUNDARY.sub(r'_\1', key).lower()


def normalize_keys(value, nested=()):
    """Convert camelCase request keys to snake_case; snake_case keys pass through.

    Only top-level keys are converted, plus the child objects named in
    `nested` (snake_case, dotted for deeper levels, e.g. "shipment.dimensions").
    Every other value, such as free-form JSON metadata, is kept as sent.
    """
    if not isinstance(value, dict):
        return value

    children = {}
    for path in nested:
        head, _, rest = path.partition('.')
        children.setdefault(head, [])
        if rest:
            children[head].append(rest)

    normalized = {}
    for key, item in value.items():
        name = to_snake_case(key) if isinstance(key, str) else key
        if name in children:
            item = normalize_keys(item, children[name])
        normalized[name] = item
    return normalized
