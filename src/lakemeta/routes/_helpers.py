# src/lakemeta/routes/_helpers.py
from flask import current_app, request

from ..exceptions import ValidationError

EXTENSION_KEY = 'lakemeta'


def get_services():
    """Components wired up by create_app (gateway, prober, synthesizer, indexer)."""
    return current_app.extensions[EXTENSION_KEY]


def require_params(*names):
    """
    Reads required query parameters.

    Raises ValidationError naming every required parameter when any is missing.
    """
    values = [request.args.get(name, '').strip() for name in names]
    if not all(values):
        if len(names) == 1:
            message = f"{names[0]} is required."
        else:
            message = f"{', '.join(names[:-1])} and {names[-1]} are required."
        missing = [name for name, value in zip(names, values) if not value]
        raise ValidationError(message, details={"missing": missing})
    return values if len(values) > 1 else values[0]
