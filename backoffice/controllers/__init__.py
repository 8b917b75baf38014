from flask import request, current_app

from backoffice.errors import ValidationError


def json_body(*required):
    """Parse the JSON body and check that ``required`` fields are present."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    missing = [field for field in required if data.get(field) in (None, '')]
    if missing:
        raise ValidationError(f'Missing required fields: {", ".join(missing)}', fields=missing)
    return data


def pagination_args():
    try:
        page = int(request.args.get('page', 1))
        page_size = int(request.args.get('page_size', current_app.config.get('DEFAULT_PAGE_SIZE', 20)))
    except ValueError:
        raise ValidationError('page and page_size must be integers')
    return max(page, 1), min(max(page_size, 1), current_app.config.get('MAX_PAGE_SIZE', 100))
