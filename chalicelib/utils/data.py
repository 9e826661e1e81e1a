import json
import re
from datetime import datetime, date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Tuple

from requests_toolbelt.multipart.decoder import MultipartDecoder

from chalicelib.utils.exceptions import ValidationException

MONEY_QUANT = Decimal('0.01')
CLOCK_TIME_RE = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)(:[0-5]\d)?$')
DISPOSITION_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')
TRUE_VALUES = ('true', '1', 'yes', 'si', 'on')
FALSE_VALUES = ('false', '0', 'no', 'off')


def replace_dict_key(item, orig_key, new_key):
    if orig_key in item:
        if new_key not in item:
            item[new_key] = item[orig_key]
        del item[orig_key]


def substitute_keys(dict_to_process: dict, base_keys: dict, opt_dict=None):
    if opt_dict is None:
        opt_dict = {}
    all_keys = {**base_keys, **opt_dict}
    for key, val in all_keys.items():
        if val:
            replace_dict_key(dict_to_process, key, val)
        elif key in dict_to_process.keys():
            dict_to_process.pop(key, None)


def parse_raw_body(chalice_request):
    request_raw_body = chalice_request.raw_body
    if not request_raw_body:
        return {}
    try:
        body = json.loads(request_raw_body)
    except ValueError:
        raise ValidationException('El cuerpo de la petición no es un JSON válido')
    if not isinstance(body, dict):
        raise ValidationException('El cuerpo de la petición debe ser un objeto JSON')
    return fix_values_from_ui(item=body)


def fix_values_from_ui(item):
    """
    Remove keys with empty or None values and transform float to Decimal
    """
    if item.get('_values_from_ui_strategy') == 'delete_empty':
        list_to_cleanup = ['', None]
    else:
        list_to_cleanup = [None]
    item = cleanup_dict(item, list_to_cleanup)
    item.pop('_values_from_ui_strategy', None)
    result = json.dumps(item)
    return json.loads(result, parse_float=Decimal)


def cleanup_dict(item: dict, list_of_values: list):
    """ Remove None fields in dict with. Supports one nesting.  """

    def sub_clean(sub_item):
        return {
            key: value
            for key, value in sub_item.items()
            if value not in list_of_values
        }

    clean = {}
    for k, v in item.items():
        if isinstance(v, dict):
            nested = sub_clean(v)
            if len(nested.keys()) > 0:
                clean[k] = nested
        elif v not in list_of_values:
            clean[k] = v
    return clean


def parse_multipart_form(chalice_request) -> Tuple[Dict[str, str], Dict[str, Dict[str, Any]]]:
    """
    Splits a multipart/form-data body into plain text fields and uploaded files.
    Files are returned as {field_name: {'filename', 'content_type', 'content'}}
    """
    decoder = MultipartDecoder(content=chalice_request.raw_body or b'',
                               content_type=chalice_request.headers['content-type'])
    fields, files = {}, {}
    for part in decoder.parts:
        disposition = part.headers.get(b'Content-Disposition', b'').decode('utf-8')
        params = dict(DISPOSITION_PARAM_RE.findall(disposition))
        name = params.get('name')
        if not name:
            continue
        if 'filename' in params:
            if part.content:
                files[name] = {
                    'filename': params['filename'],
                    'content_type': part.headers.get(b'Content-Type', b'application/octet-stream').decode('utf-8'),
                    'content': part.content
                }
        else:
            fields[name] = part.text
    return fields, files


def parse_request_payload(chalice_request) -> Tuple[Dict, Dict]:
    content_type = chalice_request.headers.get('content-type', '')
    if content_type.startswith('multipart/form-data'):
        fields, files = parse_multipart_form(chalice_request)
        return cleanup_dict(fields, ['']), files
    return parse_raw_body(chalice_request), {}


def to_decimal(value, field: str, min_value: Decimal = Decimal('0')) -> Decimal:
    if isinstance(value, bool):
        raise ValidationException(f'El campo {field} debe ser un número válido')
    try:
        number = Decimal(str(value).strip()).quantize(MONEY_QUANT)
    except (InvalidOperation, ValueError):
        raise ValidationException(f'El campo {field} debe ser un número válido')
    if not number.is_finite() or (min_value is not None and number < min_value):
        raise ValidationException(f'El campo {field} debe ser mayor o igual a {min_value}')
    return number


def to_int(value, field: str, min_value: int = None, max_value: int = None) -> int:
    if isinstance(value, bool):
        raise ValidationException(f'El campo {field} debe ser un número entero')
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationException(f'El campo {field} debe ser un número entero')
    if not number.is_finite() or number != number.to_integral_value():
        raise ValidationException(f'El campo {field} debe ser un número entero')
    number = int(number)
    if min_value is not None and number < min_value:
        raise ValidationException(f'El campo {field} debe ser mayor o igual a {min_value}')
    if max_value is not None and number > max_value:
        raise ValidationException(f'El campo {field} debe ser menor o igual a {max_value}')
    return number


def to_bool(value, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if str(value).strip().lower() in TRUE_VALUES:
        return True
    if str(value).strip().lower() in FALSE_VALUES:
        return False
    raise ValidationException(f'El campo {field} debe ser verdadero o falso')


def to_text(value, field: str, required: bool = True) -> str:
    if not isinstance(value, (str, int, Decimal)) or isinstance(value, bool):
        raise ValidationException(f'El campo {field} debe ser un texto')
    text = str(value).strip()
    if required and not text:
        raise ValidationException(f'El campo {field} es obligatorio')
    return text


def to_clock_time(value, field: str) -> str:
    """ 'H:MM', 'HH:MM' or 'HH:MM:SS' -> 'HH:MM' """
    match = CLOCK_TIME_RE.match(str(value).strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationException(f'El campo {field} debe tener el formato HH:MM')
    return f'{int(match.group(1)):02d}:{match.group(2)}'


def clock_time_to_minutes(value: str) -> int:
    hours, minutes = value.split(':')[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_clock_time(minutes: int) -> str:
    minutes = minutes % (24 * 60)
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def to_iso_date(value, field: str) -> date:
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ValidationException(f'El campo {field} debe tener el formato YYYY-MM-DD')


def require_fields(payload: Dict, *fields: str):
    missing = [field for field in fields if payload.get(field) in (None, '')]
    if missing:
        raise ValidationException(f"Faltan campos obligatorios: {', '.join(missing)}")
