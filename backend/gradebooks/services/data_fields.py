"""Typed keys of an assignment's data map.

Editable keys follow a closed set of shapes tied to the template blocks they
belong to:

* ``language_toggle_<page>_<block>``  list of ``{'code', 'active', ...}``
* ``table_<page>_<block>_row_<row>``  dict or list of cell values
* ``dropdown_<number>``               str (one of the block's options) or None
* ``text_<page>_<block>``             str or None

``signatures`` and ``promotions`` are maintained by the workflows and can
not be written through data edits.
"""
import re
from typing import Dict, NamedTuple, Optional

from gradebooks.exceptions import InvalidArgument

RESERVED_KEYS = frozenset({
    'signatures',
    'promotions',
    'status',
    'is_completed',
    'is_completed_sem1',
    'is_completed_sem2',
    'data_version',
})

LANGUAGE_TOGGLE_TYPES = ('language_toggle', 'language_toggle_v2')
TABLE_TYPES = ('table',)
TEXT_TYPES = ('text_input', 'dynamic_text')
DROPDOWN_TYPES = ('dropdown',)


class DataKey(NamedTuple):
    shape: str
    page: Optional[int] = None
    block: Optional[int] = None
    row: Optional[int] = None
    number: Optional[int] = None


_KEY_PATTERNS = (
    ('language_toggle', re.compile(r'^language_toggle_(?P<page>\d+)_(?P<block>\d+)$')),
    ('table', re.compile(r'^table_(?P<page>\d+)_(?P<block>\d+)_row_(?P<row>\d+)$')),
    ('dropdown', re.compile(r'^dropdown_(?P<number>\d+)$')),
    ('text', re.compile(r'^text_(?P<page>\d+)_(?P<block>\d+)$')),
)


def classify_key(key: str) -> Optional[DataKey]:
    if not isinstance(key, str):
        return None
    for shape, pattern in _KEY_PATTERNS:
        m = pattern.match(key)
        if m:
            parts = {k: int(v) for k, v in m.groupdict().items()}
            return DataKey(shape=shape, **parts)
    return None


def _block(template, page: int, block: int) -> Optional[dict]:
    pages = getattr(template, 'pages', None) or []
    if page >= len(pages):
        return None
    blocks = (pages[page] or {}).get('blocks') or []
    if block >= len(blocks):
        return None
    return blocks[block] or None


def _dropdown_block(template, number: int) -> Optional[dict]:
    for page in getattr(template, 'pages', None) or []:
        for block in (page or {}).get('blocks') or []:
            if (block or {}).get('type') not in DROPDOWN_TYPES:
                continue
            props = block.get('props') or {}
            if str(props.get('dropdownNumber')) == str(number):
                return block
    return None


def _option_values(options):
    values = []
    for opt in options or []:
        values.append(opt.get('value') if isinstance(opt, dict) else opt)
    return values


def _check_language_toggle(block, value):
    if not isinstance(value, list):
        return 'Expected a list of language items'
    for item in value:
        if not isinstance(item, dict) or not item.get('code'):
            return 'Each language item needs a code'
        if 'active' in item and not isinstance(item['active'], bool):
            return 'Language item "active" must be a boolean'
    items = (block.get('props') or {}).get('items')
    if items and len(items) != len(value):
        return f'Expected {len(items)} language items'
    return None


def _check_table(block, row, value):
    if not isinstance(value, (dict, list)):
        return 'Expected a row of cells'
    cells = (block.get('props') or {}).get('cells')
    if cells and row >= len(cells):
        return f'Row {row} is outside the table'
    return None


def _check_text(block, value):
    if value is not None and not isinstance(value, str):
        return 'Expected text'
    max_len = (block.get('props') or {}).get('maxLength')
    if value and max_len and len(value) > int(max_len):
        return f'At most {max_len} characters'
    return None


def _check_dropdown(block, value):
    if value is None:
        return None
    if not isinstance(value, str):
        return 'Expected one of the dropdown options'
    options = _option_values((block.get('props') or {}).get('options'))
    if options and value not in options:
        return 'Value is not one of the dropdown options'
    return None


def validate_data_key(template, key, value) -> Optional[str]:
    """Return an error message for `key`/`value`, or None when valid."""
    if key in RESERVED_KEYS:
        return 'Reserved key'
    parsed = classify_key(key)
    if parsed is None:
        return 'Unknown key shape'

    if parsed.shape == 'dropdown':
        block = _dropdown_block(template, parsed.number)
        if block is None:
            return 'No dropdown with this number in the template'
        return _check_dropdown(block, value)

    block = _block(template, parsed.page, parsed.block)
    if block is None:
        return 'No such block in the template'
    block_type = block.get('type')
    if parsed.shape == 'language_toggle':
        if block_type not in LANGUAGE_TOGGLE_TYPES:
            return 'Block is not a language toggle'
        return _check_language_toggle(block, value)
    if parsed.shape == 'table':
        if block_type not in TABLE_TYPES:
            return 'Block is not a table'
        return _check_table(block, parsed.row, value)
    if block_type not in TEXT_TYPES:
        return 'Block is not a text field'
    return _check_text(block, value)


def validate_data_changes(template, changes: Dict[str, object]):
    errors = {}
    for key, value in changes.items():
        message = validate_data_key(template, key, value)
        if message:
            errors[key] = message
    if errors:
        raise InvalidArgument('Invalid gradebook data', errors=errors)
    return True
