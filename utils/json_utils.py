"""JSON helpers for settings files and structured log payloads."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from utils import common

logger = common.get_logger('json_utils')


def save_json_atomic(file_path: str, data: Any) -> bool:
  """Save data to a json file through a temp file and an atomic rename.

  Args:
    file_path: The file path to save.
    data: The JSON-serialisable data to save.

  Returns:
    True when the file was written.
  """
  target = Path(os.path.expanduser(file_path))
  try:
    target.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False)
  except (OSError, TypeError, ValueError) as e:
    logger.error('Error preparing json file %s: %s', target, e)
    return False

  fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), suffix='.tmp', prefix='bark_')
  tmp_path_obj = Path(tmp_path)
  try:
    with os.fdopen(fd, 'w', encoding='utf-8') as f:
      f.write(content)
    os.replace(str(tmp_path_obj), str(target))
  except OSError as e:
    logger.error('Error saving json file %s: %s', target, e)
    try:
      tmp_path_obj.unlink(missing_ok=True)
    except OSError:
      pass
    return False
  return True


def load_json_from_file(file_path: str, default: Any = None) -> Any:
  """Load a json file.

  Args:
    file_path: The file path to load.
    default: Value returned when the file is missing or unreadable.

  Returns:
    The decoded data, or ``default``.
  """
  expanded_path = os.path.expanduser(file_path)
  if not os.path.exists(expanded_path):
    return default
  try:
    with open(expanded_path, 'r', encoding='utf-8') as f:
      return json.load(f)
  except (OSError, json.JSONDecodeError) as e:
    logger.error('Error loading json file %s: %s', expanded_path, e)
    return default


def pretty_json(text: str, indent: int = 2) -> Optional[str]:
  """Return an indented rendering of a JSON document, or None if it is not JSON.

  Args:
    text: The raw text of one log line.
    indent: Indentation width.
  """
  try:
    value = json.loads(text)
  except (json.JSONDecodeError, TypeError, ValueError):
    return None
  return json.dumps(value, indent=indent, ensure_ascii=False)
