"""Representations define how transaction state is encoded on disk

Checkpoints are digested over their encoded form, so encoding must be
canonical: the same mapping always produces the same bytes.
"""
import json
from datetime import datetime
from typing import Any


class CustomJsonEncoder(json.JSONEncoder):
    """Custom JSON encoder that can support some additional required types"""

    def default(self, o: Any) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def canonical_json(data: Any) -> bytes:
    """Encode data as compact JSON with sorted keys

    >>> canonical_json({'b': 1, 'a': [1, 2]})
    b'{"a":[1,2],"b":1}'
    """
    dumped = json.dumps(
        data, cls=CustomJsonEncoder, sort_keys=True, separators=(",", ":")
    )
    return dumped.encode("ascii")
