"""
Paraclaim: Canonical JSON Encoding — RFC 8785 (JCS)

This is the ONLY canonicalization permitted in Paraclaim.
Observation proofs, audit signatures and chain hashes all use this module.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import jcs as _jcs


def canonicalize(obj: dict) -> bytes:
    """
    Encode a dict to RFC 8785 canonical JSON bytes.

    Output is deterministic regardless of key insertion order.
    All values must be JSON-primitive (str, int, bool, None, list, dict).
    Enum members must be converted to their .value first.

    Returns:
        UTF-8 encoded canonical JSON bytes, suitable for signing.
    """
    return _jcs.canonicalize(obj)

