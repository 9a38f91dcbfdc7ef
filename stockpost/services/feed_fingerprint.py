from __future__ import annotations
import hashlib

from stockpost.schemas.snapshot import Snapshot
from stockpost.services.normalizer import normalize


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def compute_snapshot_fingerprint(snapshot: Snapshot) -> str:
    return sha256_hex(normalize(snapshot))
