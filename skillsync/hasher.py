import hashlib
import os

from .constants import EMPTY_FINGERPRINT
from .typed_path import AbsDir, AbsFile
from .types import SyncStatus

type Fingerprint = str

CHUNK_SIZE = 1 << 16


def file_hash(file: AbsFile) -> str:
    digest = hashlib.blake2b(digest_size=16, usedforsecurity=False)
    with open(file, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


def file_hashes(root: AbsDir) -> dict[str, str]:
    """Map the posix path of every regular file beneath `root` to a hash of its contents."""
    return {file.relative_to(root).posix: file_hash(file) for file in root.files()}


def fingerprint(root: AbsDir) -> Fingerprint:
    """Return a digest of the relative paths and contents of every file beneath `root`.

    Missing and empty folders share `EMPTY_FINGERPRINT`.
    Empty subfolders, modification times and listing order make no difference.
    """
    hashes = file_hashes(root) if root.is_folder() else {}
    if not hashes:
        return EMPTY_FINGERPRINT
    digest = hashlib.blake2b(usedforsecurity=False)
    for path, hash in sorted(hashes.items(), key=lambda item: os.fsencode(item[0])):
        # File names cannot contain NUL and every hash has the same length.
        digest.update(os.fsencode(path) + b"\0" + hash.encode("ascii"))
    return digest.hexdigest()


def compare(source: AbsDir, target: AbsDir) -> SyncStatus:
    if not target.is_folder():
        return SyncStatus.TARGET_MISSING
    if fingerprint(source) == fingerprint(target):
        return SyncStatus.SYNCED
    return SyncStatus.NOT_SYNCED
