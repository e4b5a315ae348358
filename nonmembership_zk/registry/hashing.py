"""
Hash providers for the registry tree.

A provider binds two field elements into one (``hash2``, parent nodes) and an
arbitrary byte string into one (``hash1``, leaves derived from descriptions).
Both outputs are reduced into the SNARK scalar field so they are valid leaf
and node values.

Providers are acquired explicitly through :func:`open_hash_provider` and
passed to the tree; there is no process-wide hasher.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import selectors
import subprocess
from contextlib import contextmanager
from pathlib import Path
from typing import Final, Iterator, Protocol, runtime_checkable

from .config import (
    DEFAULT_HASH_PROVIDER,
    DOMAIN_SEPARATORS,
    HASH_PROVIDERS,
    SNARK_SCALAR_FIELD,
)
from .exceptions import HashProviderError
from .field import encode_fixed_width, pack_bytes

logger = logging.getLogger(__name__)

_ENV_VAR_NAME: Final[str] = "NONMEMBERSHIP_HASH_PROVIDER"
_HELPER_TIMEOUT: Final[float] = 60.0

_provider_override: str | None = None


@runtime_checkable
class HashProvider(Protocol):
    name: str

    def hash2(self, left: int, right: int) -> int:
        ...

    def hash1(self, data: bytes) -> int:
        ...


class Sha256FieldHasher:
    """
    SHA-256 with domain separation, reduced into the scalar field.

    Deterministic and collision-resistant, but not the circuit's hash: roots
    built with it only verify against the fixture toolchain.
    """

    name = "sha256"

    def hash2(self, left: int, right: int) -> int:
        domain_sep = DOMAIN_SEPARATORS["merkle_node"]
        digest = hashlib.sha256(
            domain_sep + encode_fixed_width(left) + encode_fixed_width(right)
        ).digest()
        return int.from_bytes(digest, "big") % SNARK_SCALAR_FIELD

    def hash1(self, data: bytes) -> int:
        domain_sep = DOMAIN_SEPARATORS["merkle_leaf"]
        packed = encode_fixed_width(pack_bytes(data))
        digest = hashlib.sha256(domain_sep + packed).digest()
        return int.from_bytes(digest, "big") % SNARK_SCALAR_FIELD


# Line protocol: the helper prints "ready" once Poseidon parameters are
# loaded, then answers one JSON array of decimal inputs per line with the
# decimal hash.
_POSEIDON_HELPER_JS = r"""
const { buildPoseidon } = require('circomlibjs');
const readline = require('readline');
buildPoseidon().then((poseidon) => {
  const F = poseidon.F;
  process.stdout.write('ready\n');
  const rl = readline.createInterface({ input: process.stdin });
  rl.on('line', (line) => {
    try {
      const inputs = JSON.parse(line).map((v) => BigInt(v));
      process.stdout.write(F.toString(poseidon(inputs)) + '\n');
    } catch (err) {
      process.stdout.write('error ' + err.message + '\n');
    }
  });
}).catch((err) => {
  process.stderr.write(String(err) + '\n');
  process.exit(1);
});
"""


class PoseidonNodeHasher:
    """
    circomlibjs Poseidon, evaluated by a long-lived Node helper.

    Matches the hash the non-membership circuit constrains. ``start()`` blocks
    until the helper has loaded the Poseidon constants. Every read from the
    helper is bounded by ``timeout`` seconds; on expiry the helper is killed
    and HashProviderError is raised.
    """

    name = "poseidon"

    def __init__(
        self,
        node_binary: str = "node",
        cwd: str | Path | None = None,
        timeout: float = _HELPER_TIMEOUT,
    ) -> None:
        self._node_binary = node_binary
        self._timeout = timeout
        self._cwd = Path(cwd) if cwd is not None else None
        self._process: subprocess.Popen | None = None

    def start(self) -> "PoseidonNodeHasher":
        if self._process is not None:
            return self
        env = dict(os.environ)
        if self._cwd is not None:
            node_modules = self._cwd / "node_modules"
            env["NODE_PATH"] = os.pathsep.join(
                p for p in (str(node_modules), env.get("NODE_PATH", "")) if p
            )
        try:
            process = subprocess.Popen(
                [self._node_binary, "-e", _POSEIDON_HELPER_JS],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
                cwd=str(self._cwd) if self._cwd is not None else None,
                env=env,
            )
        except OSError as exc:
            raise HashProviderError(
                f"cannot start {self._node_binary!r} for Poseidon hashing: {exc}"
            ) from exc

        banner = self._read_line(process).strip()
        if banner != "ready":
            process.kill()
            _, stderr = process.communicate()
            raise HashProviderError(
                "Poseidon helper failed to start "
                f"(is circomlibjs installed?): {stderr.strip() or banner or 'no output'}"
            )
        logger.debug("Poseidon helper started (pid %d)", process.pid)
        self._process = process
        return self

    def close(self) -> None:
        process = self._process
        if process is None:
            return
        self._process = None
        process.stdin.close()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        process.stdout.close()
        process.stderr.close()
        logger.debug("Poseidon helper stopped")

    def _read_line(self, process: subprocess.Popen) -> str:
        # One request in flight at a time, so nothing is left buffered between
        # answers and the pipe becoming readable means a line is coming.
        with selectors.DefaultSelector() as selector:
            selector.register(process.stdout, selectors.EVENT_READ)
            ready = selector.select(self._timeout)
        if not ready:
            if process is self._process:
                self._process = None
            process.kill()
            process.wait()
            process.stdin.close()
            process.stdout.close()
            process.stderr.close()
            raise HashProviderError(
                f"Poseidon helper did not answer within {self._timeout:g}s"
            )
        return process.stdout.readline()

    def __enter__(self) -> "PoseidonNodeHasher":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def hash2(self, left: int, right: int) -> int:
        return self._hash([left, right])

    def hash1(self, data: bytes) -> int:
        return self._hash([pack_bytes(data)])

    def _hash(self, inputs: list[int]) -> int:
        if self._process is None:
            raise HashProviderError("Poseidon helper is not running; call start() first")
        encoded = json.dumps([str(value) for value in inputs])
        try:
            self._process.stdin.write(encoded + "\n")
            self._process.stdin.flush()
            answer = self._read_line(self._process).strip()
        except (BrokenPipeError, OSError) as exc:
            raise HashProviderError(f"Poseidon helper died: {exc}") from exc
        if not answer or not answer.isdigit():
            raise HashProviderError(f"Poseidon helper returned {answer or 'nothing'!r}")
        return int(answer)


def _format_valid_options() -> str:
    return ", ".join(HASH_PROVIDERS)


def _normalize_provider(value: str | None) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or value not in HASH_PROVIDERS:
        raise ValueError(
            f"Invalid hash provider: {value!r}. Valid options: {_format_valid_options()}"
        )
    return value


def get_hash_provider_name(
    prefer: str | None = None, default: str = DEFAULT_HASH_PROVIDER
) -> str:
    """
    Resolve the hash provider name in precedence order.

    Explicit preference, then in-memory override, then the
    NONMEMBERSHIP_HASH_PROVIDER environment variable, then ``default``.

    Raises:
        ValueError: If a provided name is invalid.
    """
    preferred = _normalize_provider(prefer)
    if preferred is not None:
        return preferred
    if _provider_override is not None:
        return _provider_override
    env_provider = _normalize_provider(os.getenv(_ENV_VAR_NAME))
    if env_provider is not None:
        return env_provider
    return default


def set_hash_provider_name(value: str | None) -> None:
    """Set in-memory provider override (testing only)."""
    global _provider_override
    _provider_override = _normalize_provider(value)


@contextmanager
def open_hash_provider(
    name: str | None = None,
    *,
    node_cwd: str | Path | None = None,
) -> Iterator[HashProvider]:
    """
    Acquire a ready-to-use hash provider for the duration of the block.

    Example:
        with open_hash_provider("poseidon", node_cwd=project_dir) as hasher:
            tree = MerkleTree(8, hasher)
    """
    resolved = get_hash_provider_name(name)
    if resolved == "sha256":
        yield Sha256FieldHasher()
        return

    with PoseidonNodeHasher(cwd=node_cwd) as hasher:
        yield hasher
