"""Directory host: load a built output directory as a bundle and write it back.

Script files become ``Chunk``s; a sibling ``<name>.map`` is parsed as the
chunk's source map and not exposed as an artifact of its own.  Everything
else is an ``Asset``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from imgfmt.models.artifacts import Asset, Bundle, Chunk

logger = logging.getLogger(__name__)

CHUNK_EXTENSIONS: frozenset[str] = frozenset({".js", ".mjs", ".cjs"})
MAP_SUFFIX = ".map"


class DirectoryHost:
    """Round-trips a bundle through a directory on disk.

    Parameters
    ----------
    root:
        Build output directory.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._loaded: set[str] = set()

    def _name(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def load(self) -> Bundle:
        paths = sorted(p for p in self.root.rglob("*") if p.is_file())
        names = {self._name(p) for p in paths}
        maps = {
            n for n in names
            if n.endswith(MAP_SUFFIX) and n[: -len(MAP_SUFFIX)] in names
            and Path(n[: -len(MAP_SUFFIX)]).suffix in CHUNK_EXTENSIONS
        }

        bundle = Bundle()
        for path in paths:
            name = self._name(path)
            if name in maps:
                continue
            if path.suffix in CHUNK_EXTENSIONS:
                source_map = None
                map_path = path.with_name(path.name + MAP_SUFFIX)
                if name + MAP_SUFFIX in maps:
                    try:
                        source_map = json.loads(map_path.read_text(encoding="utf-8"))
                    except (OSError, ValueError) as exc:
                        logger.warning("Ignoring unreadable source map %s: %s", map_path, exc)
                code = path.read_bytes().decode("utf-8", errors="surrogateescape")
                bundle.emit(name, Chunk(code=code, source_map=source_map))
            else:
                bundle.emit(name, Asset(source=path.read_bytes()))

        self._loaded = set(bundle.names())
        logger.info("Loaded %d artifact(s) from %s", len(bundle), self.root)
        return bundle

    def write(self, bundle: Bundle) -> None:
        """Write every artifact and delete files whose entries were removed."""
        for name in sorted(self._loaded - set(bundle.names())):
            path = self.root / name
            if path.exists():
                path.unlink()
                logger.info("Removed %s", name)

        for name, artifact in bundle.items():
            path = self.root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(artifact, Chunk):
                path.write_bytes(artifact.code.encode("utf-8", errors="surrogateescape"))
                if artifact.source_map is not None:
                    map_path = path.with_name(path.name + MAP_SUFFIX)
                    map_path.write_text(json.dumps(artifact.source_map), encoding="utf-8")
            else:
                path.write_bytes(artifact.source)
        self._loaded = set(bundle.names())
