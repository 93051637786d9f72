"""
I/O JSON des sessions (orjson).

- read_json(path)        → objet décodé, ou None si le fichier n'existe pas
- write_json(path, data) → remplace le fichier d'un coup (écrit `<nom>.tmp` puis rename),
                           un lecteur ne voit jamais un JSON tronqué
- remove_file(path)      → supprime, fichier absent accepté

orjson travaille en bytes : lecture/écriture binaires. Les erreurs (OSError,
orjson.JSONDecodeError) remontent telles quelles au `SessionStore`.
"""
from pathlib import Path
from typing import Any, Optional

import orjson

_DUMP_OPTIONS = orjson.OPT_NON_STR_KEYS


def read_json(path: Path) -> Optional[Any]:
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return None
    return orjson.loads(raw)


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(orjson.dumps(data, option=_DUMP_OPTIONS))
    tmp.replace(path)


def remove_file(path: Path) -> None:
    path.unlink(missing_ok=True)
