from __future__ import annotations

from pathlib import Path
import os
import sys

# Les paquets (core, commands, db, views) sont importés en absolu depuis src/
_SRC = Path(__file__).resolve().parents[1] / 'src'
if _SRC.is_dir() and str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

os.environ.setdefault('BOT_TOKEN', 'test-token')
