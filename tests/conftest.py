# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src to sys.path so `import citeflow` works without installing.
"""

import os
import sys
import tempfile
from pathlib import Path

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

# Keep file logs out of the working tree
os.environ.setdefault("CITEFLOW_LOG_DIR", tempfile.mkdtemp(prefix="citeflow-logs-"))
