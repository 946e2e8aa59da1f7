"""pytest configuration: put src/ on sys.path so tests import luxedetails directly."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))
