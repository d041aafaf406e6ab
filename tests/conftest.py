"""
Pytest configuration for CommunityOps tests.
"""

import sys
from pathlib import Path

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Make the test fakes importable as a plain module
sys.path.insert(0, str(Path(__file__).parent))
