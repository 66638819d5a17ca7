import pytest
import sys
import os

sys.path.append(os.getcwd())

test_paths = [
    "tests/unit/indicators",
    "tests/unit/query",
    "tests/unit/breakout",
    "tests/unit/data",
    "tests/unit/scanner",
    "tests/unit/config",
    "tests/unit/utils",
    "tests/unit/cli",
    "tests/unit/test_domain.py",
]

failed_paths = []

for d in test_paths:
    print(f"Running {d}...")
    retcode = pytest.main(["-q", "--import-mode=importlib", d])
    if retcode != 0:
        print(f"FAIL: {d}")
        failed_paths.append(d)
    else:
        print(f"PASS: {d}")

if failed_paths:
    print(f"Failed: {failed_paths}")
    sys.exit(1)

print("All test areas passed!")
sys.exit(0)
