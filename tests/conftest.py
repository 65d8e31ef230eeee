from pathlib import Path
import sys

import pytest

# Ensure the src layout is importable without an editable install
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from deploy_annotator.demo.fixtures import SteppingClock  # noqa: E402
from deploy_annotator.registry.cluster_registry import InMemoryCluster  # noqa: E402
from deploy_annotator.sinks.memory import InMemoryAnnotationSink  # noqa: E402


@pytest.fixture
def cluster() -> InMemoryCluster:
    cluster = InMemoryCluster()
    cluster.set_namespace("shop", {"deployment-annotator": "enabled"})
    cluster.set_namespace("quiet", {"team": "ops"})
    return cluster


@pytest.fixture
def sink() -> InMemoryAnnotationSink:
    return InMemoryAnnotationSink()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()
